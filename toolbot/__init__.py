"""Minimal Groq agent loop with locally dispatched function calls."""
