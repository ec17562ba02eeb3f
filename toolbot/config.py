"""
Central configuration for toolbot.
Loads environment variables from a .env file at import time.
"""
from __future__ import annotations

import os

from dotenv import load_dotenv

# --- Load .env early so everything importing config sees the vars ---
load_dotenv()

#: Environment variable names
GROQ_API_KEY_ENV = "GROQ_API_KEY"
GROQ_MODEL_ENV = "GROQ_MODEL"
MAX_ROUNDS_ENV = "TOOLBOT_MAX_ROUNDS"

#: Chat model used when GROQ_MODEL is not set.
DEFAULT_MODEL = "llama-3.3-70b-versatile"

#: Number of call/dispatch/response cycles allowed per user prompt.
DEFAULT_MAX_ROUNDS = 5

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful assistant with access to a calculator. When users want to perform "
    "arithmetic operations, use the calculate function, or respond with: "
    '<function=calculate{"a": number1, "b": number2, "operation": "op"}> '
    "where op can be +, -, *, or /. After receiving results, provide a friendly response."
)


def require_env(var_name: str) -> str:
    """
    Return the value of an environment variable or raise a clear error.

    Raises
    ------
    RuntimeError
        If the environment variable is missing or empty.
    """
    try:
        value = os.environ[var_name]
    except KeyError as exc:
        raise RuntimeError(f"Required environment variable '{var_name}' is not set.") from exc
    if not value:
        raise RuntimeError(f"Environment variable '{var_name}' is empty.")
    return value


def get_groq_api_key() -> str:
    """
    Convenience accessor specifically for the Groq API key.
    """
    return require_env(GROQ_API_KEY_ENV)


def get_model() -> str:
    """Return the configured Groq model, falling back to DEFAULT_MODEL."""
    return os.environ.get(GROQ_MODEL_ENV) or DEFAULT_MODEL


def get_max_rounds() -> int:
    """
    Return the round limit from TOOLBOT_MAX_ROUNDS or the default.

    Raises
    ------
    RuntimeError
        If the variable is set but is not a positive integer.
    """
    raw = os.environ.get(MAX_ROUNDS_ENV)
    if not raw:
        return DEFAULT_MAX_ROUNDS
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"Environment variable '{MAX_ROUNDS_ENV}' must be an integer, got {raw!r}.") from exc
    if value < 1:
        raise RuntimeError(f"Environment variable '{MAX_ROUNDS_ENV}' must be at least 1.")
    return value
