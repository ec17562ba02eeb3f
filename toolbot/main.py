"""
Streamlit entry-point for toolbot.

Responsibilities
- Build the tool registry and Groq-backed agent once per session
- Run each user prompt through the agent loop
- Render a simple chat interface

Run with ``streamlit run toolbot/main.py``.
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

import groq
import streamlit as st

# Ensure absolute `toolbot.*` imports work when Streamlit runs this file directly
ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from toolbot.agent import Agent
from toolbot.config import get_max_rounds
from toolbot.errors import AgentError, LoopBoundExceeded
from toolbot.tools import build_tool_registry
from toolbot.transport import GroqTransport

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def _get_agent() -> Agent:
    if "agent_instance" not in st.session_state:
        st.session_state["agent_instance"] = Agent(
            registry=build_tool_registry(),
            transport=GroqTransport(),
            max_rounds=get_max_rounds(),
        )
    return st.session_state["agent_instance"]


def ask(query: str, agent: Optional[Agent] = None) -> str:
    """
    Run a query through the agent loop and return the response text.

    Parameters
    ----------
    query : str
        User's free-text prompt.
    agent : Optional[Agent], default None
        Injected agent for testability. Taken from the session if not provided.

    Returns
    -------
    str
        Assistant answer, or an apology when the run was aborted.
    """
    if agent is None:
        try:
            agent = _get_agent()
        except (RuntimeError, groq.GroqError) as exc:
            logger.exception("Could not build the agent: %s", exc)
            return f"Sorry, toolbot is not configured correctly: {exc}"
    try:
        result = agent.run(query)
    except LoopBoundExceeded as exc:
        logger.warning("Run aborted: %s", exc)
        return "Sorry, I kept calling tools without reaching an answer. Please try rephrasing."
    except AgentError as exc:
        logger.exception("Error while handling query: %s", exc)
        return "Sorry, something went wrong while contacting the model."
    return f"{result.answer}\n\n_{result.trace_line()}_"


def main() -> None:
    """Run the Streamlit chat UI."""
    st.title("toolbot")

    if "messages" not in st.session_state:
        st.session_state["messages"] = []

    for message in st.session_state.messages:
        with st.chat_message(message["role"]):
            st.markdown(message["content"])  # type: ignore[arg-type]

    query = st.chat_input("Ask me to calculate something")
    if not query:
        return

    with st.chat_message("user"):
        st.markdown(query)
    st.session_state.messages.append({"role": "user", "content": query})

    try:
        response = ask(query)
    except Exception as exc:
        logger.exception("Error while handling query: %s", exc)
        response = "Sorry, something went wrong while handling your request."

    with st.chat_message("assistant"):
        st.markdown(response)
    st.session_state.messages.append({"role": "assistant", "content": response})


if __name__ == "__main__":
    main()
