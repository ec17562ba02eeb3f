"""
Console entry point.

With a prompt argument the CLI answers once; without one it reads prompts in a
loop until 'exit' or end of input. Each prompt starts a fresh conversation.
"""
from __future__ import annotations

import argparse
import logging
import sys
from typing import Callable, List, Optional, TextIO

from toolbot.agent import Agent, RunResult
from toolbot.config import get_groq_api_key, get_max_rounds, get_model
from toolbot.errors import AgentError
from toolbot.tools import build_tool_registry
from toolbot.transport import GroqTransport

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_RUN_FAILED = 1
EXIT_CONFIG = 2

EXIT_WORDS = {"exit", "quit"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="toolbot", description="Chat with a Groq model that can call local tools.")
    parser.add_argument("prompt", nargs="?", help="answer a single prompt and exit")
    parser.add_argument("--model", help="Groq model name (default: $GROQ_MODEL or llama-3.3-70b-versatile)")
    parser.add_argument("--max-rounds", type=int, help="tool-call rounds allowed per prompt")
    parser.add_argument("--sequential", action="store_true", help="run sibling tool calls one at a time")
    parser.add_argument("--trace", action="store_true", help="print the tools used after each answer")
    parser.add_argument("-v", "--verbose", action="store_true", help="log tool calls and results")
    return parser


def make_agent(args: argparse.Namespace) -> Agent:
    max_rounds = args.max_rounds if args.max_rounds is not None else get_max_rounds()
    transport = GroqTransport(model=args.model or get_model())
    return Agent(
        registry=build_tool_registry(),
        transport=transport,
        max_rounds=max_rounds,
        parallel=not args.sequential,
    )


def _print_result(result: RunResult, show_trace: bool, out: Optional[TextIO]) -> None:
    print(result.answer, file=out)
    if show_trace:
        print(result.trace_line(), file=out)


def answer_once(agent: Agent, prompt: str, show_trace: bool = False, out: Optional[TextIO] = None) -> int:
    """Run one prompt; return the process exit code."""
    try:
        result = agent.run(prompt)
    except AgentError as exc:
        logger.debug("Run aborted", exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_RUN_FAILED
    _print_result(result, show_trace, out)
    return EXIT_OK


def chat_loop(
    agent: Agent,
    show_trace: bool = False,
    read: Callable[[str], str] = input,
    out: Optional[TextIO] = None,
) -> int:
    """Prompt repeatedly; stop on an exit word, end of input, or a failed run."""
    while True:
        try:
            prompt = read("Enter your message: ").strip()
        except (EOFError, KeyboardInterrupt):
            print("Exiting...", file=out)
            return EXIT_OK
        if not prompt:
            continue
        if prompt.lower() in EXIT_WORDS:
            print("Exiting...", file=out)
            return EXIT_OK
        code = answer_once(agent, prompt, show_trace=show_trace, out=out)
        if code != EXIT_OK:
            return code


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        get_groq_api_key()
        agent = make_agent(args)
    except (RuntimeError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_CONFIG

    if args.prompt:
        return answer_once(agent, args.prompt, show_trace=args.trace)
    return chat_loop(agent, show_trace=args.trace)


if __name__ == "__main__":
    sys.exit(main())
