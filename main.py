#!/usr/bin/env python3
"""Ollama Chat Bot CLI.

Ask a local or hosted Ollama model a question from the terminal, with the
same tool-calling protocol and conversation memory the chat adapters use.

Architecture:
    - BotConfig reads OLLAMA_BOT_* settings (a .env file is loaded first)
    - ChatService wires the provider, tools, memory and orchestrator
    - Interactive mode keeps one service so memory carries across questions

Environment Variables:
    - OLLAMA_BOT_MODEL: Model name (default: llama3.2)
    - OLLAMA_BOT_HOST: Ollama server URL (default: http://127.0.0.1:11434)
    - OLLAMA_BOT_API_KEY: Bearer token (hosted Ollama and web tools)
    - OLLAMA_BOT_WEB_ENABLED: Enable web search and fetch tools

Example Usage:
    $ python main.py "what time is it?"
    $ python main.py --web "latest python release?"
    $ python main.py --interactive --room dev --user alice
    $ python main.py --no-tools "tell me a joke"
"""
import argparse
import asyncio
import logging
import sys
from dataclasses import replace

from dotenv import load_dotenv

load_dotenv()

# Local imports
from src.ollamabot.agent import BotConfig, ChatService
from src.ollamabot.agent.config import validate_model_name


async def print_status(text: str) -> None:
    print(f"[{text}]")


async def ask_once(service: ChatService, question: str, args: argparse.Namespace) -> bool:
    """Ask one question and print the answer.

    Returns:
        False if the answer was an error
    """
    response = await service.ask(
        question,
        room=args.room,
        user=args.user,
        thread=args.thread,
        display_name=args.user,
        notify=print_status,
    )
    print(response.text)
    if response.notice:
        print(response.notice)
    return not response.is_error


async def run_chat(args: argparse.Namespace) -> int:
    """Main CLI function.

    Args:
        args: Parsed command-line arguments

    Returns:
        Process exit code
    """
    config = BotConfig.from_env()
    if args.model:
        config = replace(config, model=validate_model_name(args.model))
    if args.no_tools:
        config = replace(config, tools_enabled=False)
    if args.web:
        config = replace(config, web_enabled=True)
        if not config.api_key:
            print("[Main] --web needs OLLAMA_BOT_API_KEY; continuing without web tools")

    service = ChatService(config)
    ok = True
    try:
        if args.question:
            ok = await ask_once(service, " ".join(args.question), args)

        if args.interactive:
            print(f"[Main] Chatting with {config.model} (empty line or Ctrl-D to quit)")
            while True:
                try:
                    line = await asyncio.to_thread(input, "> ")
                except EOFError:
                    break
                if not line.strip():
                    break
                await ask_once(service, line, args)
    finally:
        await service.aclose()

    return 0 if ok else 1


def main():
    parser = argparse.ArgumentParser(
        description="Ask an Ollama model questions, with tools and conversation memory",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py "what time is it?"             # One-shot question
  python main.py --interactive                  # Chat until an empty line
  python main.py --web "latest node release?"   # Allow web search and fetch
  python main.py --no-tools "hello"             # Single model call, no tools
        """
    )
    parser.add_argument(
        "question",
        nargs="*",
        help="Question to ask (omit with --interactive)"
    )

    # Conversation identity
    identity_group = parser.add_argument_group("Conversation")
    identity_group.add_argument(
        "--room",
        default="cli",
        help="Room identifier used for the memory key (default: cli)"
    )
    identity_group.add_argument(
        "--user",
        default="local-user",
        help="User identifier and display name (default: local-user)"
    )
    identity_group.add_argument(
        "--thread",
        help="Thread identifier (used with OLLAMA_BOT_CONTEXT_SCOPE=thread)"
    )
    identity_group.add_argument(
        "--interactive", "-i",
        action="store_true",
        help="Read questions from stdin until an empty line"
    )

    # Model and tools
    model_group = parser.add_argument_group("Model Options")
    model_group.add_argument(
        "--model",
        help="Override OLLAMA_BOT_MODEL"
    )
    model_group.add_argument(
        "--no-tools",
        action="store_true",
        help="Disable tool calling (single model call)"
    )
    model_group.add_argument(
        "--web",
        action="store_true",
        help="Enable web search and fetch tools (needs OLLAMA_BOT_API_KEY)"
    )
    model_group.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging"
    )

    args = parser.parse_args()
    if not args.question and not args.interactive:
        parser.error("provide a question or use --interactive")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    sys.exit(asyncio.run(run_chat(args)))


if __name__ == "__main__":
    main()
