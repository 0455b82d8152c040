"""``agentpipes`` command line.

    agentpipes run PIPE MESSAGE       one run, print the completion
    agentpipes chat PIPE              read-eval loop on one thread
    agentpipes download URL [-o PATH] fetch a file
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Sequence, TextIO

from agentpipes.core.exceptions import ClientError, ConfigurationError
from agentpipes.core.messages import Message
from agentpipes.download import download
from agentpipes.langbase.client import AsyncPipeClient, shutdown

__all__ = ["main", "chat_loop", "build_parser", ]

logger = logging.getLogger(__name__)

EXIT_COMMANDS = frozenset({"exit", "quit"})


async def chat_loop(pipe: str, *, stdin: TextIO, stdout: TextIO, prompt: str = "> ") -> int:
    """Read lines from ``stdin``, run each on ``pipe`` and print the completion.

    The thread id returned by the first run is reused so the pipe keeps the
    conversation. A failed run is logged and the loop continues.

    Returns:
        The number of successful turns.
    """
    client = AsyncPipeClient()
    thread_id: str | None = None
    turns = 0
    while True:
        stdout.write(prompt)
        stdout.flush()
        line = await asyncio.to_thread(stdin.readline)
        if not line:
            stdout.write("\n")
            break
        text = line.strip()
        if not text:
            continue
        if text.lower() in EXIT_COMMANDS:
            break
        try:
            result = await client.run_pipe(pipe, [Message.user(text)], thread_id=thread_id)
        except ClientError as exc:
            logger.error("Run failed: %s", exc)
            continue
        thread_id = result.thread_id or thread_id
        stdout.write(f"{result.completion}\n")
        stdout.flush()
        turns += 1
    return turns


async def _run_once(pipe: str, message: str, stdout: TextIO) -> None:
    result = await AsyncPipeClient().run_pipe(pipe, [Message.user(message)])
    stdout.write(f"{result.completion}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="agentpipes", description="Run hosted pipes from the terminal.")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    run = commands.add_parser("run", help="send one message to a pipe")
    run.add_argument("pipe")
    run.add_argument("message")

    chat = commands.add_parser("chat", help="interactive conversation with a pipe")
    chat.add_argument("pipe")

    fetch = commands.add_parser("download", help="download a file over HTTP")
    fetch.add_argument("url")
    fetch.add_argument("-o", "--output", default=None, help="write to this path instead of stdout")
    return parser


async def _dispatch(args: argparse.Namespace) -> int:
    try:
        if args.command == "run":
            await _run_once(args.pipe, args.message, sys.stdout)
        elif args.command == "chat":
            await chat_loop(args.pipe, stdin=sys.stdin, stdout=sys.stdout)
        elif args.command == "download":
            result = await download(args.url, dest=args.output)
            if args.output is None:
                sys.stdout.buffer.write(result)
            else:
                print(f"Saved {args.url} to {result}")
    except (ClientError, ConfigurationError) as exc:
        logger.error("%s", exc)
        return 1
    finally:
        await shutdown()
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    try:
        return asyncio.run(_dispatch(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
