"""CLI entry point for streamkit.

Streams a chat completion from any OpenAI-compatible server, or dumps the
frames of a captured SSE stream for debugging.

Entry point:
    streamkit chat "prompt" [--model M] [--system S] [--temperature T] [--max-tokens N]
    streamkit frames [capture.sse]
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from typing import Optional

from streamkit.client import ChatRequest, StreamingClient
from streamkit.config import get_default_model, load_provider_config
from streamkit.errors import StreamKitError
from streamkit.framer import EventFramer

READ_CHUNK_BYTES = 4096


# ─────────────────────────────────────────────────────────────────────
# ARGUMENT PARSING
# ─────────────────────────────────────────────────────────────────────


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="streamkit",
        description="Stream events from OpenAI-compatible servers.",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )
    sub = parser.add_subparsers(dest="command")

    # chat
    chat_p = sub.add_parser("chat", help="Stream a chat completion to stdout")
    chat_p.add_argument("prompt", help="User message")
    chat_p.add_argument("--model", default=None, help="Model ID (default: $STREAMKIT_MODEL)")
    chat_p.add_argument("--system", default=None, help="System prompt")
    chat_p.add_argument("--temperature", type=float, default=None, help="Sampling temperature")
    chat_p.add_argument("--max-tokens", type=int, default=None, help="Max tokens to generate")

    # frames
    frames_p = sub.add_parser("frames", help="Print the frames of an SSE capture as JSON lines")
    frames_p.add_argument("file", nargs="?", default=None, help="Capture file (default: stdin)")

    return parser


# ─────────────────────────────────────────────────────────────────────
# COMMANDS
# ─────────────────────────────────────────────────────────────────────


async def _cmd_chat(
    prompt: str,
    model: Optional[str] = None,
    system: Optional[str] = None,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
) -> int:
    """Stream one chat completion. Returns exit code."""
    messages = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": prompt})

    client = StreamingClient(load_provider_config(), default_model=model or get_default_model())
    request = ChatRequest(messages=messages, temperature=temperature, max_tokens=max_tokens)

    events = client.stream_chat(request)
    try:
        async with events:
            async for text in events.text_stream():
                sys.stdout.write(text)
                sys.stdout.flush()
    except StreamKitError as e:
        sys.stdout.write("\n")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    sys.stdout.write("\n")
    if events.decode_error_count:
        print(f"Skipped {events.decode_error_count} undecodable frame(s)", file=sys.stderr)
    return 0


def _cmd_frames(path: Optional[str] = None) -> int:
    """Parse an SSE capture and print one JSON object per frame."""
    def emit(frame):
        fields = {k: v for k, v in asdict(frame).items() if v is not None}
        print(json.dumps(fields))

    framer = EventFramer(emit)
    stream = open(path, "rb") if path else sys.stdin.buffer
    try:
        while True:
            chunk = stream.read(READ_CHUNK_BYTES)
            if not chunk:
                break
            framer.feed(chunk)
        framer.flush()
    finally:
        if path:
            stream.close()
    return 0


# ─────────────────────────────────────────────────────────────────────
# ENTRY POINT
# ─────────────────────────────────────────────────────────────────────


def main():
    parser = _build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Logging
    level = logging.DEBUG if args.verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(name)s %(message)s", stream=sys.stderr)

    # Load env
    from dotenv import load_dotenv
    load_dotenv()

    # Dispatch
    if args.command == "chat":
        code = asyncio.run(_cmd_chat(
            prompt=args.prompt,
            model=args.model,
            system=args.system,
            temperature=args.temperature,
            max_tokens=args.max_tokens,
        ))
    elif args.command == "frames":
        code = _cmd_frames(args.file)
    else:
        parser.print_help()
        code = 1

    sys.exit(code)


if __name__ == "__main__":
    main()
