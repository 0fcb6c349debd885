"""Command-line interface for the voice agent service.

WHY: Operators need to run the HTTP service, mint a credential by hand
when debugging a join failure, check which variables a deployment is
missing, and replay captured data-channel packets to see which transcript
events they produce.

HOW: argparse with one subcommand per task:
  token: print a credential for a channel and uid
  check-env: list required variables and exit non-zero if any is missing
  serve: run the FastAPI app under uvicorn
  decode: feed packet lines (file or stdin) through a ChunkReassembler
          and print each completed event as one JSON line

RULES:
- Results go to stdout; status and errors go to stderr
- token falls back to the app id when no valid certificate is configured,
  unless --require-certificate is given
- decode reads one packet per line; drop counts are reported on stderr
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional, TextIO

from voice_agent.auth.token import (
    InvalidCertificateError,
    build_token,
    credential_for,
)
from voice_agent.config import USER_UID, check_env, load_settings
from voice_agent.transcripts.reassembler import ChunkReassembler


def _status(msg: str) -> None:
    """Print a status message to stderr."""
    print(msg, file=sys.stderr, flush=True)


def _cmd_token(args: argparse.Namespace) -> int:
    settings = load_settings()
    app_id = args.app_id or settings.app_id
    certificate = args.certificate or settings.app_certificate

    if not app_id:
        _status("Error: APP_ID is not configured (set it or pass --app-id).")
        return 1

    if args.require_certificate:
        try:
            token = build_token(args.channel, args.uid, app_id, certificate)
        except InvalidCertificateError as exc:
            _status("Error: {}".format(exc))
            return 1
    else:
        token = credential_for(args.channel, args.uid, app_id, certificate)
        if token == app_id:
            _status("No valid APP_CERTIFICATE; printing the app id instead of a token.")

    print(token)
    return 0


def _cmd_check_env(args: argparse.Namespace) -> int:
    status = check_env()
    for name, is_set in status.configured.items():
        print("{:<20} {}".format(name, "set" if is_set else "MISSING"))
    if not status.ready:
        _status("Missing: {}".format(", ".join(status.missing)))
        return 1
    return 0


def _cmd_serve(args: argparse.Namespace) -> int:
    from voice_agent.server.app import run_api

    run_api(host=args.host, port=args.port)
    return 0


def decode_stream(stream: TextIO, reassembler: ChunkReassembler) -> List[dict]:
    """Feed each non-empty line of stream to the reassembler; return the events."""
    events = []
    for line in stream:
        line = line.rstrip("\r\n")
        if not line:
            continue
        event = reassembler.handle_packet(line.encode("utf-8"))
        if event is not None:
            events.append(event)
    return events


def _cmd_decode(args: argparse.Namespace) -> int:
    reassembler = ChunkReassembler()
    if args.input == "-":
        events = decode_stream(sys.stdin, reassembler)
    else:
        with open(args.input, "r", encoding="utf-8") as f:
            events = decode_stream(f, reassembler)

    for event in events:
        print(json.dumps(event, ensure_ascii=False))

    _status("{} event(s), {} packet(s) dropped, {} message(s) incomplete".format(
        len(events), reassembler.rejected_total, len(reassembler),
    ))
    for reason, count in sorted(reassembler.rejected.items()):
        _status("  {}: {}".format(reason, count))
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="voice_agent",
        description="Start hosted voice agents, mint channel credentials, "
                    "and decode transcript packets.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (default: %(default)s).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    token = subparsers.add_parser("token", help="Print a channel credential.")
    token.add_argument("channel", help="Channel name (up to 64 bytes).")
    token.add_argument(
        "--uid",
        default=USER_UID,
        help="User id the credential is for (default: %(default)s).",
    )
    token.add_argument("--app-id", default=None, help="Override APP_ID.")
    token.add_argument("--certificate", default=None, help="Override APP_CERTIFICATE.")
    token.add_argument(
        "--require-certificate",
        action="store_true",
        help="Fail instead of falling back to the app id.",
    )
    token.set_defaults(func=_cmd_token)

    check = subparsers.add_parser("check-env", help="List required environment variables.")
    check.set_defaults(func=_cmd_check_env)

    serve = subparsers.add_parser("serve", help="Run the HTTP service.")
    serve.add_argument("--host", default="0.0.0.0", help="Bind address (default: %(default)s).")
    serve.add_argument("--port", type=int, default=8000, help="Port (default: %(default)s).")
    serve.set_defaults(func=_cmd_serve)

    decode = subparsers.add_parser("decode", help="Reassemble transcript packets, one per line.")
    decode.add_argument(
        "input",
        nargs="?",
        default="-",
        help="File of packets, one per line ('-' for stdin, the default).",
    )
    decode.set_defaults(func=_cmd_decode)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for ``python -m voice_agent`` and the voice-agent script.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
