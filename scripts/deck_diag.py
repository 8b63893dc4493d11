"""Deck MCP diagnostics CLI."""

from __future__ import annotations

import argparse
import json
from pathlib import Path

from deck_mcp.catalog import ModelCatalog
from deck_mcp.config import DeckSettings
from deck_mcp.session import (
    GeminiTranscriptParser,
    InstanceValidationError,
    SessionLogLocator,
    TranscriptParseError,
    hash_project_path,
)


def load_locator(settings: DeckSettings) -> SessionLogLocator:
    parser = GeminiTranscriptParser()
    return SessionLogLocator(settings.gemini_config_dir, info_reader=parser.parse_info)


def _locate_or_exit(locator: SessionLogLocator, workdir: str, session_id: str) -> Path:
    try:
        path = locator.locate(workdir, session_id)
    except InstanceValidationError as exc:
        print(f"Invalid session id: {exc}")
        raise SystemExit(2)
    if path is None:
        print(f"No transcript found for session {session_id}")
        raise SystemExit(1)
    return path


def cmd_hash(args: argparse.Namespace) -> None:
    print(hash_project_path(args.path))


def cmd_locate(args: argparse.Namespace) -> None:
    settings = DeckSettings()
    locator = load_locator(settings)
    path = _locate_or_exit(locator, args.workdir, args.session_id)
    expected = locator.sessions_dir(args.workdir)
    payload = {
        "path": str(path),
        "expected_dir": str(expected),
        "fallback": path.parent != expected,
    }
    print(json.dumps(payload, indent=2))


def cmd_analytics(args: argparse.Namespace) -> None:
    settings = DeckSettings()
    locator = load_locator(settings)
    path = _locate_or_exit(locator, args.workdir, args.session_id)
    try:
        analytics = GeminiTranscriptParser().parse_analytics(path)
    except TranscriptParseError as exc:
        print(f"Transcript unreadable: {exc}")
        raise SystemExit(1)
    print(json.dumps(analytics.to_dict(), indent=2))


def cmd_sessions(args: argparse.Namespace) -> None:
    settings = DeckSettings()
    locator = load_locator(settings)
    sessions = locator.list_sessions(args.workdir)
    if args.limit is not None and args.limit > 0:
        sessions = sessions[: args.limit]
    if args.json:
        print(json.dumps([info.to_dict() for info in sessions], indent=2))
    else:
        for info in sessions:
            updated = info.last_updated.isoformat() if info.last_updated else "-"
            print(f"{info.session_id} [{info.message_count} messages] {updated} {info.filename}")


def cmd_models(args: argparse.Namespace) -> None:
    settings = DeckSettings()
    for model in ModelCatalog(settings).available_models():
        print(model)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Deck MCP diagnostics")
    sub = parser.add_subparsers(dest="cmd")

    p_hash = sub.add_parser("hash", help="Print the project hash for a directory")
    p_hash.add_argument("path")
    p_hash.set_defaults(func=cmd_hash)

    p_locate = sub.add_parser("locate", help="Find the transcript for a session")
    p_locate.add_argument("--workdir", required=True)
    p_locate.add_argument("--session-id", required=True)
    p_locate.set_defaults(func=cmd_locate)

    p_analytics = sub.add_parser("analytics", help="Parse token usage from a session transcript")
    p_analytics.add_argument("--workdir", required=True)
    p_analytics.add_argument("--session-id", required=True)
    p_analytics.set_defaults(func=cmd_analytics)

    p_sessions = sub.add_parser("sessions", help="List transcripts recorded for a directory")
    p_sessions.add_argument("--workdir", required=True)
    p_sessions.add_argument("--json", action="store_true", help="Output JSON")
    p_sessions.add_argument(
        "--limit",
        type=int,
        default=None,
        help="If provided, show only the latest N sessions",
    )
    p_sessions.set_defaults(func=cmd_sessions)

    p_models = sub.add_parser("models", help="List available Gemini models")
    p_models.set_defaults(func=cmd_models)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
