"""
vocabloop CLI - merge snapshots offline or sync them with a server.

Usage:
    vocabloop merge LOCAL CLOUD [--output OUT] [--history-limit N] [--truncation MODE]
    vocabloop push FILE [--url URL] [--token TOKEN]
    vocabloop pull [--output OUT] [--url URL] [--token TOKEN]
    vocabloop sync FILE [--url URL] [--token TOKEN]

Remote commands read VOCABLOOP_URL and VOCABLOOP_TOKEN when the flags are
not given.
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path

import httpx

from vocabloop.logging_config import log_merge, log_transfer, setup_vocabloop_logging
from vocabloop.merge import merge_snapshot_dicts
from vocabloop.types import HISTORY_LIMIT, HistoryTruncation

logger = logging.getLogger(__name__)

DEFAULT_URL = "http://localhost:8000"
REQUEST_TIMEOUT = 30.0


def read_snapshot(path: str) -> dict:
    """Load a snapshot JSON file; an empty or missing file reads as {}."""
    file_path = Path(path)
    if not file_path.exists() or not file_path.read_text().strip():
        return {}
    data = json.loads(file_path.read_text())
    if not isinstance(data, dict):
        raise ValueError(f"{path} does not contain a JSON object")
    return data


def write_output(data, output: str = None) -> None:
    text = json.dumps(data, indent=2, ensure_ascii=False)
    if output:
        Path(output).write_text(text + "\n")
    else:
        print(text)


def cmd_merge(args) -> int:
    """Merge two snapshot files locally, LOCAL winning ties."""
    local = read_snapshot(args.local)
    cloud = read_snapshot(args.cloud)
    merged = merge_snapshot_dicts(
        local,
        cloud,
        history_limit=args.history_limit,
        history_truncation=HistoryTruncation(args.truncation),
    )
    log_merge(
        "cli",
        decks=len(merged["decks"]),
        words=sum(len(deck.get("state", {})) for deck in merged["decks"].values()),
        history=len(merged["readingHistory"]),
    )
    write_output(merged, args.output)
    return 0


def _resolve_remote(args):
    url = (args.url or os.environ.get("VOCABLOOP_URL") or DEFAULT_URL).rstrip("/")
    token = args.token or os.environ.get("VOCABLOOP_TOKEN")
    if not token:
        print("✗ No token given. Use --token or set VOCABLOOP_TOKEN.", file=sys.stderr)
        return url, None
    return url, token


def _call_sync(url: str, body: dict):
    """POST to the sync endpoint; returns the decoded body or None on failure."""
    try:
        response = httpx.post(f"{url}/api/sync", json=body, timeout=REQUEST_TIMEOUT)
    except httpx.HTTPError as e:
        logger.debug(f"Sync request failed: {e}")
        print(f"✗ Connection failed: {e}", file=sys.stderr)
        log_transfer("cli", body["action"], False, str(e))
        return None
    try:
        payload = response.json()
    except ValueError:
        payload = {"ok": False, "message": response.text[:200]}
    if response.status_code != 200 or not payload.get("ok"):
        print(f"✗ {body['action']} failed ({response.status_code}): {payload.get('message')}",
              file=sys.stderr)
        log_transfer("cli", body["action"], False, f"status={response.status_code}")
        return None
    log_transfer("cli", body["action"], True)
    return payload


def cmd_push(args) -> int:
    url, token = _resolve_remote(args)
    if not token:
        return 2
    payload = _call_sync(url, {"action": "push", "token": token, "data": read_snapshot(args.file)})
    if payload is None:
        return 1
    print(f"✓ {payload['message']} (updatedAt={payload.get('updatedAt')})")
    return 0


def cmd_pull(args) -> int:
    url, token = _resolve_remote(args)
    if not token:
        return 2
    payload = _call_sync(url, {"action": "pull", "token": token})
    if payload is None:
        return 1
    if payload.get("data") is None:
        print(f"✓ {payload['message']}")
        return 0
    write_output(payload["data"], args.output)
    return 0


def cmd_sync(args) -> int:
    """Two-way merge FILE with the server copy and write the result back to FILE."""
    url, token = _resolve_remote(args)
    if not token:
        return 2
    payload = _call_sync(url, {"action": "merge", "token": token, "data": read_snapshot(args.file)})
    if payload is None:
        return 1
    write_output(payload["data"], args.file)
    print(f"✓ {payload['message']} (updatedAt={payload.get('updatedAt')})")
    return 0


def _add_remote_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--url", help=f"Server base URL (default {DEFAULT_URL})")
    parser.add_argument("--token", help="Auth token")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="vocabloop", description="VocabLoop snapshot sync")
    parser.add_argument("--log-level", default="WARNING", help="Log level (default WARNING)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_merge = subparsers.add_parser("merge", help="Merge two snapshot files offline")
    p_merge.add_argument("local", help="Snapshot from this device (wins ties)")
    p_merge.add_argument("cloud", help="Snapshot to merge in")
    p_merge.add_argument("--output", "-o", help="Write result here instead of stdout")
    p_merge.add_argument("--history-limit", type=int, default=HISTORY_LIMIT)
    p_merge.add_argument(
        "--truncation",
        choices=[t.value for t in HistoryTruncation],
        default=HistoryTruncation.POSITION.value,
        help="How reading history is capped",
    )

    p_push = subparsers.add_parser("push", help="Overwrite the server copy with FILE")
    p_push.add_argument("file")
    _add_remote_args(p_push)

    p_pull = subparsers.add_parser("pull", help="Download the server copy")
    p_pull.add_argument("--output", "-o")
    _add_remote_args(p_pull)

    p_sync = subparsers.add_parser("sync", help="Two-way merge FILE with the server copy")
    p_sync.add_argument("file")
    _add_remote_args(p_sync)

    return parser


COMMANDS = {
    "merge": cmd_merge,
    "push": cmd_push,
    "pull": cmd_pull,
    "sync": cmd_sync,
}


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.WARNING)
    setup_vocabloop_logging(level=args.log_level)
    try:
        return COMMANDS[args.command](args)
    except (ValueError, OSError) as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
