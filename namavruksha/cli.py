"""Command-line entry point for devotion stats and reading sessions."""
from __future__ import annotations

import argparse
import asyncio
import json
from datetime import date, datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Tuple
from zoneinfo import ZoneInfo

from .blobstore import BlobStore
from .config import Config, load_config
from .errors import ReaderError
from .reader.session import ReadingSession
from .stats import as_entries, compute_devotee_adjusted_total, compute_stats, sum_by_date_range
from .storage import LocalStore


def _today(config: Config) -> date:
    return datetime.now(ZoneInfo(config.timezone)).date()


def _load_entries(path: Path) -> List[Dict[str, Any]]:
    payload = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(payload, dict):
        payload = payload.get("documents", payload.get("entries", []))
    if not isinstance(payload, list):
        raise ValueError("Entries file must hold a list or an object with 'documents'")
    return payload


def run_stats(args: argparse.Namespace, config: Config) -> Dict[str, Any]:
    entries = as_entries(_load_entries(args.entries))
    if args.user:
        entries = [entry for entry in entries if entry.user_id == args.user]
    if args.account:
        entries = [entry for entry in entries if entry.account_id == args.account]
    now = args.now or _today(config)
    summary: Dict[str, Any] = {
        "now": now.isoformat(),
        "entries": len(entries),
        "stats": compute_stats(entries, now).to_dict(),
        "devotees": compute_devotee_adjusted_total(entries),
    }
    if args.start and args.end:
        summary["range"] = {
            "start": args.start.isoformat(),
            "end": args.end.isoformat(),
            "total": sum_by_date_range(entries, args.start, args.end),
        }
    return summary


def _source(args: argparse.Namespace, config: Config) -> Tuple[str, Callable[[str], Awaitable[bytes]], BlobStore | None]:
    path = Path(args.source)
    if path.exists():
        async def read_file(_document_id: str) -> bytes:
            return path.read_bytes()

        return args.doc_id or path.stem, read_file, None
    store = BlobStore(config.blob_store)
    return args.doc_id or args.source, store.fetch, store


async def run_reader(args: argparse.Namespace, config: Config) -> Dict[str, Any]:
    document_id, fetch, blob_store = _source(args, config)
    try:
        session = await ReadingSession.open(
            document_id,
            fetch,
            store=LocalStore(config.store_path),
            config=config.reader,
        )
    finally:
        if blob_store is not None:
            await blob_store.aclose()
    try:
        summary: Dict[str, Any] = {
            "document_id": document_id,
            "pages": session.page_count,
            "page": session.current_page,
            "bookmarks": session.bookmarks,
        }
        if args.command == "outline":
            summary["outline"] = [entry.to_dict() for entry in await session.derive_outline()]
        else:
            summary["query"] = args.query
            summary["matches"] = await session.search(args.query)
            summary["page"] = session.current_page
        return summary
    finally:
        session.close()


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Namavruksha devotion stats and flipbook tools")
    parser.add_argument("--config", default=None, help="JSON or TOML config file")
    sub = parser.add_subparsers(dest="command", required=True)

    stats = sub.add_parser("stats", help="Bucket totals for a JSON export of count entries")
    stats.add_argument("entries", type=Path)
    stats.add_argument("--now", type=date.fromisoformat, default=None)
    stats.add_argument("--user", default=None)
    stats.add_argument("--account", default=None)
    stats.add_argument("--start", type=date.fromisoformat, default=None)
    stats.add_argument("--end", type=date.fromisoformat, default=None)

    for name, help_text in (("outline", "Derive a table of contents"), ("search", "Full-text search across pages")):
        reader = sub.add_parser(name, help=help_text)
        reader.add_argument("source", help="PDF path, or a document id in the blob store")
        if name == "search":
            reader.add_argument("query")
        reader.add_argument("--doc-id", default=None)
    return parser


def main(argv: List[str] | None = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    config = load_config(args.config)
    if args.command == "stats":
        summary = run_stats(args, config)
    else:
        try:
            summary = asyncio.run(run_reader(args, config))
        except ReaderError as exc:
            print(json.dumps({"event": "cli_error", "reason": exc.reason, "error": str(exc)}, ensure_ascii=False))
            return 1
    print(json.dumps({"event": "cli_summary", **summary}, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
