"""CLI tool for ingesting local documents into the PlantOps knowledge base.

Usage::

    python -m plantops.cli.ingest manuals/engine-3.pdf notes/alarms.md
    python -m plantops.cli.ingest --stats

Each file goes through validation, extraction, chunking, embedding and
publishing exactly as an API upload would.  The exit status is 1 when any
file failed, so the tool can gate deployment scripts.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any

from plantops.config.settings import load_settings
from plantops.models.document import Document, DocumentStatus, UploadedFile
from plantops.utils.errors import ConfigurationError, PlantOpsError
from plantops.utils.logging import configure_logging


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m plantops.cli.ingest",
        description="Ingest local documents into the PlantOps knowledge base.",
    )
    parser.add_argument("files", nargs="*", type=Path, help="Documents to ingest.")
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Print corpus statistics after ingesting (or on their own).",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Log level for pipeline events (default: WARNING).",
    )
    return parser


async def _ingest_file(path: Path, components: dict[str, Any]) -> Document | str:
    """Run one file through the pipeline; return its Document or a rejection reason."""
    service = components["ingestion_service"]
    try:
        data = await asyncio.to_thread(path.read_bytes)
    except OSError as exc:
        return f"cannot read file: {exc.strerror or exc}"

    try:
        accepted = await service.submit(UploadedFile.from_bytes(path.name, data))
    except PlantOpsError as exc:
        return exc.message

    await service.drain()
    document = await components["document_registry"].get(accepted.document_id)
    return document or accepted


async def _run(args: argparse.Namespace, components: dict[str, Any]) -> int:
    failures = 0
    try:
        for path in args.files:
            result = await _ingest_file(path, components)
            if isinstance(result, str):
                failures += 1
                print(f"REJECTED  {path}: {result}")
            elif result.status is DocumentStatus.COMPLETED:
                print(f"OK        {path}: {result.chunk_count} chunks ({result.document_id})")
            else:
                failures += 1
                print(f"FAILED    {path}: {result.error}")

        if args.stats:
            try:
                stats = await components["vector_store"].get_stats()
            except PlantOpsError as exc:
                print(f"Error: {exc}", file=sys.stderr)
                return 1
            print()
            print("Corpus Statistics")
            print("=" * 40)
            print(f"  Collection:       {stats.collection_name}")
            print(f"  Documents:        {stats.total_documents}")
            print(f"  Published chunks: {stats.total_chunks}")
            print(f"  Staged chunks:    {stats.staged_chunks}")
    finally:
        for component in components.get("closeables", []):
            await component.close()

    if args.files:
        print(f"\n{len(args.files) - failures}/{len(args.files)} documents ingested")
    return 1 if failures else 0


def main(argv: list[str] | None = None) -> int:
    """CLI entry point; returns the process exit status."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not args.files and not args.stats:
        parser.print_help()
        return 1

    configure_logging(log_level=args.log_level)
    try:
        settings = load_settings()
    except ConfigurationError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1

    # Deferred so --help stays fast.
    from plantops.main import build_components

    return asyncio.run(_run(args, build_components(settings)))


if __name__ == "__main__":
    sys.exit(main())
