from __future__ import annotations

import argparse
import asyncio
import subprocess
import sys
from pathlib import Path
from typing import Iterable, Optional

from rich.console import Console
from rich.table import Table
from sqlalchemy import select

from .core.config import Settings, get_settings
from .core.db import create_engine, create_session_factory
from .core.errors import ExternalToolFailure
from .core.storage import ObjectStore, get_storage
from .db.models import Video
from .media import FFprobeProber, video_key

console = Console()


def main(argv: Optional[list[str]] = None) -> None:
    """The main entry point for the CLI.

    Args:
        argv: The command-line arguments.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if getattr(args, "check", False):
        _run_environment_check(get_settings())
        return

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    args.func(args)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="vidhost operator CLI")
    parser.add_argument("--check", action="store_true", help="Validate presence of the ffprobe dependency")

    subparsers = parser.add_subparsers(dest="command")

    probe_parser = subparsers.add_parser("probe", help="Report a video's dimensions and aspect classification")
    probe_parser.add_argument("--file", required=True, help="Path to the source media file")
    probe_parser.add_argument("--video-id", help="Also print the storage key this file would be published under")
    probe_parser.set_defaults(func=_cmd_probe)

    sweep_parser = subparsers.add_parser(
        "sweep-orphans",
        help="List stored objects that no video record references",
    )
    sweep_parser.add_argument("--prefix", default="", help="Only consider keys under this prefix")
    sweep_parser.add_argument("--delete", action="store_true", help="Delete the orphaned objects")
    sweep_parser.set_defaults(func=_cmd_sweep_orphans)
    return parser


def _cmd_probe(args: argparse.Namespace) -> None:
    """Probe a local media file.

    Args:
        args: The command-line arguments.
    """
    settings = get_settings()
    media_path = Path(args.file).expanduser().resolve()
    if not media_path.exists():
        console.print(f"[red]File not found: {media_path}[/]")
        sys.exit(2)

    prober = FFprobeProber(binary=settings.ffprobe_binary, timeout_s=settings.probe_timeout_s)
    try:
        dimensions = prober.probe(media_path)
    except ExternalToolFailure as exc:
        console.print(f"[red]ffprobe failed:[/] {exc.detail}")
        sys.exit(3)

    report: dict[str, object] = {
        "file": str(media_path),
        "width": dimensions.width,
        "height": dimensions.height,
        "classification": dimensions.classification.value,
    }
    if args.video_id:
        report["key"] = video_key(args.video_id, dimensions.classification)
    console.print_json(data=report)


def _cmd_sweep_orphans(args: argparse.Namespace) -> None:
    """Find, and optionally delete, objects left behind by partially completed uploads.

    Args:
        args: The command-line arguments.
    """
    settings = get_settings()
    storage = get_storage(settings)
    referenced = asyncio.run(_referenced_keys(settings, storage))
    orphans = find_orphans(storage.list(args.prefix), referenced)

    table = Table(title="Orphaned objects")
    table.add_column("key")
    table.add_column("action")
    for key in orphans:
        action = "kept"
        if args.delete:
            storage.delete(key)
            action = "deleted"
        table.add_row(key, action)
    console.print(table)
    console.print(f"[bold]{len(orphans)}[/] orphaned object(s)")


def find_orphans(stored_keys: Iterable[str], referenced_keys: set[str]) -> list[str]:
    return sorted(key for key in stored_keys if key not in referenced_keys)


async def _referenced_keys(settings: Settings, storage: ObjectStore) -> set[str]:
    engine = create_engine(settings)
    session_factory = create_session_factory(engine)
    keys: set[str] = set()
    try:
        async with session_factory() as session:
            result = await session.execute(select(Video.thumbnail_url, Video.video_url))
            for row in result.all():
                for url in row:
                    key = storage.key_for_url(url) if url else None
                    if key:
                        keys.add(key)
    finally:
        await engine.dispose()
    return keys


def _run_environment_check(settings: Settings) -> None:
    """Check for the presence of required external dependencies."""
    try:
        subprocess.run(
            [settings.ffprobe_binary, "-version"],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=True,
            timeout=10,
        )
        ok = True
    except (OSError, subprocess.SubprocessError):
        ok = False

    console.rule("[bold]Environment Check")
    console.print(f"[bold]ffprobe[/]: {'✅' if ok else '❌'}")
    console.print(f"[bold]storage backend[/]: {settings.storage_backend}")

    if not ok:
        console.print("[red]ffprobe is missing; video uploads will fail.[/]")
        sys.exit(1)
    console.print("[green]Environment looks good![/]")


if __name__ == "__main__":
    main()
