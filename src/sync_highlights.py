"""Command line entry point for syncing PocketBook Cloud highlights into an Obsidian vault."""
from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from pathlib import Path
from typing import Iterable

from pocketbook_highlights.config import SyncConfig, load_config
from pocketbook_highlights.fetchers import PocketbookCloudSource, SourceFetchError
from pocketbook_highlights.storage import FileSystemStore
from pocketbook_highlights.sync import sync


def _parse_args(argv: Iterable[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--config", type=Path, help="Path to JSON configuration file", default=None)
    parser.add_argument("--vault", type=Path, help="Path to the root of the Obsidian vault", default=None)
    parser.add_argument("--import-folder", help="Folder inside the vault for imported highlights", default=None)
    parser.add_argument(
        "--flat",
        action="store_true",
        help="Write one document per book instead of a folder with one document per highlight",
    )
    parser.add_argument("--access-token", help="PocketBook Cloud access token", default=None)
    parser.add_argument("--base-url", help="PocketBook Cloud API root", default=None)
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every document write")
    return parser.parse_args(argv)


def _combine_config(args: argparse.Namespace) -> SyncConfig:
    try:
        file_config = load_config(args.config)
    except FileNotFoundError as exc:  # pragma: no cover - user error
        raise SystemExit(f"Configuration file not found: {args.config}") from exc
    except (OSError, ValueError) as exc:  # pragma: no cover - user error
        raise SystemExit(f"Failed to read configuration file: {exc}") from exc
    config = SyncConfig.from_mapping(file_config)

    overrides = {}
    if args.vault is not None:
        overrides["vault_root"] = args.vault
    if args.import_folder is not None:
        overrides["import_folder"] = args.import_folder.strip("/")
    if args.flat:
        overrides["flat_structure"] = True
    if args.access_token is not None:
        overrides["access_token"] = args.access_token
    if args.base_url is not None:
        overrides["base_url"] = args.base_url.rstrip("/")
    return dataclasses.replace(config, **overrides)


def main(argv: Iterable[str] | None = None) -> int:
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    config = _combine_config(args)
    if not config.access_token:
        raise SystemExit("No PocketBook Cloud access token configured (use --access-token or PB_ACCESS_TOKEN).")

    source = PocketbookCloudSource(config.access_token, base_url=config.base_url)
    store = FileSystemStore(config.vault_root.expanduser())

    try:
        report = sync(source, store, config)
    except SourceFetchError as exc:
        raise SystemExit(f"Could not fetch books: {exc}") from exc

    for title, reason in report.failures.items():
        print(f"Warning: {title} was not imported: {reason}")
    return 0 if report.ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
