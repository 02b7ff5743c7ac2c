"""Command line entry point: generate or clean up the plugin database."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

import httpx

from . import plugins
from .ides import collect_ids
from .logsetup import setup_logging

log = logging.getLogger(__name__)

PLUGIN_INDICES = (
    "https://downloads.marketplace.jetbrains.com/files/pluginsXMLIds.json",
    "https://downloads.marketplace.jetbrains.com/files/jbPluginsXMLIds.json",
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nixjbplugins",
        description="Maintain the JetBrains plugin database for nix.",
    )
    parser.add_argument("-o", "--output-path", type=Path, required=True)
    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser(
        "generate",
        help="Generate the IDE JSON files and create/update all_plugins.json",
    )
    commands.add_parser(
        "cleanup",
        help="Remove all plugins from all_plugins.json that are no longer used "
        "in any IDE json file.",
    )
    return parser


async def generate(output_path: Path | str) -> None:
    """Index IDEs and plugins, resolve new plugin versions and save the database."""
    log.info("running generate.")
    async with httpx.AsyncClient() as client:
        ides, plugin_keys, jb_plugin_keys = await asyncio.gather(
            collect_ids(client),
            plugins.index(client, PLUGIN_INDICES[0]),
            plugins.index(client, PLUGIN_INDICES[1]),
        )
    log.info(
        "Indexing %d IDE versions, %d plugins and %d Jetbrains plugins.",
        len(ides),
        len(plugin_keys),
        len(jb_plugin_keys),
    )
    all_keys = plugin_keys + jb_plugin_keys

    log.info("Loading old database.")
    db = plugins.db_load(output_path)
    log.info("Beginning plugin download...")
    await plugins.db_update(db, ides, all_keys)
    log.info("Saving DB...")
    plugins.db_save(output_path, db)


def cleanup(output_path: Path | str) -> None:
    """Drop plugins that no IDE mapping uses any more and save the database."""
    log.info("Loading database and IDE mappings.")
    db = plugins.db_load_full(output_path)
    log.info("Running cleanup...")
    plugins.db_cleanup(db)
    log.info("Saving DB...")
    plugins.db_save(output_path, db)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()
    log.info("Starting...")
    try:
        if args.command == "generate":
            asyncio.run(generate(args.output_path))
        else:
            cleanup(args.output_path)
    except Exception as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())