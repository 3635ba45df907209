"""Command-line interface: ``cms-json-sync``.

Subcommands::

    cms-json-sync init
    cms-json-sync collections
    cms-json-sync export [COLLECTION] [-o FILE] [--limit N]
    cms-json-sync import COLLECTION FILE [--on-conflict STRATEGY] [--dry-run]

Results go to stdout, logs and prompts to stderr, so ``export`` can be
piped.  Any hard error is printed as a single line and exits with status 1.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from . import __version__
from .config import Config, load_layered_config
from .config_loader import ensure_config
from .core.async_utils import gather_all, run_sync
from .errors import SyncError
from .file_handler import read_file_async, with_json_suffix, write_file_async
from .logger import setup_logging
from .store import JsonFileStore
from .sync.engine import ExportEngine, ImportEngine
from .sync.models import ImportResultItem
from .sync.reporter import format_conflict_prompt, format_import_preview
from .sync.resolver import CONFLICT_STRATEGIES, ConflictDecision, create_resolver

logger = logging.getLogger(__name__)

_ANSWERS = {
    "u": ConflictDecision(update=True),
    "update": ConflictDecision(update=True),
    "s": ConflictDecision(update=False),
    "skip": ConflictDecision(update=False),
    "U": ConflictDecision(update=True, apply_to_all=True),
    "S": ConflictDecision(update=False, apply_to_all=True),
}


def prompt_conflict(
    item: ImportResultItem, position: int, total: int
) -> ConflictDecision:
    """Ask on the terminal whether to update or skip one conflict.

    Upper-case answers apply to this and every remaining conflict.

    Raises:
        EOFError: If input ends before an answer is given.
    """
    print(format_conflict_prompt(item, position, total), file=sys.stderr)
    while True:
        answer = input("[u]pdate, [s]kip, [U]pdate all, [S]kip all? ").strip()
        decision = _ANSWERS.get(answer)
        if decision is not None:
            return decision
        print("Please answer u, s, U or S.", file=sys.stderr)


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


async def cmd_init(store: JsonFileStore, config: Config, args) -> int:
    path = await run_sync(ensure_config)
    print(f"Config file: {path}")
    return 0


async def cmd_collections(store: JsonFileStore, config: Config, args) -> int:
    collections = await run_sync(store.list_collections)
    if not collections:
        print(f"No collections in {store.path}")
        return 0

    for collection in collections:
        fields, items = await gather_all(
            run_sync(collection.get_fields), run_sync(collection.get_items)
        )
        print(
            f"{collection.name}\t{collection.id}\t"
            f"{len(items)} items\t{len(fields)} fields"
        )
    return 0


async def cmd_export(store: JsonFileStore, config: Config, args) -> int:
    collection_ref = args.collection or config.collection
    if not collection_ref:
        raise ValueError(
            "No collection given. Pass COLLECTION or set store.default_collection."
        )

    engine = ExportEngine(
        store,
        collection_ref,
        indent=config.export_indent,
        draft_key=config.draft_key,
    )
    json_text = await engine.run(limit=args.limit)

    if not args.output:
        sys.stdout.write(json_text)
        return 0

    target = with_json_suffix(Path(args.output).expanduser().resolve())
    resolved, size = await write_file_async(str(target), json_text)
    print(f"Exported {collection_ref} to {resolved} ({size} bytes)", file=sys.stderr)
    return 0


async def cmd_import(store: JsonFileStore, config: Config, args) -> int:
    # prompts read stdin too, so it cannot also carry the document
    if (
        args.file == "-"
        and config.conflict_strategy == "interactive"
        and not args.dry_run
    ):
        raise ValueError(
            "Reading JSON from stdin needs a non-interactive strategy: "
            "pass --on-conflict update-all or --on-conflict skip-all."
        )
    if args.file == "-":
        json_text = sys.stdin.read()
    else:
        source = str(Path(args.file).expanduser().resolve())
        json_text, _encoding, _path = await read_file_async(source)

    engine = ImportEngine(store, args.collection)
    result = await engine.prepare(json_text)
    collection = await engine.collection()

    if args.dry_run:
        print(format_import_preview(result, collection.name))
        return 0

    resolver = create_resolver(config.conflict_strategy, prompt=prompt_conflict)
    try:
        result = resolver.resolve(result)
    except (EOFError, KeyboardInterrupt):
        print("\nImport abandoned. Nothing was written.", file=sys.stderr)
        return 1

    print(await engine.commit(result))
    return 0


_COMMANDS = {
    "init": cmd_init,
    "collections": cmd_collections,
    "export": cmd_export,
    "import": cmd_import,
}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cms-json-sync",
        description="Import and export typed CMS collections as flat JSON",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Export a collection to posts.json
  cms-json-sync export Posts -o posts

  # Check what an import would do
  cms-json-sync import Posts posts.json --dry-run

  # Import, overwriting every existing item with the same slug
  cms-json-sync import Posts posts.json --on-conflict update-all
        """,
    )
    parser.add_argument(
        "--store",
        help="Workspace JSON file (takes precedence over CMS_STORE_PATH and config files)",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument(
        "--version",
        action="version",
        version=f"cms-json-sync version {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser(
        "init", help="Write a starter config file unless one already exists"
    )
    subparsers.add_parser("collections", help="List the collections in the workspace")

    export = subparsers.add_parser("export", help="Export a collection as JSON")
    export.add_argument(
        "collection",
        nargs="?",
        help="Collection id or name (default: store.default_collection)",
    )
    export.add_argument(
        "-o", "--output", help="Output file; .json is appended if missing (default: stdout)"
    )
    export.add_argument(
        "--limit", type=int, help="Export only the first N items"
    )

    import_ = subparsers.add_parser("import", help="Import a JSON file into a collection")
    import_.add_argument("collection", help="Collection id or name")
    import_.add_argument("file", help="JSON file to import, or - for stdin")
    import_.add_argument(
        "--on-conflict",
        choices=CONFLICT_STRATEGIES,
        help="How to handle records whose slug already exists (default: interactive)",
    )
    import_.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be imported without writing",
    )
    return parser


async def async_main(args: argparse.Namespace) -> int:
    load_dotenv()

    overrides = {}
    if args.store:
        overrides["store_path"] = args.store
    if args.debug:
        overrides["debug"] = True
    if getattr(args, "on_conflict", None):
        overrides["conflict_strategy"] = args.on_conflict

    try:
        config, sources = load_layered_config(overrides)
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    setup_logging(
        mode="cli", debug=config.debug, log_file=args.log_file or config.log_file
    )
    logger.debug("Configuration loaded from: %s", ", ".join(sources))

    store = JsonFileStore(Path(config.store_path).expanduser())
    try:
        return await _COMMANDS[args.command](store, config, args)
    except (SyncError, ValueError, OSError) as e:
        logger.debug("%s failed", args.command, exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


def run() -> None:
    """Console script entry point."""
    args = build_parser().parse_args()
    try:
        sys.exit(asyncio.run(async_main(args)))
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    run()
