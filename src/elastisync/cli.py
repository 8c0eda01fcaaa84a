"""
Elastisync CLI — Command-Line Interface
=======================================

Command-line interface for defining and refreshing a search index.

Usage:
    elastisync --config sync.yaml define --recreate
    elastisync --config sync.yaml refresh --store myapp.search:get_store
    elastisync --config sync.yaml reindex --store myapp.search:get_store
    elastisync --config sync.yaml search "quantum mechanics" --store myapp.search:get_store

`--store` names a zero-argument callable returning the application's
record store, as `module.path:callable`.
"""

import argparse
import importlib
import logging
import sys
import time
from typing import List, Optional

from .config import SyncConfig, load_config
from .core import SyncService
from .records import RecordStore


def get_hosts(args) -> Optional[List[str]]:
    """Extract hosts from args."""
    if args.hosts:
        return args.hosts.split(",")
    return None


def load_store(target: Optional[str]) -> Optional[RecordStore]:
    """Resolve `module.path:callable` and call it."""
    if not target:
        return None
    module_name, _, attr = target.partition(":")
    if not attr:
        raise SystemExit(f"--store must look like module.path:callable, got {target!r}")
    factory = getattr(importlib.import_module(module_name), attr)
    return factory()


def build_service(args) -> SyncService:
    """Build a SyncService from the config file and command-line overrides."""
    config = load_config(args.config) if args.config else SyncConfig()

    overrides = {}
    hosts = get_hosts(args)
    if hosts:
        overrides["hosts"] = hosts
    if args.api_key:
        overrides["api_key"] = args.api_key
    if args.index:
        overrides["index_name"] = args.index
    if overrides:
        config = config.model_copy(update=overrides)

    store = load_store(getattr(args, "store", None))
    # No logger: engine errors halt the command
    return SyncService.from_config(config, store=store)


def message(content: str) -> None:
    print(content, flush=True)


def cmd_define(args):
    """Create the index and push the type mappings."""
    service = build_service(args)
    message("Defining the mappings")
    service.define(recreate=args.recreate)
    service.index_manager.close()


def cmd_refresh(args):
    """Re-index every live record."""
    service = build_service(args)
    message("Refreshing the index")
    service.refresh(echo=message)
    service.index_manager.close()


def cmd_reindex(args):
    """Define the mappings, then refresh the index content."""
    service = build_service(args)

    message("Defining the mappings")
    service.define(recreate=args.recreate)

    message("Refreshing the index")
    service.refresh(echo=message)

    service.index_manager.close()


def cmd_search(args):
    """Search the index."""
    service = build_service(args)

    start = time.time()
    results = service.search(args.query, live=args.live).limit(args.limit)
    records = results.to_list()
    elapsed_ms = (time.time() - start) * 1000

    print(f"\nQuery: {args.query}")
    print(f"Results: {len(records)} of {results.total_items} (in {elapsed_ms:.1f}ms)\n")

    for record in records:
        print(f"[{record.type_name}] {record.id}")
        title = record.title[:70] + "..." if len(record.title) > 70 else record.title
        print(f"  {title}\n")

    service.index_manager.close()


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="elastisync",
        description="Elastisync — keep an Elasticsearch index in sync with records"
    )

    # Global options
    parser.add_argument("--config", help="YAML sync configuration", default=None)
    parser.add_argument(
        "--hosts",
        help="Elasticsearch hosts (comma-separated)",
        default=None
    )
    parser.add_argument(
        "--api-key",
        dest="api_key",
        help="Elasticsearch API key",
        default=None
    )
    parser.add_argument("--index", help="Index name (overrides config)", default=None)
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # define command
    define_parser = subparsers.add_parser("define", help="Create index and mappings")
    define_parser.add_argument("--recreate", action="store_true", help="Delete the index first")

    # refresh command
    refresh_parser = subparsers.add_parser("refresh", help="Re-index all records")
    refresh_parser.add_argument("--store", required=True, help="Record store factory (module:callable)")

    # reindex command
    reindex_parser = subparsers.add_parser("reindex", help="Define, then refresh")
    reindex_parser.add_argument("--recreate", action="store_true", help="Delete the index first")
    reindex_parser.add_argument("--store", required=True, help="Record store factory (module:callable)")

    # search command
    search_parser = subparsers.add_parser("search", help="Search the index")
    search_parser.add_argument("query", help="Search query")
    search_parser.add_argument("--store", required=True, help="Record store factory (module:callable)")
    search_parser.add_argument("--limit", type=int, default=20, help="Max results")
    search_parser.add_argument("--live", action="store_true", help="Published records only")

    # Parse and dispatch
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr
    )

    if args.command == "define":
        cmd_define(args)
    elif args.command == "refresh":
        cmd_refresh(args)
    elif args.command == "reindex":
        cmd_reindex(args)
    elif args.command == "search":
        cmd_search(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
