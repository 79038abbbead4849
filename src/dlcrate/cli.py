#!/usr/bin/env python3
"""Command-line interface for dlcrate."""

import argparse
import os
import sys
from datetime import datetime, timezone
from typing import List, Optional

from .dependency_resolver import (
    DependencyResolutionError,
    get_all_dependencies,
    print_dependency_list,
)
from .downloader import DownloadError, build_opener, sync_dependencies
from .sparse_index import SparseIndexError
from .vendor import prepare_vendor_dirs

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        prog="dlcrate",
        description="Mirror a Cargo project's crates and index entries for offline use",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Mirror the dependencies of the project in the current directory:
    dlcrate

  Mirror another project into custom directories:
    dlcrate --manifest-path ../app/Cargo.toml --index-dir mirror/index --crates-dir mirror/crates

  List the dependencies that would be mirrored:
    dlcrate --list-deps
        """
    )
    parser.add_argument("--manifest-path", default="Cargo.toml",
                        help="Cargo.toml of the project to mirror (default: Cargo.toml)")
    parser.add_argument("--project-name",
                        help="Name of the root project to leave out (default: read from the manifest)")
    parser.add_argument("--index-dir", default="crates-index",
                        help="Directory for the sparse index mirror (default: crates-index)")
    parser.add_argument("--crates-dir", default="crates",
                        help="Directory for the crate archives (default: crates)")
    parser.add_argument("--exclude", nargs="*", default=[],
                        help="Crates to leave out of the mirror")
    parser.add_argument("--cargo", default="cargo",
                        help="Cargo executable to run (default: cargo)")
    parser.add_argument("--list-deps", action="store_true",
                        help="Lists the resolved dependencies and then exits")
    parser.add_argument("--progress", action="store_true",
                        help="Show a progress bar for each crate download")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Enable verbose output")

    return parser


def print_current_time() -> None:
    print(f"Current time: {datetime.now(timezone.utc).strftime(TIME_FORMAT)}")


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    print_current_time()

    try:
        dependencies = get_all_dependencies(
            args.manifest_path,
            args.project_name,
            exclude=set(args.exclude),
            cargo=args.cargo,
            verbose=args.verbose
        )

        if args.list_deps:
            print(f"\nFound {len(dependencies)} crates to mirror:")
            print_dependency_list(dependencies)
            sys.exit(0)

        prepare_vendor_dirs(args.index_dir, args.crates_dir)

        result = sync_dependencies(
            dependencies,
            args.index_dir,
            args.crates_dir,
            opener=build_opener(),
            progress=args.progress,
            verbose=args.verbose
        )
    except (DependencyResolutionError, SparseIndexError, DownloadError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print("\nSync summary:")
    print(f"  Synced {len(result.synced)} crates")

    if result.missing:
        print(f"  Not found in the registry: {len(result.missing)} crates")
        for dependency in result.missing:
            print(f"    - {dependency}")

    print(f"Index written to: {os.path.abspath(args.index_dir)}")
    print(f"Crates written to: {os.path.abspath(args.crates_dir)}")
    print_current_time()


if __name__ == "__main__":
    main()
