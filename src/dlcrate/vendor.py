#!/usr/bin/env python3
"""
Vendor directory helpers for dlcrate.

The mirror is rebuilt from scratch on every run, so the output roots are
removed up front and each crate's files are laid out the way the registry
lays them out.
"""

import os
import shutil
import sys

from .dependency_resolver import Dependency


def remove_dir_if_exists(path: str) -> bool:
    """
    Remove a directory tree, tolerating its absence.

    Failures are reported but never raised, so a run can continue with
    whatever could not be removed still in place.

    Args:
        path: Directory to remove

    Returns:
        True if the directory was deleted, False otherwise
    """
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        print(f"Directory not found: {path}")
        return False
    except OSError as e:
        print(f"Failed to delete directory: {e}", file=sys.stderr)
        return False

    print(f"Directory deleted successfully: {path}")
    return True


def prepare_vendor_dirs(index_dir: str, crates_dir: str) -> None:
    """Remove the index and crates mirror roots before a sync."""
    remove_dir_if_exists(index_dir)
    remove_dir_if_exists(crates_dir)


def index_file_path(index_dir: str, shard: str) -> str:
    """
    Get where a crate's index entry is written.

    Args:
        index_dir: Root of the index mirror
        shard: The crate's shard path, e.g. ``se/rd/serde``

    Returns:
        Path of the index file
    """
    return os.path.join(index_dir, shard)


def crate_file_path(crates_dir: str, shard: str, dependency: Dependency) -> str:
    """
    Get where a crate archive is written.

    Args:
        crates_dir: Root of the archive mirror
        shard: The crate's shard path
        dependency: The crate and version being mirrored

    Returns:
        Path of the form ``<crates_dir>/<shard>/<version>/<name>-<version>.crate``
    """
    filename = f"{dependency.name}-{dependency.version}.crate"
    return os.path.join(crates_dir, shard, dependency.version, filename)


def ensure_parent_dir(path: str) -> None:
    """
    Create the directory that will hold a file, including missing parents.

    Args:
        path: The file about to be written
    """
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
