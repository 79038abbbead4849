#!/usr/bin/env python3
"""
Downloader module for dlcrate.

This module fetches each dependency's sparse index entry and ``.crate``
archive from crates.io and writes both into the vendor directories.
Dependencies are processed one at a time and the first failure aborts the
whole sync.
"""

import http.client
import sys
import urllib.error
import urllib.request
from typing import List, Optional, Tuple

from tqdm import tqdm

from .dependency_resolver import Dependency
from .sparse_index import (
    INDEX_URL,
    USER_AGENT,
    IndexCrate,
    SparseIndexError,
    make_index_request,
    parse_index_response,
    request_shard_path,
)
from .vendor import crate_file_path, ensure_parent_dir, index_file_path

DOWNLOAD_URL = "https://crates.io/api/v1/crates"
CHUNK_SIZE = 64 * 1024


class DownloadError(Exception):
    """Exception raised when a registry request fails."""


class SyncResult:
    """Which dependencies were mirrored and which the registry did not know."""

    def __init__(self):
        self.synced: List[Dependency] = []
        self.missing: List[Dependency] = []

    def __repr__(self) -> str:
        return f"SyncResult(synced={len(self.synced)}, missing={len(self.missing)})"


def build_opener() -> urllib.request.OpenerDirector:
    """Build the HTTP client shared by every request of a run."""
    opener = urllib.request.build_opener()
    opener.addheaders = [("User-Agent", USER_AGENT)]
    return opener


def fetch_index_entry(
    opener: urllib.request.OpenerDirector,
    name: str,
    index_url: str = INDEX_URL
) -> Tuple[str, Optional[IndexCrate]]:
    """
    Fetch and parse a crate's sparse index entry.

    Args:
        opener: The shared HTTP client
        name: The crate name
        index_url: Base URL of the sparse index

    Returns:
        Tuple of (shard path, parsed entry or None if the crate is unknown)

    Raises:
        DownloadError: If the index cannot be reached
        SparseIndexError: If the response cannot be parsed
    """
    request = make_index_request(name, index_url)
    shard = request_shard_path(request)

    try:
        with opener.open(request) as response:
            status = response.status
            body = response.read()
            encoding = response.headers.get("Content-Encoding")
    except urllib.error.HTTPError as e:
        # Error statuses still carry an answer for the index parser
        status = e.code
        body = e.read() if e.fp is not None else b""
        encoding = e.headers.get("Content-Encoding") if e.headers is not None else None
    except (urllib.error.URLError, http.client.HTTPException, OSError) as e:
        raise DownloadError(f"Failed fetching index entry for {name}: {e}")

    return shard, parse_index_response(name, status, body, encoding)


def download_crate(
    opener: urllib.request.OpenerDirector,
    dependency: Dependency,
    destination: str,
    download_url: str = DOWNLOAD_URL,
    progress: bool = False
) -> int:
    """
    Download a crate archive to a file.

    Args:
        opener: The shared HTTP client
        dependency: The crate and version to download
        destination: File to write; truncated if it exists
        download_url: Base URL of the registry download API
        progress: Whether to show a progress bar

    Returns:
        Number of bytes written

    Raises:
        DownloadError: If the archive cannot be downloaded
    """
    url = f"{download_url.rstrip('/')}/{dependency.name}/{dependency.version}/download"
    written = 0

    try:
        with opener.open(url) as response:
            size = int(response.headers.get("Content-Length") or 0) or None
            with open(destination, "wb") as crate_file, tqdm(
                total=size,
                unit="B",
                unit_scale=True,
                desc=dependency.name,
                disable=not progress,
            ) as pbar:
                for chunk in iter(lambda: response.read(CHUNK_SIZE), b""):
                    crate_file.write(chunk)
                    written += len(chunk)
                    pbar.update(len(chunk))
    except (urllib.error.URLError, http.client.HTTPException, OSError, ValueError) as e:
        # HTTPError is a URLError
        raise DownloadError(f"failed downloading crate {dependency.name}: {e}")

    return written


def write_index_file(crate: IndexCrate, destination: str) -> None:
    """Write one JSON line per version record, replacing any existing file."""
    with open(destination, "w", encoding="utf-8", newline="\n") as index_file:
        for line in crate.to_lines():
            index_file.write(line)
            index_file.write("\n")


def sync_dependency(
    opener: urllib.request.OpenerDirector,
    dependency: Dependency,
    index_dir: str,
    crates_dir: str,
    index_url: str = INDEX_URL,
    download_url: str = DOWNLOAD_URL,
    progress: bool = False,
    verbose: bool = False
) -> bool:
    """
    Mirror a single dependency.

    Args:
        opener: The shared HTTP client
        dependency: The crate and version to mirror
        index_dir: Root of the index mirror
        crates_dir: Root of the archive mirror
        index_url: Base URL of the sparse index
        download_url: Base URL of the registry download API
        progress: Whether to show a progress bar for the archive
        verbose: Whether to print detailed output

    Returns:
        True if the crate was written, False if the registry does not know it
    """
    if verbose:
        print(f"Syncing {dependency}...")

    shard, crate = fetch_index_entry(opener, dependency.name, index_url)
    if crate is None:
        print(f"no such crate {dependency.name}")
        return False

    index_path = index_file_path(index_dir, shard)
    crate_path = crate_file_path(crates_dir, shard, dependency)
    ensure_parent_dir(index_path)
    ensure_parent_dir(crate_path)

    size = download_crate(opener, dependency, crate_path, download_url, progress)
    write_index_file(crate, index_path)

    if verbose:
        print(f"  Wrote {crate_path} ({size} bytes)")
        print(f"  Wrote {index_path} ({len(crate.versions)} versions)")
    return True


def sync_dependencies(
    dependencies: List[Dependency],
    index_dir: str,
    crates_dir: str,
    opener: Optional[urllib.request.OpenerDirector] = None,
    index_url: str = INDEX_URL,
    download_url: str = DOWNLOAD_URL,
    progress: bool = False,
    verbose: bool = False
) -> SyncResult:
    """
    Mirror dependencies one after another.

    The first error propagates; files already written for earlier
    dependencies stay on disk.

    Args:
        dependencies: The dependencies to mirror
        index_dir: Root of the index mirror
        crates_dir: Root of the archive mirror
        opener: HTTP client to use; one is built if omitted
        index_url: Base URL of the sparse index
        download_url: Base URL of the registry download API
        progress: Whether to show progress bars
        verbose: Whether to print detailed output

    Returns:
        Which dependencies were synced and which were missing
    """
    if opener is None:
        opener = build_opener()

    result = SyncResult()
    for dependency in dependencies:
        if sync_dependency(
            opener,
            dependency,
            index_dir,
            crates_dir,
            index_url,
            download_url,
            progress,
            verbose
        ):
            result.synced.append(dependency)
        else:
            result.missing.append(dependency)

    return result


if __name__ == "__main__":
    # Simple CLI for testing
    if len(sys.argv) < 3:
        print("Usage: python downloader.py CRATE_NAME VERSION [INDEX_DIR] [CRATES_DIR]")
        sys.exit(1)

    dep = Dependency(sys.argv[1], sys.argv[2])
    index_root = sys.argv[3] if len(sys.argv) > 3 else "crates-index"
    crates_root = sys.argv[4] if len(sys.argv) > 4 else "crates"

    try:
        found = sync_dependency(build_opener(), dep, index_root, crates_root, verbose=True)
    except (DownloadError, SparseIndexError, OSError) as e:
        print(f"Failed to sync {dep}: {e}", file=sys.stderr)
        sys.exit(1)

    if not found:
        sys.exit(1)
    print(f"Successfully synced {dep}")
