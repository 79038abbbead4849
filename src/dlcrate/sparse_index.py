#!/usr/bin/env python3
"""
Sparse index module for dlcrate.

This module knows how the crates.io sparse index lays out its files, builds
the HTTP request for a crate's index entry and parses the response back into
version records.
"""

import gzip
import json
import urllib.parse
import urllib.request
import zlib
from typing import Any, Dict, List, Optional

from . import __version__

INDEX_URL = "https://index.crates.io"
USER_AGENT = f"dlcrate/{__version__}"

# Statuses the registry uses for a crate it does not know about
NOT_FOUND_STATUSES = (404, 410, 451)


class SparseIndexError(Exception):
    """Exception raised when an index request or response cannot be handled."""


class IndexCrate:
    """All known versions of one crate, as published in the sparse index."""

    def __init__(self, name: str, versions: List[Dict[str, Any]]):
        self.name = name
        self.versions = versions

    def to_lines(self) -> List[str]:
        """Serialize each version record as one compact JSON document."""
        return [json.dumps(record, separators=(",", ":")) for record in self.versions]

    def __repr__(self) -> str:
        return f"IndexCrate({self.name!r}, {len(self.versions)} versions)"


def shard_path(name: str) -> str:
    """
    Get the path of a crate's index file relative to the index root.

    Args:
        name: The crate name

    Returns:
        Path such as ``se/rd/serde`` or ``3/s/syn``

    Raises:
        SparseIndexError: If the name is empty
    """
    if not name:
        raise SparseIndexError("Crate name must not be empty")

    name = name.lower()
    if len(name) <= 2:
        return f"{len(name)}/{name}"
    if len(name) == 3:
        return f"3/{name[0]}/{name}"
    return f"{name[0:2]}/{name[2:4]}/{name}"


def make_index_request(name: str, index_url: str = INDEX_URL) -> urllib.request.Request:
    """
    Build the request that fetches a crate's index entry.

    Args:
        name: The crate name
        index_url: Base URL of the sparse index

    Returns:
        A GET request for the crate's shard path
    """
    url = f"{index_url.rstrip('/')}/{shard_path(name)}"
    return urllib.request.Request(url, headers={
        "Accept": "text/plain",
        "Accept-Encoding": "gzip",
        "cargo-protocol": "version=1",
        "User-Agent": USER_AGENT,
    })


def request_shard_path(request: urllib.request.Request) -> str:
    """Get the shard path a request points at, without the leading slash."""
    return urllib.parse.urlsplit(request.full_url).path.lstrip("/")


def decode_body(body: bytes, content_encoding: Optional[str] = None) -> bytes:
    """
    Undo the transport compression of a response body.

    Raises:
        SparseIndexError: If the body is not valid for its declared encoding
    """
    if content_encoding and content_encoding.strip().lower() == "gzip":
        try:
            return gzip.decompress(body)
        except (OSError, EOFError, zlib.error) as e:
            raise SparseIndexError(f"Invalid gzip response body: {e}")
    return body


def parse_index_response(
    name: str,
    status: int,
    body: bytes,
    content_encoding: Optional[str] = None
) -> Optional[IndexCrate]:
    """
    Parse a sparse index response.

    Args:
        name: The crate name the request was made for
        status: HTTP status code of the response
        body: Raw response body
        content_encoding: Value of the Content-Encoding header, if any

    Returns:
        The crate's versions, or None if the registry does not know the crate

    Raises:
        SparseIndexError: On an unexpected status or a malformed body
    """
    if status in NOT_FOUND_STATUSES:
        return None
    if status != 200:
        raise SparseIndexError(f"Unexpected status {status} fetching index entry for {name}")

    try:
        text = decode_body(body, content_encoding).decode("utf-8")
    except UnicodeDecodeError as e:
        raise SparseIndexError(f"Index entry for {name} is not valid UTF-8: {e}")

    versions = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        line = line.strip()
        if not line:
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError as e:
            raise SparseIndexError(f"Invalid index line {lineno} for {name}: {e}")
        if not isinstance(record, dict):
            raise SparseIndexError(f"Invalid index line {lineno} for {name}: expected a JSON object")
        versions.append(record)

    if not versions:
        raise SparseIndexError(f"Index entry for {name} has no versions")
    return IndexCrate(name, versions)
