"""Tool for mirroring a Cargo project's crates for offline use."""

__version__ = "0.1.0"

from .dependency_resolver import Dependency, get_all_dependencies
from .downloader import sync_dependencies
from .vendor import prepare_vendor_dirs
