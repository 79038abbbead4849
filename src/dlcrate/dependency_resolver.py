#!/usr/bin/env python3
"""
Dependency resolver module for dlcrate.

This module resolves the dependencies of a Cargo project by running
``cargo metadata`` against its manifest and reading the resolved package
list from the JSON it prints.
"""

import json
import subprocess
import sys
import tomllib
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Set


class DependencyResolutionError(Exception):
    """Exception raised for errors in dependency resolution."""


@dataclass(frozen=True)
class Dependency:
    """A resolved crate and the version cargo picked for it."""

    name: str
    version: str

    def __str__(self) -> str:
        return f"{self.name}=={self.version}"


def read_project_name(manifest_path: str) -> str:
    """
    Read the root package name from a Cargo manifest.

    Args:
        manifest_path: Path to the Cargo.toml file

    Returns:
        The value of ``[package].name``

    Raises:
        DependencyResolutionError: If the manifest cannot be read or has no package name
    """
    try:
        with open(manifest_path, "rb") as f:
            manifest = tomllib.load(f)
    except FileNotFoundError:
        raise DependencyResolutionError(f"Manifest '{manifest_path}' not found")
    except tomllib.TOMLDecodeError as e:
        raise DependencyResolutionError(f"Failed to parse manifest '{manifest_path}': {e}")

    name = manifest.get("package", {}).get("name")
    if not isinstance(name, str) or not name:
        raise DependencyResolutionError(
            f"Manifest '{manifest_path}' has no [package] name, pass --project-name"
        )
    return name


def run_cargo_metadata(manifest_path: str, cargo: str = "cargo") -> Dict[str, Any]:
    """
    Run ``cargo metadata`` and return its decoded JSON output.

    Args:
        manifest_path: Path to the Cargo.toml file
        cargo: The cargo executable to invoke

    Returns:
        The metadata document printed by cargo

    Raises:
        DependencyResolutionError: If cargo fails or prints something other than a JSON object
    """
    cmd = [cargo, "metadata", "--format-version=1", "--manifest-path", manifest_path]

    try:
        result = subprocess.run(cmd, capture_output=True, text=True)
    except FileNotFoundError:
        raise DependencyResolutionError(f"Failed to run cargo metadata: '{cargo}' not found")

    if result.returncode != 0:
        raise DependencyResolutionError(
            f"Failed to run cargo metadata: {result.stderr.strip()}"
        )

    try:
        metadata = json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise DependencyResolutionError(f"Failed to parse metadata: {e}")

    if not isinstance(metadata, dict):
        raise DependencyResolutionError("Failed to parse metadata: expected a JSON object")
    return metadata


def parse_dependencies(
    metadata: Dict[str, Any],
    project_name: str,
    exclude: Optional[Set[str]] = None
) -> List[Dependency]:
    """
    Extract the dependency list from cargo metadata output.

    The root project is recognised by an exact match on its name.

    Args:
        metadata: Decoded output of ``cargo metadata``
        project_name: Name of the root project, which is left out
        exclude: Further crate names to leave out

    Returns:
        The remaining packages in the order cargo reported them

    Raises:
        DependencyResolutionError: If the packages array is missing or malformed
    """
    if exclude is None:
        exclude = set()

    packages = metadata.get("packages")
    if not isinstance(packages, list):
        raise DependencyResolutionError("Failed to get packages")

    dependencies = []
    for package in packages:
        if not isinstance(package, dict):
            raise DependencyResolutionError("Failed to deserialize package")

        name = package.get("name")
        version = package.get("version")
        if not isinstance(name, str) or not isinstance(version, str):
            raise DependencyResolutionError(f"Failed to deserialize package: {package.get('id', package)}")

        if name == project_name or name in exclude:
            continue
        dependencies.append(Dependency(name, version))

    return dependencies


def get_all_dependencies(
    manifest_path: str,
    project_name: Optional[str] = None,
    exclude: Optional[Set[str]] = None,
    cargo: str = "cargo",
    verbose: bool = False
) -> List[Dependency]:
    """
    Resolve every dependency of a Cargo project.

    Args:
        manifest_path: Path to the Cargo.toml file
        project_name: Root project name; read from the manifest when omitted
        exclude: Crate names to leave out
        cargo: The cargo executable to invoke
        verbose: Whether to print detailed output

    Returns:
        List of resolved dependencies, root project excluded
    """
    if project_name is None:
        project_name = read_project_name(manifest_path)

    if verbose:
        print(f"Resolving dependencies for {project_name} ({manifest_path})...")

    metadata = run_cargo_metadata(manifest_path, cargo)
    dependencies = parse_dependencies(metadata, project_name, exclude)

    if verbose:
        print(f"Resolved {len(dependencies)} dependencies")
    return dependencies


def print_dependency_list(dependencies: Iterable[Dependency]) -> None:
    """Print one ``name==version`` line per dependency."""
    for dependency in dependencies:
        print(f"  - {dependency}")


if __name__ == "__main__":
    # Simple CLI for testing
    manifest = sys.argv[1] if len(sys.argv) > 1 else "Cargo.toml"

    try:
        deps = get_all_dependencies(manifest, verbose=True)
    except DependencyResolutionError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"Dependencies of {manifest}:")
    print_dependency_list(deps)
