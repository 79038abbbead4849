import json
import subprocess
from pathlib import Path

import pytest

from dlcrate.dependency_resolver import (
    Dependency,
    DependencyResolutionError,
    get_all_dependencies,
    parse_dependencies,
    read_project_name,
    run_cargo_metadata,
)


def _metadata(*packages: tuple[str, str]) -> dict:
    return {
        "packages": [
            {"name": name, "version": version, "id": f"{name} {version}", "source": None}
            for name, version in packages
        ],
        "version": 1,
    }


def _fake_run(stdout: str = "", returncode: int = 0, stderr: str = ""):
    calls = []

    def run(cmd, **kwargs):
        calls.append(cmd)
        return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr=stderr)

    return run, calls


def test_parse_dependencies_excludes_root_project() -> None:
    metadata = _metadata(("index-test", "0.1.0"), ("serde", "1.0.0"), ("syn", "2.0.0"))

    deps = parse_dependencies(metadata, "index-test")

    assert deps == [Dependency("serde", "1.0.0"), Dependency("syn", "2.0.0")]


def test_parse_dependencies_root_match_is_exact() -> None:
    metadata = _metadata(("app", "0.1.0"), ("app-core", "1.0.0"), ("App", "1.0.0"))

    deps = parse_dependencies(metadata, "app")

    assert [dep.name for dep in deps] == ["app-core", "App"]


def test_parse_dependencies_honours_exclude() -> None:
    metadata = _metadata(("app", "0.1.0"), ("serde", "1.0.0"), ("libc", "0.2.0"))

    deps = parse_dependencies(metadata, "app", exclude={"libc"})

    assert deps == [Dependency("serde", "1.0.0")]


def test_parse_dependencies_requires_packages() -> None:
    with pytest.raises(DependencyResolutionError, match="packages"):
        parse_dependencies({"resolve": None}, "app")


def test_parse_dependencies_rejects_bad_entry() -> None:
    metadata = {"packages": [{"name": "serde"}]}

    with pytest.raises(DependencyResolutionError, match="deserialize"):
        parse_dependencies(metadata, "app")


def test_run_cargo_metadata_command(monkeypatch: pytest.MonkeyPatch) -> None:
    run, calls = _fake_run(stdout=json.dumps(_metadata(("serde", "1.0.0"))))
    monkeypatch.setattr(subprocess, "run", run)

    metadata = run_cargo_metadata("proj/Cargo.toml")

    assert calls == [["cargo", "metadata", "--format-version=1", "--manifest-path", "proj/Cargo.toml"]]
    assert metadata["packages"][0]["name"] == "serde"


def test_run_cargo_metadata_nonzero_exit(monkeypatch: pytest.MonkeyPatch) -> None:
    run, _ = _fake_run(returncode=101, stderr="error: manifest path does not exist")
    monkeypatch.setattr(subprocess, "run", run)

    with pytest.raises(DependencyResolutionError, match="manifest path does not exist"):
        run_cargo_metadata("missing/Cargo.toml")


def test_run_cargo_metadata_bad_json(monkeypatch: pytest.MonkeyPatch) -> None:
    run, _ = _fake_run(stdout="warning: something\n")
    monkeypatch.setattr(subprocess, "run", run)

    with pytest.raises(DependencyResolutionError, match="parse metadata"):
        run_cargo_metadata("Cargo.toml")


def test_run_cargo_metadata_missing_cargo(tmp_path: Path) -> None:
    with pytest.raises(DependencyResolutionError, match="not found"):
        run_cargo_metadata("Cargo.toml", cargo=str(tmp_path / "no-such-cargo"))


def test_read_project_name(tmp_path: Path) -> None:
    manifest = tmp_path / "Cargo.toml"
    manifest.write_text('[package]\nname = "index-test"\nversion = "0.1.0"\n', encoding="utf-8")

    assert read_project_name(str(manifest)) == "index-test"


def test_read_project_name_virtual_manifest(tmp_path: Path) -> None:
    manifest = tmp_path / "Cargo.toml"
    manifest.write_text('[workspace]\nmembers = ["a"]\n', encoding="utf-8")

    with pytest.raises(DependencyResolutionError, match="--project-name"):
        read_project_name(str(manifest))


def test_read_project_name_missing_manifest(tmp_path: Path) -> None:
    with pytest.raises(DependencyResolutionError, match="not found"):
        read_project_name(str(tmp_path / "Cargo.toml"))


def test_get_all_dependencies_reads_name_from_manifest(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    manifest = tmp_path / "Cargo.toml"
    manifest.write_text('[package]\nname = "index-test"\n', encoding="utf-8")
    run, _ = _fake_run(stdout=json.dumps(_metadata(("index-test", "0.1.0"), ("serde", "1.0.0"))))
    monkeypatch.setattr(subprocess, "run", run)

    deps = get_all_dependencies(str(manifest))

    assert deps == [Dependency("serde", "1.0.0")]


def test_dependency_str() -> None:
    assert str(Dependency("serde", "1.0.0")) == "serde==1.0.0"


@pytest.mark.parametrize("package", [{"name": ["x"], "version": "1"}, {"name": "x", "version": 1}])
def test_parse_dependencies_rejects_non_string_fields(package: dict) -> None:
    with pytest.raises(DependencyResolutionError, match="deserialize"):
        parse_dependencies({"packages": [package]}, "app", exclude={"libc"})
