"""Throwaway repositories for scanner, pack and orchestrator tests."""

from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Any, Mapping

import yaml

from repoindex.config import CONFIG_FILENAME, RepoIndexConfig
from repoindex.models import ScanResult
from repoindex.repo_scanner import RepoScanner


class RepoBuilder:
    """Writes files under ``tmp_path/<name>`` and scans the result on demand."""

    def __init__(self, tmp_path: Path, name: str = "repo") -> None:
        self.root = tmp_path / name
        self.root.mkdir()

    def write(self, files: Mapping[str, str]) -> None:
        """Write ``path -> text`` entries; content is dedented first."""
        for relative, content in files.items():
            target = self.root / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(textwrap.dedent(content).lstrip("\n"), encoding="utf-8")

    def write_bytes(self, relative: str, data: bytes) -> Path:
        target = self.root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        return target

    def write_config(self, settings: Mapping[str, Any]) -> Path:
        """Serialise ``settings`` as the repository's ``.repoindex.yml``."""
        target = self.root / CONFIG_FILENAME
        target.write_text(yaml.safe_dump(dict(settings), sort_keys=False), encoding="utf-8")
        return target

    def remove(self, relative: str) -> None:
        (self.root / relative).unlink()

    def scan(self, config: RepoIndexConfig | None = None) -> ScanResult:
        return RepoScanner(config).scan(self.root)

    def path(self) -> Path:
        return self.root


__all__ = ["RepoBuilder"]
