"""Configuration loading for repoindex (.repoindex.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

CONFIG_FILENAME = ".repoindex.yml"
DEFAULT_OUTPUT_DIR = ".gpt_index"


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class ScannerConfig:
    """Per-file gates and signal hints for the scanner."""

    max_file_bytes: int = 512_000
    snippet_bytes: int = 32 * 1024
    include_hidden: bool = False
    tag_hints: List[str] = field(default_factory=list)


@dataclass
class ChunkerConfig:
    """Budgets for paste chunk packing."""

    token_cap: int = 15_000
    max_files_per_chunk: int = 120
    part_target_tokens: int = 3_000


@dataclass
class PackConfig:
    """Pack builder settings."""

    chunk_size_bytes: int = 16 * 1024
    strict: bool = False


@dataclass
class RepoIndexConfig:
    """Represents the settings defined in .repoindex.yml."""

    root: Path
    exclude_paths: List[str] = field(default_factory=list)
    output_dir: str = DEFAULT_OUTPUT_DIR
    scanner: ScannerConfig = field(default_factory=ScannerConfig)
    chunker: ChunkerConfig = field(default_factory=ChunkerConfig)
    pack: PackConfig = field(default_factory=PackConfig)


def load_config(config_path: Path) -> RepoIndexConfig:
    """Load configuration from disk, returning defaults when the file is absent."""
    config_file = _resolve_config_path(Path(config_path))
    root = config_file.parent.resolve()

    if not config_file.exists():
        return RepoIndexConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    scanner = ScannerConfig()
    scanner_data = _as_dict(data.get("scanner"))
    if scanner_data:
        scanner.max_file_bytes = _positive_int(
            scanner_data.get("max_file_bytes"), "scanner.max_file_bytes", scanner.max_file_bytes
        )
        scanner.snippet_bytes = _positive_int(
            scanner_data.get("snippet_bytes"), "scanner.snippet_bytes", scanner.snippet_bytes
        )
        include_hidden = _as_bool(scanner_data.get("include_hidden"))
        if include_hidden is not None:
            scanner.include_hidden = include_hidden
        scanner.tag_hints = [hint.lower() for hint in _as_str_list(scanner_data.get("tag_hints"))]

    chunker = ChunkerConfig()
    chunker_data = _as_dict(data.get("chunker"))
    if chunker_data:
        chunker.token_cap = _positive_int(
            chunker_data.get("token_cap"), "chunker.token_cap", chunker.token_cap
        )
        chunker.max_files_per_chunk = _positive_int(
            chunker_data.get("max_files_per_chunk"),
            "chunker.max_files_per_chunk",
            chunker.max_files_per_chunk,
        )
        chunker.part_target_tokens = _positive_int(
            chunker_data.get("part_target_tokens"),
            "chunker.part_target_tokens",
            chunker.part_target_tokens,
        )

    pack = PackConfig()
    pack_data = _as_dict(data.get("pack"))
    if pack_data:
        pack.chunk_size_bytes = _positive_int(
            pack_data.get("chunk_size_bytes"), "pack.chunk_size_bytes", pack.chunk_size_bytes
        )
        strict = _as_bool(pack_data.get("strict"))
        if strict is not None:
            pack.strict = strict

    output_dir = _as_str(data.get("output_dir")) or DEFAULT_OUTPUT_DIR
    output_path = Path(output_dir)
    if output_path.is_absolute() or ".." in output_path.parts:
        raise ConfigError("output_dir must be a relative path inside the repository")
    if not output_path.parts:
        raise ConfigError("output_dir must name a directory below the repository root, not the root itself")
    output_dir = output_path.as_posix()

    return RepoIndexConfig(
        root=root,
        exclude_paths=_as_str_list(data.get("exclude_paths")),
        output_dir=output_dir,
        scanner=scanner,
        chunker=chunker,
        pack=pack,
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Failed to read {path.name}: {exc}") from exc
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded if loaded is not None else {}


def _positive_int(value: Any, name: str, default: int) -> int:
    if value is None:
        return default
    parsed = _as_int(value)
    if parsed is None or parsed <= 0:
        raise ConfigError(f"{name} must be a positive integer, got {value!r}")
    return parsed


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "ChunkerConfig",
    "ConfigError",
    "PackConfig",
    "RepoIndexConfig",
    "ScannerConfig",
    "load_config",
]
