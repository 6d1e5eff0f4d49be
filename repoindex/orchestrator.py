"""Pipeline orchestration for init/reindex/sub/chunk/pack flows."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Callable, List, Optional

from .chunker import ChunkPacker
from .config import CONFIG_FILENAME, RepoIndexConfig, load_config
from .diff import DiffReport, SnapshotDiffer, write_diff_report
from .logging import get_logger, log_skip_summary
from .models import Record, SkippedItem
from .pack.builder import PackBuilder, write_pack
from .repo_scanner import RepoScanner
from .snapshot import archive_snapshot, read_snapshot, write_snapshot

SUB_INDEX_DIR = ".sub_index"
STAMP_FORMAT = "%Y%m%d_%H%M%S"


def project_slug(path: Path | str) -> str:
    """Filesystem-safe name for the project rooted at ``path``.

    ASCII letters, digits, ``-``, ``_`` and ``.`` are kept, spaces become
    ``_`` and anything else becomes ``-``. Falls back to ``"project"``.
    """
    resolved = Path(path).expanduser().resolve()
    name = resolved.name or resolved.parent.name
    chars: List[str] = []
    for char in name:
        if char.isascii() and (char.isalnum() or char in "-_."):
            chars.append(char)
        elif char == " ":
            chars.append("_")
        else:
            chars.append("-")
    slug = "".join(chars).strip("-_")
    return slug or "project"


@dataclass(frozen=True)
class OutputLayout:
    """Where every artifact for one project lives."""

    base: Path
    slug: str

    @classmethod
    def for_repo(cls, repo_path: Path, config: RepoIndexConfig) -> "OutputLayout":
        return cls(base=repo_path / config.output_dir, slug=project_slug(repo_path))

    @property
    def index_file(self) -> Path:
        return self.base / "indexes" / f"{self.slug}.jsonl"

    @property
    def history_full(self) -> Path:
        return self.base / "history" / "full"

    @property
    def history_diffs(self) -> Path:
        return self.base / "history" / "diffs"

    @property
    def chunks_dir(self) -> Path:
        return self.base / "chunks"

    @property
    def pack_file(self) -> Path:
        return self.base / "packs" / f"{self.slug}.pack.json"


@dataclass
class IndexOutcome:
    """Artifacts produced by an indexing run."""

    index_path: Path
    records: List[Record]
    skipped: List[SkippedItem] = field(default_factory=list)
    archived_path: Optional[Path] = None
    diff_path: Optional[Path] = None
    report: Optional[DiffReport] = None
    chunk_paths: List[Path] = field(default_factory=list)
    pack_path: Optional[Path] = None


class Orchestrator:
    """Coordinates scanning, snapshotting, diffing, chunking and packing."""

    def __init__(
        self,
        scanner: RepoScanner | None = None,
        differ: SnapshotDiffer | None = None,
        pack_builder: PackBuilder | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.scanner = scanner
        self.differ = differ or SnapshotDiffer()
        self.pack_builder = pack_builder
        self._clock = clock or (lambda: datetime.now(UTC))
        self.logger = get_logger("orchestrator")

    def run_init(self, path: str | Path) -> IndexOutcome:
        return self.run_index(path, reindex=False)

    def run_reindex(self, path: str | Path) -> IndexOutcome:
        return self.run_index(path, reindex=True)

    def run_index(self, path: str | Path, reindex: bool = False) -> IndexOutcome:
        """Scan ``path`` and write snapshot, diff report, paste chunks and pack."""
        repo_path = self._resolve_repo(path)
        config = self._load_config(repo_path)
        layout = OutputLayout.for_repo(repo_path, config)
        self.logger.info("Starting %s run for %s", "reindex" if reindex else "init", repo_path)

        scan = self._scanner_for(config).scan(repo_path)
        self.logger.debug("Scanner produced %d records (%d skipped)", len(scan.records), len(scan.skipped))

        stamp = self._stamp()
        previous: Optional[List[Record]] = None
        if reindex and layout.index_file.exists():
            previous = read_snapshot(layout.index_file).records
        elif reindex:
            self.logger.info("No previous snapshot at %s; indexing from scratch", layout.index_file)

        archived = archive_snapshot(layout.index_file, layout.history_full, stamp)
        write_snapshot(scan.records, layout.index_file)
        self.logger.info("Wrote %d records to %s", len(scan.records), layout.index_file)

        outcome = IndexOutcome(
            index_path=layout.index_file,
            records=scan.records,
            skipped=list(scan.skipped),
            archived_path=archived,
        )

        if previous is not None:
            report = self.differ.compare(previous, scan.records)
            diff_path = layout.history_diffs / f"{layout.slug}_{stamp}.json"
            write_diff_report(report, diff_path)
            self.logger.info(
                "Diff: %d added, %d removed, %d modified, %d renamed",
                len(report.added),
                len(report.removed),
                len(report.modified),
                len(report.renamed),
            )
            outcome.report = report
            outcome.diff_path = diff_path

        outcome.chunk_paths = self._packer_for(config).write(scan.records, layout.chunks_dir)
        outcome.pack_path, pack_skipped = self._write_pack(scan.records, repo_path, config, layout)
        outcome.skipped.extend(pack_skipped)
        log_skip_summary(self.logger, outcome.skipped, "reindex" if reindex else "init")
        return outcome

    def run_sub(self, path: str | Path) -> IndexOutcome:
        """Index a single subdirectory into its own ``.sub_index`` snapshot."""
        repo_path = self._resolve_repo(path)
        config = self._load_config(repo_path)
        slug = project_slug(repo_path)
        indexes_dir = repo_path / SUB_INDEX_DIR / "indexes"
        index_file = indexes_dir / f"{slug}.jsonl"
        self.logger.info("Starting sub-index run for %s", repo_path)

        scan = self._scanner_for(config).scan(repo_path)
        archived = archive_snapshot(index_file, indexes_dir / "history", self._stamp())
        write_snapshot(scan.records, index_file)
        log_skip_summary(self.logger, scan.skipped, "sub-index")
        return IndexOutcome(
            index_path=index_file,
            records=scan.records,
            skipped=list(scan.skipped),
            archived_path=archived,
        )

    def run_chunk(self, path: str | Path, token_cap: Optional[int] = None) -> List[Path]:
        """Re-render paste chunks from the stored snapshot."""
        repo_path = self._resolve_repo(path)
        config = self._load_config(repo_path)
        layout = OutputLayout.for_repo(repo_path, config)
        records = self._stored_records(layout)
        packer = self._packer_for(config, token_cap=token_cap)
        paths = packer.write(records, layout.chunks_dir)
        self.logger.info("Wrote %d paste chunks (cap %d tokens)", len(paths), packer.token_cap)
        return paths

    def run_pack(self, path: str | Path) -> Path:
        """Rebuild the pack from the stored snapshot and the files on disk."""
        repo_path = self._resolve_repo(path)
        config = self._load_config(repo_path)
        layout = OutputLayout.for_repo(repo_path, config)
        records = self._stored_records(layout)
        pack_path, _ = self._write_pack(records, repo_path, config, layout)
        return pack_path

    def _resolve_repo(self, path: str | Path) -> Path:
        repo_path = Path(path).expanduser().resolve()
        if not repo_path.exists():
            raise FileNotFoundError(f"Repository path not found: {path}")
        if not repo_path.is_dir():
            raise NotADirectoryError(f"Repository path is not a directory: {path}")
        return repo_path

    def _load_config(self, repo_path: Path) -> RepoIndexConfig:
        return load_config(repo_path / CONFIG_FILENAME)

    def _scanner_for(self, config: RepoIndexConfig) -> RepoScanner:
        return self.scanner or RepoScanner(config)

    def _packer_for(self, config: RepoIndexConfig, token_cap: Optional[int] = None) -> ChunkPacker:
        return ChunkPacker(
            token_cap=token_cap if token_cap is not None else config.chunker.token_cap,
            max_files_per_chunk=config.chunker.max_files_per_chunk,
            part_target_tokens=config.chunker.part_target_tokens,
            clock=self._clock,
        )

    def _write_pack(
        self,
        records: List[Record],
        repo_path: Path,
        config: RepoIndexConfig,
        layout: OutputLayout,
    ) -> tuple[Path, List[SkippedItem]]:
        builder = self.pack_builder or PackBuilder(
            chunk_size_bytes=config.pack.chunk_size_bytes,
            strict=config.pack.strict,
            clock=self._clock,
        )
        result = builder.build(records, repo_path)
        write_pack(result.pack, layout.pack_file)
        anchors = sum(len(item.anchors) for item in result.pack.files)
        self.logger.info(
            "Wrote pack %s: %d files, %d anchors", layout.pack_file, len(result.pack.files), anchors
        )
        return layout.pack_file, result.skipped

    def _stored_records(self, layout: OutputLayout) -> List[Record]:
        if not layout.index_file.exists():
            raise FileNotFoundError(
                f"Index not found at {layout.index_file}. Run `repoindex init` or `repoindex reindex` first."
            )
        return read_snapshot(layout.index_file).records

    def _stamp(self) -> str:
        return self._clock().strftime(STAMP_FORMAT)


__all__ = ["IndexOutcome", "Orchestrator", "OutputLayout", "project_slug"]
