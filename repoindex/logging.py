"""Logging utilities for repoindex commands."""

from __future__ import annotations

import logging
from collections import Counter
from pathlib import Path
from typing import Dict, Iterable

from .models import SkippedItem

_LOGGER_NAME = "repoindex"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the repoindex hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Attach console output (and an optional file sink) to the repoindex logger."""
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Repeated CLI invocations in one process must not stack handlers.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(logging.Formatter("[repoindex] %(levelname)s %(message)s"))
    logger.addHandler(console)

    if log_file is not None:
        sink = logging.FileHandler(log_file, encoding="utf-8")
        sink.setLevel(level)
        sink.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        logger.addHandler(sink)

    return logger


def skip_reason_counts(skipped: Iterable[SkippedItem]) -> Dict[str, int]:
    """Group skipped items by reason category (the text before the first colon)."""
    counts: Counter[str] = Counter()
    for item in skipped:
        category = item.reason.split(":", 1)[0].strip() or "unknown"
        counts[category] += 1
    return dict(sorted(counts.items()))


def log_skip_summary(logger: logging.Logger, skipped: Iterable[SkippedItem], context: str) -> Dict[str, int]:
    """Emit one INFO line summarising why items were left out of ``context``."""
    counts = skip_reason_counts(skipped)
    if counts:
        total = sum(counts.values())
        details = ", ".join(f"{reason}: {count}" for reason, count in counts.items())
        logger.info("Skipped %d item(s) during %s (%s)", total, context, details)
    return counts


__all__ = ["configure_logging", "get_logger", "log_skip_summary", "skip_reason_counts"]
