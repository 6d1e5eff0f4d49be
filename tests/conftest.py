from __future__ import annotations

from pathlib import Path

import pytest

from tests._fixtures.clock import SteppingClock
from tests._fixtures.repo_builder import RepoBuilder


@pytest.fixture
def repo_builder(tmp_path: Path) -> RepoBuilder:
    """Throwaway repository rooted under the pytest tmp_path."""
    return RepoBuilder(tmp_path)


@pytest.fixture
def clock() -> SteppingClock:
    """Fresh deterministic clock; every call is one second later."""
    return SteppingClock()
