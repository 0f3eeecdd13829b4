from __future__ import annotations

from pathlib import Path

import pytest

from repometer.stores import RepositoryStore


@pytest.fixture
def store(tmp_path: Path) -> RepositoryStore:
    """Provide a file-backed repository store rooted at the pytest tmp_path."""
    return RepositoryStore(tmp_path / "store" / "repositories.json")
