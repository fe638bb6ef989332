from __future__ import annotations

from pathlib import Path

import pytest

from tests._fixtures.pe_builder import ImageBuilder


@pytest.fixture
def images(tmp_path: Path) -> ImageBuilder:
    """Provide a builder that writes synthetic PE images under the pytest tmp_path."""
    return ImageBuilder(tmp_path)
