from __future__ import annotations

from typing import Sequence

import pytest


@pytest.fixture
def write_ancestry(tmp_path):
    """Write per-sample ancestry files under tmp_path and return their prefix."""

    def _write(per_sample: Sequence[Sequence[str]], chrom: int = 1) -> str:
        for s, lines in enumerate(per_sample):
            (tmp_path / f"hapmix.{s}.{chrom}").write_text("\n".join(lines) + "\n", encoding="utf-8")
        return str(tmp_path / "hapmix")

    return _write
