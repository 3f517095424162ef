from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

from .models import Alleles

logger = logging.getLogger(__name__)


TRUE_MISSING = "9"
EST_MISSING = "?"
TRUE_ALPHABET = frozenset("019")
EST_ALPHABET = frozenset("01?")

_POSTERIOR_SUM_TOL = 0.003


class InputFormatError(ValueError):
    """Raised when an input file does not follow its expected layout."""

    def __init__(
        self,
        message: str,
        *,
        path: Optional[str | Path] = None,
        locus: Optional[int] = None,
        sample: Optional[int] = None,
    ) -> None:
        where = []
        if path is not None:
            where.append(str(path))
        if locus is not None:
            where.append(f"locus {locus}")
        if sample is not None:
            where.append(f"sample {sample}")
        if where:
            message = f"{message} ({', '.join(where)})"
        super().__init__(message)
        self.path = None if path is None else str(path)
        self.locus = locus
        self.sample = sample


class GenotypeMismatchError(ValueError):
    """Raised when estimated and true alleles cannot be reconciled at a site."""

    def __init__(self, message: str, *, locus: int, sample: int, est: Alleles, true: Alleles) -> None:
        super().__init__(
            f"At locus {locus}, samp {sample}: {message}; "
            f"true: {true[0]}/{true[1]} est: {est[0]}/{est[1]}"
        )
        self.locus = locus
        self.sample = sample
        self.est = est
        self.true = true


def check_true_alleles(line: str, *, locus: int, path: Optional[str] = None) -> None:
    """Ensure every true allele is one of 0, 1 or the missing marker."""
    bad = set(line) - TRUE_ALPHABET
    if bad:
        first = min(line.index(c) for c in bad)
        raise InputFormatError(
            f"Invalid true allele {line[first]!r} (expected one of 0, 1, {TRUE_MISSING})",
            path=path,
            locus=locus,
            sample=first // 2,
        )


def check_posterior_sum(total: float, *, path: Optional[str] = None, sample: Optional[int] = None) -> None:
    if not (1.0 - _POSTERIOR_SUM_TOL <= total <= 1.0 + _POSTERIOR_SUM_TOL):
        raise InputFormatError(
            f"Local ancestry posteriors sum to {total:.4f}, expected 1",
            path=path,
            sample=sample,
        )


def check_input_paths(paths: Iterable[str | Path]) -> None:
    """Ensure all inputs exist; raise FileNotFoundError naming the first missing one."""
    for p in paths:
        if not Path(p).is_file():
            raise FileNotFoundError(f"Couldn't open {p}")


def check_sample_index(idx: int, n_samples: int, *, what: str = "sample index") -> int:
    if not 0 <= idx < n_samples:
        raise IndexError(f"{what} {idx} out of range [0, {n_samples})")
    return idx
