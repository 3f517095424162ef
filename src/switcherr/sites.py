"""Locus-synchronised reading of the estimated and true genotype streams.

Each line of either stream holds two allele characters per sample. The
estimated stream may carry extra leading samples (``skip``) and samples
that should not be compared (``omit``); both are removed here so that
downstream code only ever sees aligned ``2 * n_samples`` allele strings.
"""

from __future__ import annotations

import itertools
import logging
from pathlib import Path
from typing import AbstractSet, Iterator, List, Optional, TextIO

from .models import Site
from .utils import open_textmaybe_gzip
from .validation import TRUE_MISSING, EST_ALPHABET, InputFormatError, check_true_alleles

logger = logging.getLogger(__name__)

# The true-set missing marker is let through so the tracker can report it per sample.
_EST_READ_ALPHABET = EST_ALPHABET | {TRUE_MISSING}


def load_omit_file(path: str | Path) -> frozenset[int]:
    """Read whitespace-separated, non-negative sample indices to omit."""
    out = set()
    with open_textmaybe_gzip(path, "rt") as fh:
        for tok in fh.read().split():
            try:
                idx = int(tok)
            except ValueError:
                raise InputFormatError(f"Non-integer sample index {tok!r} in omit file", path=path) from None
            if idx < 0:
                raise InputFormatError(f"Negative sample index {idx} in omit file", path=path)
            out.add(idx)
    logger.info("Omitting %d sample(s) from the estimated file", len(out))
    return frozenset(out)


def _est_columns(n_samples: int, omit: AbstractSet[int]) -> List[int]:
    return list(itertools.islice((s for s in itertools.count() if s not in omit), n_samples))


def _est_widths(cols: List[int], omit: AbstractSet[int], skip: int) -> frozenset[int]:
    """Allowed estimated line lengths: up to the last compared sample, plus any omitted samples right after it."""
    end = cols[-1] + 1
    widths = {end}
    while end in omit:
        end += 1
        widths.add(end)
    return frozenset(2 * skip + 2 * w for w in widths)


class SiteReader:
    """Iterate over loci of two line-synchronised phgeno streams.

    Parameters
    ----------
    est, true:
        Open text streams positioned at the first locus.
    n_samples:
        Number of samples compared per locus.
    skip:
        Samples to drop from the start of every estimated line.
    omit:
        Sample indices (counted after ``skip``) to drop from the estimated
        stream. The true stream is never filtered.
    """

    def __init__(
        self,
        est: TextIO,
        true: TextIO,
        n_samples: int,
        *,
        skip: int = 0,
        omit: AbstractSet[int] = frozenset(),
        est_path: Optional[str] = None,
        true_path: Optional[str] = None,
    ) -> None:
        if n_samples <= 0:
            raise ValueError("n_samples must be positive")
        if skip < 0:
            raise ValueError("skip must be >= 0")
        self.est = est
        self.true = true
        self.n_samples = n_samples
        self.skip = skip
        self.omit = frozenset(omit)
        self.est_path = est_path
        self.true_path = true_path
        self._cols = _est_columns(n_samples, self.omit)
        self._est_widths = _est_widths(self._cols, self.omit, skip)
        self.n_markers = 0

    def _read_est(self, line: str, locus: int) -> str:
        if len(line) not in self._est_widths:
            expected = " or ".join(str(w) for w in sorted(self._est_widths))
            raise InputFormatError(
                f"Estimated line has {len(line)} allele characters, expected {expected}",
                path=self.est_path,
                locus=locus,
            )
        body = line[2 * self.skip :]
        est = "".join(body[2 * s : 2 * s + 2] for s in self._cols)
        bad = set(est) - _EST_READ_ALPHABET
        if bad:
            first = min(est.index(c) for c in bad)
            raise InputFormatError(
                f"Invalid estimated allele {est[first]!r}",
                path=self.est_path,
                locus=locus,
                sample=first // 2,
            )
        return est

    def _read_true(self, locus: int) -> str:
        raw = self.true.readline()
        if not raw:
            raise InputFormatError(
                "True file ended before the estimated file", path=self.true_path, locus=locus
            )
        line = raw.rstrip("\r\n")
        width = 2 * self.n_samples
        if len(line) != width:
            raise InputFormatError(
                f"True line has {len(line)} allele characters, expected {width}",
                path=self.true_path,
                locus=locus,
            )
        check_true_alleles(line, locus=locus, path=self.true_path)
        return line

    def __iter__(self) -> Iterator[Site]:
        for raw in self.est:
            locus = self.n_markers
            self.n_markers += 1
            est = self._read_est(raw.rstrip("\r\n"), locus)
            true = self._read_true(locus)
            yield Site(locus=locus, est=est, true=true)
