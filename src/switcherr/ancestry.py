"""Per-sample local ancestry calls from HAPMIX-style posterior files.

Each sample has its own file with one record per locus::

    <pos> <P(homozygous POP1)> <P(heterozygous)> <P(homozygous POP2)>

A locus is assigned an ancestry class only when one posterior exceeds
``CONFIDENT_POSTERIOR``. A switch error is attributed to a class only if
that class was called at both the current and the previous locus.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from pathlib import Path
from typing import Dict, List, Optional, Sequence, TextIO

from .models import AncestryClass, AncestryRecord
from .utils import open_textmaybe_gzip
from .validation import InputFormatError, check_input_paths, check_posterior_sum, check_sample_index

logger = logging.getLogger(__name__)

CONFIDENT_POSTERIOR = 0.9
DEFAULT_MAX_OPEN_FILES = 512


def ancestry_path(prefix: str, sample: int, chrom: int) -> str:
    return f"{prefix}.{sample}.{chrom}"


def classify_posteriors(homozy_pop1: float, het: float, homozy_pop2: float) -> AncestryClass:
    if homozy_pop1 > CONFIDENT_POSTERIOR:
        return AncestryClass.HOMOZY_POP1
    if het > CONFIDENT_POSTERIOR:
        return AncestryClass.HET
    if homozy_pop2 > CONFIDENT_POSTERIOR:
        return AncestryClass.HOMOZY_POP2
    return AncestryClass.AMBIGUOUS


def parse_ancestry_record(
    line: str, *, path: Optional[str] = None, sample: Optional[int] = None
) -> AncestryRecord:
    """Parse and classify one ``pos p1 het p2`` record."""
    fields = line.split()
    if len(fields) != 4:
        raise InputFormatError("Malformed line in local ancestry file", path=path, sample=sample)
    try:
        pos = int(fields[0])
        p1, het, p2 = (float(x) for x in fields[1:4])
    except ValueError:
        raise InputFormatError("Malformed line in local ancestry file", path=path, sample=sample) from None
    check_posterior_sum(p1 + het + p2, path=path, sample=sample)
    return AncestryRecord(
        pos=pos,
        homozy_pop1=p1,
        het=het,
        homozy_pop2=p2,
        cls=classify_posteriors(p1, het, p2),
    )


class _HandlePool:
    """Keep at most ``max_open`` files open; evicted files resume from their saved offset."""

    def __init__(self, paths: Sequence[str], max_open: int) -> None:
        if max_open < 1:
            raise ValueError("max_open must be >= 1")
        self.paths = list(paths)
        self.max_open = max_open
        self._open: "OrderedDict[int, TextIO]" = OrderedDict()
        self._offsets: Dict[int, int] = {}
        self.reopens = 0

    def get(self, idx: int) -> TextIO:
        fh = self._open.get(idx)
        if fh is not None:
            self._open.move_to_end(idx)
            return fh
        if len(self._open) >= self.max_open:
            old_idx, old_fh = self._open.popitem(last=False)
            self._offsets[old_idx] = old_fh.tell()
            old_fh.close()
        fh = open_textmaybe_gzip(self.paths[idx], "rt")
        if idx in self._offsets:
            fh.seek(self._offsets.pop(idx))
            self.reopens += 1
        self._open[idx] = fh
        return fh

    def close(self) -> None:
        for fh in self._open.values():
            fh.close()
        self._open.clear()
        self._offsets.clear()


class LocalAncestryOracle:
    """Read one ancestry record per sample per locus and report stable classes."""

    def __init__(self, paths: Sequence[str | Path], *, max_open_files: int = DEFAULT_MAX_OPEN_FILES) -> None:
        self.paths = [str(p) for p in paths]
        check_input_paths(self.paths)
        if len(self.paths) > max_open_files:
            logger.warning(
                "%d local ancestry files exceed the open-file limit of %d; "
                "handles will be recycled, which is slower (raise --max-open-files or ulimit -n)",
                len(self.paths),
                max_open_files,
            )
        self._pool = _HandlePool(self.paths, max_open_files)
        self._prev: List[AncestryClass] = [AncestryClass.AMBIGUOUS] * len(self.paths)
        self.n_records = 0

    @classmethod
    def from_prefix(
        cls, prefix: str, n_samples: int, chrom: int, *, max_open_files: int = DEFAULT_MAX_OPEN_FILES
    ) -> "LocalAncestryOracle":
        return cls(
            [ancestry_path(prefix, s, chrom) for s in range(n_samples)],
            max_open_files=max_open_files,
        )

    @property
    def n_samples(self) -> int:
        return len(self.paths)

    def prev_class(self, sample: int) -> AncestryClass:
        return self._prev[check_sample_index(sample, self.n_samples)]

    def read_record(self, sample: int) -> AncestryRecord:
        check_sample_index(sample, self.n_samples)
        fh = self._pool.get(sample)
        while True:
            line = fh.readline()
            if not line:
                raise InputFormatError(
                    "Local ancestry file ended before the genotype files",
                    path=self.paths[sample],
                    sample=sample,
                )
            if line.strip():
                return parse_ancestry_record(line, path=self.paths[sample], sample=sample)

    def advance(self, sample: int) -> AncestryClass:
        """Consume this sample's next record; return the class if it matches the previous one."""
        rec = self.read_record(sample)
        cur = rec.cls if rec.cls is not None else AncestryClass.AMBIGUOUS
        prev = self._prev[sample]
        self._prev[sample] = cur
        if cur == prev and cur is not AncestryClass.AMBIGUOUS:
            return cur
        return AncestryClass.AMBIGUOUS

    def next_locus(self) -> List[AncestryClass]:
        """Advance every sample by one locus, in ascending sample order."""
        self.n_records += 1
        return [self.advance(s) for s in range(self.n_samples)]

    def close(self) -> None:
        if self._pool.reopens:
            logger.debug("Reopened local ancestry files %d times", self._pool.reopens)
        self._pool.close()

    def __enter__(self) -> "LocalAncestryOracle":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
