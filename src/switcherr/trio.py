"""Triple-heterozygous site detection for trio parents.

When both parents of a trio are heterozygous and their transmitted
haplotypes (the first listed homolog of each) carry different alleles,
the child is heterozygous too and the pedigree cannot resolve phase.
Such sites are skipped rather than counted.

Two conventions identify the parents:

``succession``
    Parents are adjacent samples ``(2k, 2k+1)``. The test runs at the
    even sample only and, when it fires, skips both parents; the odd
    partner is skipped before any of its own checks.
``pairs``
    An explicit pairing table. Every sample is tested against its own
    partner and only that sample is skipped by its own test.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .models import Alleles, Site
from .utils import open_textmaybe_gzip
from .validation import TRUE_MISSING, InputFormatError, check_sample_index

logger = logging.getLogger(__name__)

MODE_SUCCESSION = "succession"
MODE_PAIRS = "pairs"


class TrioPairing:
    """Symmetric 1:1 parent pairing over sample indices."""

    def __init__(self, n_samples: int) -> None:
        self.n_samples = n_samples
        self._partner: List[int] = [-1] * n_samples
        self.n_pairs = 0

    def add_pair(self, a: int, b: int) -> None:
        check_sample_index(a, self.n_samples, what="parent index")
        check_sample_index(b, self.n_samples, what="parent index")
        if a == b:
            raise ValueError(f"Sample {a} cannot be paired with itself")
        for s in (a, b):
            if self._partner[s] != -1:
                raise ValueError(f"Sample {s} appears in more than one parent pair")
        self._partner[a] = b
        self._partner[b] = a
        self.n_pairs += 1

    def partner(self, sample: int) -> int:
        p = self._partner[check_sample_index(sample, self.n_samples)]
        if p < 0:
            raise KeyError(f"Sample {sample} has no trio partner")
        return p

    def is_complete(self) -> bool:
        return 2 * self.n_pairs == self.n_samples


def load_trio_pairs(path: str | Path, n_samples: int) -> TrioPairing:
    """Load ``parent spouse`` index pairs; every sample must be paired exactly once."""
    with open_textmaybe_gzip(path, "rt") as fh:
        toks = fh.read().split()
    if len(toks) % 2:
        raise InputFormatError("Trio pair file has an unpaired index", path=path)
    pairing = TrioPairing(n_samples)
    for i in range(0, len(toks), 2):
        try:
            a, b = int(toks[i]), int(toks[i + 1])
        except ValueError:
            raise InputFormatError(
                f"Non-integer entry in trio pair file: {toks[i]!r} {toks[i + 1]!r}", path=path
            ) from None
        try:
            pairing.add_pair(a, b)
        except (IndexError, ValueError) as e:
            raise InputFormatError(str(e), path=path) from None
    if not pairing.is_complete():
        raise InputFormatError(
            f"Trio pair file lists {pairing.n_pairs} pairs but there are {n_samples} samples "
            f"(expected {n_samples // 2} pairs covering every sample)",
            path=path,
        )
    logger.info("Loaded %d trio parent pairs", pairing.n_pairs)
    return pairing


def is_triple_het(sample: Alleles, partner: Alleles) -> bool:
    """Both parents heterozygous with differing transmitted alleles."""
    return sample[0] != sample[1] and partner[0] != partner[1] and sample[0] != partner[0]


@dataclass(frozen=True)
class TrioSkips:
    """Samples to skip at one locus.

    ``evaluated`` samples are skipped after their own missing-data checks;
    ``partners`` (succession mode only) are skipped before any check.
    """

    evaluated: frozenset = field(default_factory=frozenset)
    partners: frozenset = field(default_factory=frozenset)

    def __bool__(self) -> bool:
        return bool(self.evaluated or self.partners)


NO_SKIPS = TrioSkips()


class TrioFilter:
    def __init__(self, mode: str, n_samples: int, pairing: Optional[TrioPairing] = None) -> None:
        if mode == MODE_SUCCESSION:
            if n_samples % 2:
                raise ValueError(
                    f"Trio parents in succession need an even number of samples, got {n_samples}"
                )
        elif mode == MODE_PAIRS:
            if pairing is None:
                raise ValueError("pairs mode needs a TrioPairing")
            if pairing.n_samples != n_samples:
                raise ValueError("trio pairing was built for a different sample count")
        else:
            raise ValueError(f"Unknown trio mode: {mode}")
        self.mode = mode
        self.n_samples = n_samples
        self.pairing = pairing

    def _informative(self, true: Alleles) -> bool:
        return TRUE_MISSING not in true

    def evaluate(self, site: Site) -> TrioSkips:
        evaluated = set()
        partners = set()
        if self.mode == MODE_SUCCESSION:
            for s in range(0, self.n_samples, 2):
                own = site.true_pair(s)
                if self._informative(own) and is_triple_het(own, site.true_pair(s + 1)):
                    evaluated.add(s)
                    partners.add(s + 1)
        else:
            assert self.pairing is not None
            for s in range(self.n_samples):
                own = site.true_pair(s)
                if self._informative(own) and is_triple_het(own, site.true_pair(self.pairing.partner(s))):
                    evaluated.add(s)
        if not evaluated:
            return NO_SKIPS
        logger.debug("Locus %d: triple-het trio sites skipped for samples %s", site.locus, sorted(evaluated | partners))
        return TrioSkips(evaluated=frozenset(evaluated), partners=frozenset(partners))
