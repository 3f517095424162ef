from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional, Tuple

Alleles = Tuple[str, str]


class Orientation(enum.IntEnum):
    """Which estimated homolog currently maps to true homolog 0."""

    UNSET = -1
    ALIGNED = 0
    INVERTED = 1

    def flipped(self) -> "Orientation":
        if self is Orientation.UNSET:
            raise ValueError("cannot flip an unset orientation")
        return Orientation.INVERTED if self is Orientation.ALIGNED else Orientation.ALIGNED


class AncestryClass(enum.IntEnum):
    """Local ancestry call; AMBIGUOUS doubles as the catch-all counter bucket."""

    HOMOZY_POP1 = 0
    HET = 1
    HOMOZY_POP2 = 2
    AMBIGUOUS = 3

    @property
    def label(self) -> str:
        return _ANCESTRY_LABELS[self]


_ANCESTRY_LABELS = {
    AncestryClass.HOMOZY_POP1: "Homozy_POP1",
    AncestryClass.HET: "Heterozygous",
    AncestryClass.HOMOZY_POP2: "Homozy_POP2",
    AncestryClass.AMBIGUOUS: "Ambiguous",
}


@dataclass(frozen=True)
class Site:
    """One locus worth of allele codes from both genotype streams.

    Attributes
    ----------
    locus:
        0-based index of the locus (line) in the streams.
    est:
        Estimated alleles, two per sample, after skip/omit filtering.
    true:
        True alleles, two per sample.
    """

    locus: int
    est: str
    true: str

    def est_pair(self, sample: int) -> Alleles:
        return self.est[2 * sample], self.est[2 * sample + 1]

    def true_pair(self, sample: int) -> Alleles:
        return self.true[2 * sample], self.true[2 * sample + 1]


@dataclass(frozen=True)
class SampleState:
    """Per-sample phase tracking state, replaced (never mutated) on each step."""

    orientation: Orientation = Orientation.UNSET
    last_switch_locus: int = 0
    n_switches: int = 0


@dataclass(frozen=True)
class SwitchEvent:
    """A switch error (or, with ``final=True``, the trailing open block) for one sample."""

    sample: int
    switch_index: int
    locus: int
    block_length: int
    ancestry_class: AncestryClass = AncestryClass.AMBIGUOUS
    final: bool = False

    def diagnostic_line(self) -> str:
        return f"{self.sample} {self.switch_index} {self.locus} {self.block_length}"


@dataclass(frozen=True)
class AncestryRecord:
    """One line of a per-sample local ancestry posterior file."""

    pos: int
    homozy_pop1: float
    het: float
    homozy_pop2: float
    cls: Optional[AncestryClass] = None
