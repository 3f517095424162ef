"""Per-sample phase tracking and switch error detection.

For every sample the tracker remembers which estimated homolog currently
corresponds to true homolog 0. The first informative heterozygous site
fixes that orientation; afterwards a site where the estimate matches the
opposite assignment is a switch error and flips the orientation.

Any estimated/true combination that is neither the current assignment
nor its exact inverse means the inputs disagree about the genotype
itself. That is reported as :class:`GenotypeMismatchError`, never
counted, since tolerating it would bias the error rate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

import numpy as np
from tqdm import tqdm

from .ancestry import LocalAncestryOracle
from .models import Alleles, AncestryClass, Orientation, SampleState, Site, SwitchEvent
from .sites import SiteReader
from .trio import NO_SKIPS, TrioFilter
from .validation import EST_MISSING, TRUE_MISSING, GenotypeMismatchError, check_sample_index

logger = logging.getLogger(__name__)

N_ANCESTRY_BUCKETS = len(AncestryClass)


@dataclass(frozen=True)
class SampleStep:
    """Outcome of one sample at one locus."""

    state: SampleState
    het_site: bool = False
    switch: bool = False
    missing_est: bool = False
    skipped: bool = False
    half_missing_truth: bool = False


def step_sample(
    state: SampleState,
    est: Alleles,
    true: Alleles,
    *,
    locus: int,
    sample: int,
    trio_ambiguous: bool = False,
) -> SampleStep:
    """Advance one sample's phase state across one locus.

    Pure function: returns the new state together with what should be
    counted. Raises GenotypeMismatchError on inconsistent input.
    """
    t0, t1 = true
    e0, e1 = est

    if t0 == TRUE_MISSING or t1 == TRUE_MISSING:
        return SampleStep(state, skipped=True, half_missing_truth=t0 != t1)

    def mismatch(msg: str) -> GenotypeMismatchError:
        return GenotypeMismatchError(msg, locus=locus, sample=sample, est=est, true=true)

    # phased output is never missing in the truth-set encoding
    if e0 == TRUE_MISSING or e1 == TRUE_MISSING:
        raise mismatch(f"estimated genotype contains the true-set missing marker {TRUE_MISSING!r}")

    if trio_ambiguous:
        return SampleStep(state, skipped=True)

    if e0 == EST_MISSING or e1 == EST_MISSING:
        if e0 != e1:
            raise mismatch("estimated genotype is missing for only one haplotype")
        return SampleStep(state, missing_est=True)

    if state.orientation is Orientation.UNSET:
        if t0 == t1:
            if e0 != e1 or e0 != t0:
                raise mismatch("homozygous true genotype differs from estimate")
            return SampleStep(state)
        # first het site: fixes orientation, is never an opportunity for a switch
        if e0 == t0:
            if e1 != t1:
                raise mismatch("estimated genotype differs from true genotype")
            return SampleStep(replace(state, orientation=Orientation.ALIGNED))
        if e0 != t1 or e1 != t0:
            raise mismatch("estimated genotype differs from true genotype")
        return SampleStep(replace(state, orientation=Orientation.INVERTED))

    h0 = int(state.orientation)
    h1 = 1 - h0
    het = t0 != t1

    if est[h0] == t0:
        if est[h1] != t1:
            raise mismatch("estimated genotype differs from true genotype")
        return SampleStep(state, het_site=het)

    if est[h0] != t1 or est[h1] != t0:
        raise mismatch("switch does not resolve to the inverted assignment")
    new_state = SampleState(
        orientation=state.orientation.flipped(),
        last_switch_locus=locus,
        n_switches=state.n_switches + 1,
    )
    return SampleStep(new_state, het_site=het, switch=True)


@dataclass
class SwitchCounts:
    """Global and per-sample counters, with ancestry-class buckets."""

    n_samples: int
    class_switches: np.ndarray
    class_het_sites: np.ndarray
    sample_switches: np.ndarray
    sample_het_sites: np.ndarray
    n_switch_errors: int = 0
    total_het_sites: int = 0
    n_missing_est: int = 0
    n_markers: int = 0

    @classmethod
    def empty(cls, n_samples: int) -> "SwitchCounts":
        return cls(
            n_samples=n_samples,
            class_switches=np.zeros(N_ANCESTRY_BUCKETS, dtype=np.int64),
            class_het_sites=np.zeros(N_ANCESTRY_BUCKETS, dtype=np.int64),
            sample_switches=np.zeros(n_samples, dtype=np.int64),
            sample_het_sites=np.zeros(n_samples, dtype=np.int64),
        )

    def record(self, sample: int, step: SampleStep, cls: AncestryClass) -> None:
        if step.missing_est:
            self.n_missing_est += 1
        if step.het_site:
            self.total_het_sites += 1
            self.class_het_sites[cls] += 1
            self.sample_het_sites[sample] += 1
        if step.switch:
            self.n_switch_errors += 1
            self.class_switches[cls] += 1
            self.sample_switches[sample] += 1

    def merge(self, other: "SwitchCounts") -> "SwitchCounts":
        """Combine counters from two runs over the same samples (e.g. two chromosomes)."""
        if other.n_samples != self.n_samples:
            raise ValueError("cannot merge counts over different sample counts")
        return SwitchCounts(
            n_samples=self.n_samples,
            n_switch_errors=self.n_switch_errors + other.n_switch_errors,
            total_het_sites=self.total_het_sites + other.total_het_sites,
            n_missing_est=self.n_missing_est + other.n_missing_est,
            n_markers=self.n_markers + other.n_markers,
            class_switches=self.class_switches + other.class_switches,
            class_het_sites=self.class_het_sites + other.class_het_sites,
            sample_switches=self.sample_switches + other.sample_switches,
            sample_het_sites=self.sample_het_sites + other.sample_het_sites,
        )


@dataclass(frozen=True)
class ComparisonResult:
    counts: SwitchCounts
    states: Tuple[SampleState, ...]
    final_events: Tuple[SwitchEvent, ...]

    @property
    def n_samples(self) -> int:
        return self.counts.n_samples


SwitchCallback = Callable[[SwitchEvent], None]


class PhaseTracker:
    """Drive :func:`step_sample` over all samples, one locus at a time."""

    def __init__(
        self,
        n_samples: int,
        *,
        trio_filter: Optional[TrioFilter] = None,
        on_switch: Optional[SwitchCallback] = None,
    ) -> None:
        if trio_filter is not None and trio_filter.n_samples != n_samples:
            raise ValueError("trio filter was built for a different sample count")
        self.n_samples = n_samples
        self.trio_filter = trio_filter
        self.on_switch = on_switch
        self.counts = SwitchCounts.empty(n_samples)
        self._states: List[SampleState] = [SampleState() for _ in range(n_samples)]
        self._warned_half_missing = False

    def state(self, sample: int) -> SampleState:
        return self._states[check_sample_index(sample, self.n_samples)]

    @property
    def states(self) -> Tuple[SampleState, ...]:
        return tuple(self._states)

    def process_site(self, site: Site, ancestry: Optional[Sequence[AncestryClass]] = None) -> None:
        if ancestry is not None and len(ancestry) != self.n_samples:
            raise ValueError("need one ancestry class per sample")
        self.counts.n_markers += 1
        skips = self.trio_filter.evaluate(site) if self.trio_filter is not None else NO_SKIPS

        for s in range(self.n_samples):
            if s in skips.partners:
                continue
            cls = ancestry[s] if ancestry is not None else AncestryClass.AMBIGUOUS
            prev = self._states[s]
            step = step_sample(
                prev,
                site.est_pair(s),
                site.true_pair(s),
                locus=site.locus,
                sample=s,
                trio_ambiguous=s in skips.evaluated,
            )
            if step.half_missing_truth and not self._warned_half_missing:
                logger.warning("Missing data for only one haplotype in truth set (locus %d, sample %d)", site.locus, s)
                self._warned_half_missing = True
            self.counts.record(s, step, cls)
            self._states[s] = step.state
            if step.switch and self.on_switch is not None:
                self.on_switch(
                    SwitchEvent(
                        sample=s,
                        switch_index=prev.n_switches,
                        locus=site.locus,
                        block_length=site.locus - prev.last_switch_locus,
                        ancestry_class=cls,
                    )
                )

    def final_events(self) -> List[SwitchEvent]:
        """The still-open block of every sample at end of input."""
        if self.counts.n_markers == 0:
            return []
        locus = self.counts.n_markers - 1
        return [
            SwitchEvent(
                sample=s,
                switch_index=st.n_switches,
                locus=locus,
                block_length=locus - st.last_switch_locus,
                final=True,
            )
            for s, st in enumerate(self._states)
        ]

    def finish(self) -> ComparisonResult:
        final = self.final_events()
        if self.on_switch is not None:
            for ev in final:
                self.on_switch(ev)
        return ComparisonResult(counts=self.counts, states=self.states, final_events=tuple(final))


def compare_sites(
    sites: Iterable[Site],
    n_samples: int,
    *,
    trio_filter: Optional[TrioFilter] = None,
    oracle: Optional[LocalAncestryOracle] = None,
    on_switch: Optional[SwitchCallback] = None,
    progress: bool = False,
) -> ComparisonResult:
    """Run the tracker over a locus stream, reading ancestry in lock-step."""
    if oracle is not None and oracle.n_samples != n_samples:
        raise ValueError(
            f"local ancestry covers {oracle.n_samples} samples but {n_samples} are compared"
        )
    tracker = PhaseTracker(n_samples, trio_filter=trio_filter, on_switch=on_switch)

    it: Iterable[Site] = sites
    if progress:
        it = tqdm(it, unit="locus", desc="Comparing phase")

    for site in it:
        ancestry = oracle.next_locus() if oracle is not None else None
        tracker.process_site(site, ancestry)

    result = tracker.finish()
    logger.info(
        "Compared %d loci: %d switch errors over %d het sites",
        result.counts.n_markers,
        result.counts.n_switch_errors,
        result.counts.total_het_sites,
    )
    return result


def compare_streams(
    reader: SiteReader,
    *,
    trio_filter: Optional[TrioFilter] = None,
    oracle: Optional[LocalAncestryOracle] = None,
    on_switch: Optional[SwitchCallback] = None,
    progress: bool = False,
) -> ComparisonResult:
    return compare_sites(
        reader,
        reader.n_samples,
        trio_filter=trio_filter,
        oracle=oracle,
        on_switch=on_switch,
        progress=progress,
    )
