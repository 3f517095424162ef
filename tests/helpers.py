from __future__ import annotations

import io
from typing import List, Sequence

from switcherr.models import Site
from switcherr.sites import SiteReader


def make_sites(est_lines: Sequence[str], true_lines: Sequence[str]) -> List[Site]:
    return [Site(locus=i, est=e, true=t) for i, (e, t) in enumerate(zip(est_lines, true_lines))]


def make_reader(est: str, true: str, n_samples: int, **kw) -> SiteReader:
    return SiteReader(io.StringIO(est), io.StringIO(true), n_samples, **kw)
