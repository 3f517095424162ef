from __future__ import annotations

import random
from pathlib import Path
from typing import Dict, List

from .ancestry import ancestry_path
from .utils import ensure_outdir, write_json


def _ancestry_line(pos: int, cls: int) -> str:
    probs = [0.02, 0.02, 0.02]
    if cls < 0:
        probs = [0.4, 0.35, 0.25]
    else:
        probs[cls] = 0.96
    # keep the sum at exactly 1 after rounding
    probs[2] = 1.0 - probs[0] - probs[1]
    return f"{pos} {probs[0]:.4f} {probs[1]:.4f} {probs[2]:.4f}"


def make_toy_data(
    *,
    outdir: str | Path,
    n_samples: int = 4,
    n_sites: int = 200,
    switch_prob: float = 0.05,
    missing_prob: float = 0.0,
    het_prob: float = 0.4,
    seed: int = 7,
    with_ancestry: bool = False,
    chrom: int = 1,
) -> Dict[str, object]:
    """Create a small truth/estimate pair of phgeno files with planted switch errors.

    The estimate is the truth with homologs swapped after every planted
    switch, so the number of switch errors is known in advance. Switches are
    only planted at heterozygous sites after the first one of each sample.

    Returns
    -------
    dict
        Paths to the generated files and the planted switch count.
    """
    outdir_p = ensure_outdir(outdir)
    rng = random.Random(seed)

    est_lines: List[List[str]] = [[] for _ in range(n_sites)]
    true_lines: List[List[str]] = [[] for _ in range(n_sites)]
    planted = 0
    het_opportunities = 0
    n_missing = 0

    for _s in range(n_samples):
        inverted = rng.random() < 0.5
        seen_het = False
        for locus in range(n_sites):
            if rng.random() < het_prob:
                a = rng.choice("01")
                true = (a, "1" if a == "0" else "0")
            else:
                a = rng.choice("01")
                true = (a, a)

            if rng.random() < missing_prob:
                est = ("?", "?")
                n_missing += 1
            else:
                is_het = true[0] != true[1]
                if is_het:
                    if seen_het:
                        het_opportunities += 1
                        if rng.random() < switch_prob:
                            inverted = not inverted
                            planted += 1
                    seen_het = True
                est = (true[1], true[0]) if inverted else true

            true_lines[locus].extend(true)
            est_lines[locus].extend(est)

    est_path = outdir_p / "est.phgeno"
    true_path = outdir_p / "true.phgeno"
    est_path.write_text("".join("".join(x) + "\n" for x in est_lines), encoding="utf-8")
    true_path.write_text("".join("".join(x) + "\n" for x in true_lines), encoding="utf-8")

    summary: Dict[str, object] = {
        "est_phgeno": str(est_path),
        "true_phgeno": str(true_path),
        "n_samples": n_samples,
        "n_sites": n_sites,
        "planted_switches": planted,
        "het_opportunities": het_opportunities,
        "missing_estimates": n_missing,
        "outdir": str(outdir_p),
    }

    if with_ancestry:
        prefix = str(outdir_p / "hapmix")
        for s in range(n_samples):
            cls = rng.choice([0, 1, 2])
            lines = []
            for locus in range(n_sites):
                if rng.random() < 0.02:
                    cls = rng.choice([-1, 0, 1, 2])
                lines.append(_ancestry_line(1000 * (locus + 1), cls))
            Path(ancestry_path(prefix, s, chrom)).write_text("\n".join(lines) + "\n", encoding="utf-8")
        summary["local_anc_prefix"] = prefix
        summary["chrom"] = chrom

    write_json(outdir_p / "toy_summary.json", summary)
    return summary
