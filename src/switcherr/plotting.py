from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Sequence

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402

logger = logging.getLogger(__name__)


def plot_sample_switches(
    *,
    sample_switches: Sequence[int],
    out_png: str | Path,
    title: str = "Switch errors per sample",
) -> None:
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)

    plt.figure()
    plt.bar(range(len(sample_switches)), list(sample_switches))
    plt.xlabel("Sample index")
    plt.ylabel("Switch errors")
    plt.title(title)
    plt.tight_layout()
    plt.savefig(out_png, dpi=160)
    plt.close()


def plot_block_lengths(
    *,
    block_lengths: List[int],
    out_png: str | Path,
    title: str = "Switch-free block lengths",
    nbins: int = 30,
) -> None:
    """Histogram of distances (in loci) between consecutive switches of a sample.

    Includes the trailing block of every sample, so the plot is never empty
    for a non-empty run.
    """
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)

    plt.figure()
    if block_lengths:
        plt.hist(np.asarray(block_lengths), bins=nbins)
    plt.xlabel("Block length (loci)")
    plt.ylabel("Blocks")
    plt.title(title)
    plt.tight_layout()
    plt.savefig(out_png, dpi=160)
    plt.close()


def plot_ancestry_rates(
    *,
    labels: Sequence[str],
    rates: Sequence[float],
    out_png: str | Path,
    title: str = "Switch rate by local ancestry",
) -> None:
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)

    # nan (no het sites) is drawn as an empty bar
    values = np.nan_to_num(np.asarray(rates, dtype=np.float64), nan=0.0)

    plt.figure()
    plt.bar(list(labels), values)
    plt.ylabel("Switch errors / het sites")
    plt.title(title)
    plt.xticks(rotation=15, ha="right")
    plt.tight_layout()
    plt.savefig(out_png, dpi=160)
    plt.close()
