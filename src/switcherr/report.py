from __future__ import annotations

import datetime as _dt
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, TextIO

import numpy as np
from jinja2 import Template

from .models import AncestryClass, SwitchEvent
from .tracker import ComparisonResult
from .utils import json_float, open_textmaybe_gzip, safe_rate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SwitchRateSummary:
    """Final counts and rates; rates are nan when their denominator is zero."""

    n_samples: int
    n_markers: int
    n_switch_errors: int
    total_het_sites: int
    n_missing_est: int
    switch_rate: float
    missing_rate: float
    class_switches: np.ndarray
    class_het_sites: np.ndarray
    class_rates: np.ndarray
    sample_switches: np.ndarray
    sample_het_sites: np.ndarray
    sample_rates: np.ndarray
    use_local_ancestry: bool = False

    @classmethod
    def from_result(cls, result: ComparisonResult, *, use_local_ancestry: bool = False) -> "SwitchRateSummary":
        c = result.counts
        return cls(
            n_samples=c.n_samples,
            n_markers=c.n_markers,
            n_switch_errors=c.n_switch_errors,
            total_het_sites=c.total_het_sites,
            n_missing_est=c.n_missing_est,
            switch_rate=float(safe_rate(c.n_switch_errors, c.total_het_sites)),
            missing_rate=float(safe_rate(c.n_missing_est, c.n_samples * c.n_markers)),
            class_switches=c.class_switches.copy(),
            class_het_sites=c.class_het_sites.copy(),
            class_rates=safe_rate(c.class_switches, c.class_het_sites),
            sample_switches=c.sample_switches.copy(),
            sample_het_sites=c.sample_het_sites.copy(),
            sample_rates=safe_rate(c.sample_switches, c.sample_het_sites),
            use_local_ancestry=use_local_ancestry,
        )

    @property
    def missing_denominator(self) -> int:
        return self.n_samples * self.n_markers

    def class_rows(self) -> List[Dict[str, Any]]:
        return [
            {
                "label": k.label,
                "switches": int(self.class_switches[k]),
                "het_sites": int(self.class_het_sites[k]),
                "rate": float(self.class_rates[k]),
            }
            for k in AncestryClass
        ]


def format_summary_lines(summary: SwitchRateSummary) -> List[str]:
    lines = [
        f"switch {summary.n_switch_errors} / {summary.total_het_sites} = {summary.switch_rate:f}"
    ]
    if summary.n_missing_est > 0:
        lines.append(
            f"missing {summary.n_missing_est} / {summary.missing_denominator} = {summary.missing_rate:f}"
        )
    if summary.use_local_ancestry:
        for row in summary.class_rows():
            label = (row["label"] + ":").ljust(13)
            lines.append(f"{label} {row['switches']} / {row['het_sites']} = {row['rate']:f}")
    return lines


def summary_to_jsonable(summary: SwitchRateSummary, *, run: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "n_samples": summary.n_samples,
        "n_markers": summary.n_markers,
        "n_switch_errors": summary.n_switch_errors,
        "total_het_sites": summary.total_het_sites,
        "n_missing_est": summary.n_missing_est,
        "switch_rate": json_float(summary.switch_rate),
        "missing_rate": json_float(summary.missing_rate),
        "per_sample": {
            "switches": summary.sample_switches.tolist(),
            "het_sites": summary.sample_het_sites.tolist(),
        },
    }
    if summary.use_local_ancestry:
        out["local_ancestry"] = {
            row["label"]: {
                "switches": row["switches"],
                "het_sites": row["het_sites"],
                "rate": json_float(row["rate"]),
            }
            for row in summary.class_rows()
        }
    if run is not None:
        out["run"] = run
    return out


class SwitchEventWriter:
    """Stream switch events to a TSV(.gz) file."""

    HEADER = ["sample", "switch_index", "locus", "block_length", "ancestry_class", "final"]

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._fh: TextIO = open_textmaybe_gzip(self.path, "wt")
        self._fh.write("\t".join(self.HEADER) + "\n")
        self.n_written = 0

    def write(self, ev: SwitchEvent) -> None:
        self._fh.write(
            f"{ev.sample}\t{ev.switch_index}\t{ev.locus}\t{ev.block_length}\t"
            f"{ev.ancestry_class.label}\t{int(ev.final)}\n"
        )
        self.n_written += 1

    def close(self) -> None:
        self._fh.close()


def block_lengths(events: Iterable[SwitchEvent]) -> List[int]:
    return [ev.block_length for ev in events]


_REPORT_TEMPLATE = Template(
    """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>SwitchErr Report</title>
  <style>
    body { font-family: Arial, Helvetica, sans-serif; margin: 24px; }
    code, pre { background: #f6f8fa; padding: 2px 4px; border-radius: 4px; }
    h1, h2, h3 { margin-top: 1.2em; }
    table { border-collapse: collapse; margin-top: 0.6em; }
    th, td { border: 1px solid #ddd; padding: 8px; }
    th { background: #f2f2f2; text-align: left; }
    .grid { display: grid; grid-template-columns: 1fr 1fr; gap: 16px; }
    .card { border: 1px solid #ddd; border-radius: 8px; padding: 12px; }
    .small { color: #666; font-size: 0.9em; }
    img { max-width: 100%; height: auto; border: 1px solid #eee; border-radius: 6px; }
  </style>
</head>
<body>

<h1>SwitchErr Report</h1>
<p class="small">Generated: {{ generated_at }}</p>

<h2>Run summary</h2>
<div class="grid">
  <div class="card">
    <h3>Inputs</h3>
    <table>
      <tr><th>Estimated phase</th><td><code>{{ run.est_phgeno }}</code></td></tr>
      <tr><th>True phase</th><td><code>{{ run.true_phgeno }}</code></td></tr>
      <tr><th>Samples</th><td>{{ summary.n_samples }}</td></tr>
      <tr><th>Loci</th><td>{{ summary.n_markers }}</td></tr>
    </table>
  </div>
  <div class="card">
    <h3>Options</h3>
    <table>
      <tr><th>Skipped samples</th><td>{{ run.skip }}</td></tr>
      <tr><th>Omitted samples</th><td>{{ run.n_omitted }}</td></tr>
      <tr><th>Trio mode</th><td>{{ run.trio_mode or "off" }}</td></tr>
      <tr><th>Local ancestry</th><td>{{ "on" if summary.use_local_ancestry else "off" }}</td></tr>
    </table>
  </div>
</div>

<h2>Switch errors</h2>
<table>
  <tr><th>Switch errors</th><td>{{ summary.n_switch_errors }}</td></tr>
  <tr><th>Heterozygous sites</th><td>{{ summary.total_het_sites }}</td></tr>
  <tr><th>Switch rate</th><td>{{ "%.6f"|format(summary.switch_rate) }}</td></tr>
  <tr><th>Missing estimates</th><td>{{ summary.n_missing_est }} / {{ summary.missing_denominator }}</td></tr>
  <tr><th>Missing rate</th><td>{{ "%.6f"|format(summary.missing_rate) }}</td></tr>
</table>

{% if summary.use_local_ancestry %}
<h2>By local ancestry</h2>
<table>
  <tr><th>Class</th><th>Switches</th><th>Het sites</th><th>Rate</th></tr>
  {% for row in class_rows %}
  <tr><td>{{ row.label }}</td><td>{{ row.switches }}</td><td>{{ row.het_sites }}</td><td>{{ "%.6f"|format(row.rate) }}</td></tr>
  {% endfor %}
</table>
{% endif %}

<h2>Plots</h2>
<div class="grid">
  <div class="card">
    <h3>Switch errors per sample</h3>
    <img src="{{ plots.sample_switches }}" alt="switch errors per sample">
  </div>
  <div class="card">
    <h3>Switch-free block lengths</h3>
    <img src="{{ plots.block_lengths }}" alt="block length histogram">
  </div>
</div>
{% if plots.ancestry_rates %}
<div class="grid" style="margin-top:16px;">
  <div class="card">
    <h3>Switch rate by ancestry class</h3>
    <img src="{{ plots.ancestry_rates }}" alt="switch rate by ancestry">
  </div>
</div>
{% endif %}

<h2>Outputs</h2>
<ul>
  <li><code>summary.json</code> (machine-readable summary)</li>
  <li><code>{{ run.switches_tsv_gz }}</code> (one row per switch and per final block)</li>
</ul>

<h2>Interpretation notes</h2>
<ul>
  <li>The first heterozygous site of each sample fixes the orientation and is not counted.</li>
  <li>Sites with missing truth, missing estimates or triple-heterozygous trio parents are skipped.</li>
  <li>A rate shown as <code>nan</code> has no heterozygous sites in its denominator.</li>
</ul>

<hr>
<p class="small">SwitchErr {{ version }}</p>
</body>
</html>"""
)


def render_report(
    *,
    outdir: str | Path,
    version: str,
    summary: SwitchRateSummary,
    run: Dict[str, Any],
    plots: Dict[str, str],
) -> Path:
    outdir = Path(outdir)
    outdir.mkdir(parents=True, exist_ok=True)

    html = _REPORT_TEMPLATE.render(
        generated_at=_dt.datetime.now().isoformat(timespec="seconds"),
        version=version,
        summary=summary,
        class_rows=summary.class_rows(),
        run=run,
        plots=plots,
    )

    out_path = outdir / "report.html"
    out_path.write_text(html, encoding="utf-8")
    return out_path
