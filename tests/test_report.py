import gzip
import json
import math

from switcherr.models import AncestryClass, SwitchEvent
from switcherr.report import (
    SwitchEventWriter,
    SwitchRateSummary,
    format_summary_lines,
    render_report,
    summary_to_jsonable,
)
from switcherr.tracker import compare_sites

from helpers import make_sites


def _summary(est, true, n_samples=1, **kw):
    return SwitchRateSummary.from_result(compare_sites(make_sites(est, true), n_samples), **kw)


def test_summary_lines_match_classic_output():
    s = _summary(["01", "10", "01"], ["01", "01", "10"])
    assert format_summary_lines(s) == ["switch 1 / 2 = 0.500000"]


def test_missing_line_only_when_estimates_missing():
    s = _summary(["01", "??", "01", "01"], ["01", "01", "01", "01"])
    lines = format_summary_lines(s)
    assert lines[1] == "missing 1 / 4 = 0.250000"


def test_zero_denominator_is_nan_not_an_error():
    s = _summary(["00", "11"], ["00", "11"], use_local_ancestry=True)
    assert math.isnan(s.switch_rate)
    lines = format_summary_lines(s)
    assert lines[0] == "switch 0 / 0 = nan"
    assert lines[1:] == [
        "Homozy_POP1:  0 / 0 = nan",
        "Heterozygous: 0 / 0 = nan",
        "Homozy_POP2:  0 / 0 = nan",
        "Ambiguous:    0 / 0 = nan",
    ]


def test_jsonable_summary_replaces_nan():
    s = _summary(["00"], ["00"], use_local_ancestry=True)
    out = summary_to_jsonable(s, run={"skip": 0})
    json.dumps(out)
    assert out["switch_rate"] is None
    assert out["local_ancestry"]["Ambiguous"]["rate"] is None
    assert out["run"] == {"skip": 0}


def test_event_writer(tmp_path):
    path = tmp_path / "switches.tsv.gz"
    w = SwitchEventWriter(path)
    w.write(SwitchEvent(sample=0, switch_index=0, locus=4, block_length=4, ancestry_class=AncestryClass.HET))
    w.write(SwitchEvent(sample=0, switch_index=1, locus=9, block_length=5, final=True))
    w.close()

    with gzip.open(path, "rt") as fh:
        rows = [line.rstrip("\n").split("\t") for line in fh]
    assert rows[0] == SwitchEventWriter.HEADER
    assert rows[1] == ["0", "0", "4", "4", "Heterozygous", "0"]
    assert rows[2][-1] == "1"


def test_render_report(tmp_path):
    s = _summary(["01", "10"], ["01", "01"], use_local_ancestry=True)
    path = render_report(
        outdir=tmp_path,
        version="test",
        summary=s,
        run={"est_phgeno": "est", "true_phgeno": "true", "skip": 0, "n_omitted": 0,
             "trio_mode": None, "switches_tsv_gz": "switches.tsv.gz"},
        plots={"sample_switches": "a.png", "block_lengths": "b.png", "ancestry_rates": "c.png"},
    )
    html = path.read_text(encoding="utf-8")
    assert "SwitchErr Report" in html
    assert "Homozy_POP1" in html
    assert "1.000000" in html
