import pytest

from switcherr.sites import load_omit_file
from switcherr.validation import InputFormatError

from helpers import make_reader


def test_reads_aligned_sites():
    reader = make_reader("0110\n1100\n", "0110\n1199\n", 2)
    sites = list(reader)
    assert [s.locus for s in sites] == [0, 1]
    assert sites[0].est_pair(1) == ("1", "0")
    assert sites[1].true_pair(1) == ("9", "9")
    assert reader.n_markers == 2


def test_skip_and_omit_apply_to_estimated_stream_only():
    # skipped sample "00", then samples 0="01", 1="11" (omitted), 2="10"
    reader = make_reader("00011110\n", "0110\n", 2, skip=1, omit={1})
    (site,) = list(reader)
    assert site.est == "0110"
    assert site.true == "0110"


def test_crlf_line_endings_are_accepted():
    (site,) = list(make_reader("0110\r\n", "0110\r\n", 2))
    assert site.est == "0110"
    assert site.true == "0110"


@pytest.mark.parametrize(
    "est,true",
    [
        ("0110\n", "011001\n"),  # true file has a third sample
        ("011001\n", "0110\n"),  # estimated file has a third sample
        ("0110xx\n", "0110\n"),
    ],
)
def test_overlong_lines_are_fatal(est, true):
    with pytest.raises(InputFormatError):
        list(make_reader(est, true, 2))


def test_omitted_samples_after_the_last_compared_one_may_be_present():
    (site,) = list(make_reader("011011\n", "0110\n", 2, omit={2}))
    assert site.est == "0110"
    (site,) = list(make_reader("0110\n", "0110\n", 2, omit={2}))
    assert site.est == "0110"
    with pytest.raises(InputFormatError):
        list(make_reader("01101100\n", "0110\n", 2, omit={2}))


def test_short_estimated_line_is_fatal():
    with pytest.raises(InputFormatError) as ei:
        list(make_reader("011\n", "0110\n", 2, est_path="est.phgeno"))
    assert ei.value.locus == 0
    assert "est.phgeno" in str(ei.value)


def test_short_true_line_is_fatal():
    with pytest.raises(InputFormatError):
        list(make_reader("0110\n", "01\n", 2))


def test_invalid_true_allele_is_fatal():
    with pytest.raises(InputFormatError) as ei:
        list(make_reader("0110\n", "01?0\n", 2))
    assert ei.value.sample == 1


def test_invalid_estimated_allele_is_fatal():
    with pytest.raises(InputFormatError):
        list(make_reader("01x0\n", "0110\n", 2))


def test_true_stream_ending_early_is_fatal():
    reader = make_reader("0110\n0110\n", "0110\n", 2)
    with pytest.raises(InputFormatError, match="ended before"):
        list(reader)


def test_end_of_estimated_stream_stops_iteration():
    reader = make_reader("0110\n", "0110\n0110\n0110\n", 2)
    assert len(list(reader)) == 1


def test_load_omit_file(tmp_path):
    p = tmp_path / "omit.txt"
    p.write_text("3\n0 7\n", encoding="utf-8")
    assert load_omit_file(p) == frozenset({0, 3, 7})

    p.write_text("1\n-2\n", encoding="utf-8")
    with pytest.raises(InputFormatError):
        load_omit_file(p)
