import pytest

from switcherr.ancestry import LocalAncestryOracle
from switcherr.models import AncestryClass, Site
from switcherr.tracker import compare_sites
from switcherr.trio import (
    MODE_PAIRS,
    MODE_SUCCESSION,
    TrioFilter,
    TrioPairing,
    is_triple_het,
    load_trio_pairs,
)
from switcherr.validation import GenotypeMismatchError, InputFormatError

from helpers import make_sites


def test_is_triple_het():
    assert is_triple_het(("0", "1"), ("1", "0"))
    assert not is_triple_het(("0", "1"), ("0", "1"))  # same transmitted allele
    assert not is_triple_het(("0", "1"), ("1", "1"))  # partner homozygous
    assert not is_triple_het(("0", "0"), ("1", "0"))


def test_scenario_c_succession_skips_both_parents():
    trio = TrioFilter(MODE_SUCCESSION, 2)
    # the ambiguous locus carries estimates that would otherwise be fatal
    sites = make_sites(["0101", "1111", "0101"], ["0101", "0110", "0101"])
    res = compare_sites(sites, 2, trio_filter=trio)
    assert res.counts.total_het_sites == 2
    assert res.counts.n_switch_errors == 0

    with pytest.raises(GenotypeMismatchError):
        compare_sites(sites, 2)


def test_succession_partner_is_skipped_before_its_own_checks():
    trio = TrioFilter(MODE_SUCCESSION, 2)
    site = Site(locus=0, est="0109", true="0110")
    skips = trio.evaluate(site)
    assert skips.evaluated == {0}
    assert skips.partners == {1}
    compare_sites([site], 2, trio_filter=trio)


def test_succession_missing_truth_on_first_parent_disables_test():
    trio = TrioFilter(MODE_SUCCESSION, 2)
    assert not trio.evaluate(Site(locus=0, est="0010", true="9910"))


def test_succession_needs_even_sample_count():
    with pytest.raises(ValueError):
        TrioFilter(MODE_SUCCESSION, 3)


def test_pairs_mode_evaluates_each_side_independently():
    pairing = TrioPairing(4)
    pairing.add_pair(0, 2)
    pairing.add_pair(1, 3)
    trio = TrioFilter(MODE_PAIRS, 4, pairing)

    skips = trio.evaluate(Site(locus=0, est="01001011", true="01001011"))
    assert skips.evaluated == {0, 2}
    assert skips.partners == frozenset()

    # sample 0 fails its own missing-data check, sample 2 is still tested against it
    skips = trio.evaluate(Site(locus=0, est="01001011", true="91001011"))
    assert skips.evaluated == {2}


def _non_adjacent_pairs_filter():
    pairing = TrioPairing(4)
    pairing.add_pair(0, 2)
    pairing.add_pair(1, 3)
    return TrioFilter(MODE_PAIRS, 4, pairing)


def test_pairs_mode_skips_non_adjacent_parents_in_comparison():
    # locus 1: samples 0 and 2 are het with different transmitted alleles;
    # their estimates there would otherwise be fatal
    sites = make_sites(
        ["01000100", "11001100", "01000100"],
        ["01000100", "01001000", "01000100"],
    )
    res = compare_sites(sites, 4, trio_filter=_non_adjacent_pairs_filter())
    assert res.counts.total_het_sites == 2
    assert res.counts.n_switch_errors == 0
    assert res.counts.sample_het_sites.tolist() == [1, 0, 1, 0]

    with pytest.raises(GenotypeMismatchError):
        compare_sites(sites, 4)


def test_pairs_mode_parent_with_missing_truth_does_not_shield_its_partner():
    sites = make_sites(
        [
            "01000100",
            "11001100",  # sample 0 truth half missing; sample 2 tested against raw "91"
            "01000100",
            "00000100",  # sample 0 truth missing; sample 2 counted and switches
        ],
        ["01000100", "91001000", "01000100", "99001000"],
    )
    res = compare_sites(sites, 4, trio_filter=_non_adjacent_pairs_filter())
    c = res.counts
    assert c.total_het_sites == 3
    assert c.n_switch_errors == 1
    assert c.sample_switches.tolist() == [0, 0, 1, 0]
    assert c.sample_het_sites.tolist() == [1, 0, 2, 0]


def test_trio_skips_keep_ancestry_streams_in_step(write_ancestry):
    amb = "0.40 0.30 0.30"
    prefix = write_ancestry(
        [
            [f"1 {amb}", f"2 {amb}", f"3 {amb}"],
            ["1 0.95 0.03 0.02", "2 0.02 0.95 0.03", "3 0.02 0.95 0.03"],
        ]
    )
    sites = make_sites(["0101", "1111", "0101"], ["0101", "0110", "0101"])
    with LocalAncestryOracle.from_prefix(prefix, 2, 1) as oracle:
        res = compare_sites(sites, 2, trio_filter=TrioFilter(MODE_SUCCESSION, 2), oracle=oracle)
    het = res.counts.class_het_sites
    assert het[AncestryClass.HET] == 1
    assert het[AncestryClass.AMBIGUOUS] == 1


def test_load_trio_pairs(tmp_path):
    p = tmp_path / "pairs.txt"
    p.write_text("0 3\n1 2\n", encoding="utf-8")
    pairing = load_trio_pairs(p, 4)
    assert pairing.partner(3) == 0
    assert pairing.partner(2) == 1


@pytest.mark.parametrize(
    "content",
    [
        "0 1\n0 2\n",  # sample repeated
        "0 0\n1 2\n",  # self pair
        "0 9\n1 2\n",  # out of range
        "0 1\n",  # not every sample paired
        "0 1\n2\n",  # dangling index
        "0 a\n1 2\n",
    ],
)
def test_load_trio_pairs_rejects_bad_files(tmp_path, content):
    p = tmp_path / "pairs.txt"
    p.write_text(content, encoding="utf-8")
    with pytest.raises(InputFormatError):
        load_trio_pairs(p, 4)


def test_pairing_partner_is_bounds_checked():
    pairing = TrioPairing(2)
    with pytest.raises(IndexError):
        pairing.partner(5)
    with pytest.raises(KeyError):
        pairing.partner(0)
