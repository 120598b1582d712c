import pytest

from xdrtuner.scan import Scan, ScanNode, parse_scan


def test_parse_basic():
    scan = parse_scan("87500=10,87600=25,")
    assert [node.freq for node in scan] == [87500, 87600]
    assert [node.signal for node in scan] == [10.0, 25.0]
    assert scan.low == 10
    assert scan.high == 25


def test_parse_fractional_levels_bound_range():
    scan = parse_scan("87500=10.5,87600=20.25,")
    assert scan.low <= 10.5 <= scan.high
    assert scan.low <= 20.25 <= scan.high
    assert scan.high - scan.low < 12


def test_parse_limited_by_comma_count():
    scan = parse_scan("87500=10,87600=25")
    assert len(scan) == 1
    assert scan.signals[0] == ScanNode(87500, 10.0)


@pytest.mark.parametrize("msg", [None, "", "87500=10", ",", "abc,def,", ",,,"])
def test_parse_nothing_usable(msg):
    assert parse_scan(msg) is None


def test_parse_skips_tokens_without_value():
    scan = parse_scan("junk,87500=30,87600=40,")
    assert [node.freq for node in scan] == [87500, 87600]


def test_parse_non_numeric_parts_become_zero():
    scan = parse_scan("x=y,")
    assert scan.signals == [ScanNode(0, 0.0)]


def test_copy_is_independent():
    scan = parse_scan("87500=10,87600=25,")
    duplicate = scan.copy()
    assert duplicate == scan
    duplicate.signals.append(ScanNode(87700, 5.0))
    assert len(scan) == 2


def test_shifted_moves_frequencies():
    scan = parse_scan("87500=10,87600=25,")
    moved = scan.shifted(500)
    assert [node.freq for node in moved] == [87000, 87100]
    assert [node.signal for node in moved] == [node.signal for node in scan]
    assert [node.freq for node in scan] == [87500, 87600]
    assert (moved.low, moved.high) == (scan.low, scan.high)


def test_shift_round_trip():
    scan = parse_scan("100=1,200=2,300=3,")
    assert scan.shifted(75).shifted(-75) == scan


def test_empty_scan_len():
    assert len(Scan()) == 0