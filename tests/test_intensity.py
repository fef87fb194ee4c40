import pytest

from quaketelop.events import INTENSITY_ORDER, UNKNOWN, RegionReading
from quaketelop.intensity import (
    display_width,
    format_intensity_lines,
    group_prefix,
    paginate,
    wrap_group,
)
from quaketelop.stations import StationDirectory


def _readings(*pairs):
    return [RegionReading(station_code=c, scale=s) for c, s in pairs]


def _header_labels(lines):
    out = []
    for ln in lines:
        if ln.startswith("震度"):
            out.append(ln[len("震度"):ln.index(":")])
    return out


@pytest.mark.parametrize("text,expected", [
    ("", 0),
    ("abc", 3),
    ("千葉", 4),
    ("震度5強: ", 9),
    ("ＡＢ", 4),       # fullwidth latin
    ("ｱｲｳ", 3),        # halfwidth katakana
    ("　", 2),          # ideographic space
])
def test_display_width(text, expected):
    assert display_width(text) == expected


def test_scenario_groups_in_severity_order(stations):
    lines = format_intensity_lines(_readings(("A1", 50), ("A2", 40)), stations)
    assert lines == ["震度5強: Chiba", "", "震度4: Saitama"]

    pages = paginate(lines, 2)
    assert pages == [("震度5強: Chiba", ""), ("震度4: Saitama",)]


def test_labels_follow_descending_order_and_skip_empty():
    readings = _readings(("a", 10), ("b", 70), ("c", 45), ("d", 60), ("e", 30), ("f", 55), ("g", 50))
    lines = format_intensity_lines(readings, StationDirectory())
    labels = _header_labels(lines)
    assert labels == ["7", "6強", "6弱", "5強", "5弱", "3", "1"]
    assert "4" not in labels and "2" not in labels
    assert labels == [lb for lb in INTENSITY_ORDER if lb in labels]


def test_unknown_scale_kept_under_unknown_label_last():
    lines = format_intensity_lines(_readings(("x", 99), ("y", 10), ("z", None)), StationDirectory())
    assert _header_labels(lines) == ["1", UNKNOWN]
    assert lines[-1] == f"震度{UNKNOWN}: x　z"


def test_station_order_preserved_and_not_deduplicated():
    lines = format_intensity_lines(_readings(("B", 40), ("A", 40), ("B", 40)), StationDirectory())
    assert lines == ["震度4: B　A　B"]


def test_unresolved_codes_fall_back_to_raw_code():
    directory = StationDirectory({"111": "札幌市中央区"})
    lines = format_intensity_lines(_readings(("111", 30), ("999", 30)), directory)
    assert lines == ["震度3: 札幌市中央区　999"]


def test_empty_input_gives_no_lines():
    assert format_intensity_lines([], StationDirectory()) == []
    assert paginate([], 2) == []


def test_wrapping_respects_wide_character_width():
    names = [f"市町村{i:02d}" for i in range(30)]  # 3 wide + 2 narrow = 8 cells each
    width = 40
    lines = wrap_group("4", names, width)

    assert len(lines) > 1
    assert all(display_width(ln) <= width for ln in lines)
    assert lines[0].startswith(group_prefix("4"))
    indent = " " * display_width(group_prefix("4"))
    assert all(ln.startswith(indent) for ln in lines[1:])

    # every name appears exactly once, in order
    flattened = "　".join(ln.strip().removeprefix(group_prefix("4").strip()).strip() for ln in lines)
    assert flattened.split("　") == names


def test_greedy_packing_fills_line_before_wrapping():
    # prefix "震度1: " is 7 cells, leaving 13; "あいう"(6) + "　"(2) + "かき"(4) = 12 fits
    lines = wrap_group("1", ["あいう", "かき", "さ"], 20)
    assert lines == ["震度1: あいう　かき", "       さ"]


def test_overlong_name_is_split_so_no_line_exceeds_budget():
    long_name = "あ" * 40
    lines = format_intensity_lines(_readings(("L", 20)), StationDirectory({"L": long_name}), width=30)
    assert all(display_width(ln) <= 30 for ln in lines)
    assert "".join(ln.strip().split(": ", 1)[-1] for ln in lines) == long_name


def test_every_line_within_budget_for_mixed_input():
    names = {str(i): ("長い名前の市町村" * ((i % 4) + 1)) + str(i) for i in range(60)}
    scales = [10, 20, 30, 40, 45, 50, 55, 60, 70, 11]
    readings = _readings(*[(str(i), scales[i % len(scales)]) for i in range(60)])
    for width in (24, 32, 64, 80):
        lines = format_intensity_lines(readings, StationDirectory(names), width=width)
        assert lines
        assert max(display_width(ln) for ln in lines) <= width


def test_formatting_is_deterministic(stations):
    readings = _readings(("A1", 50), ("A2", 40), ("A3", 99))
    assert format_intensity_lines(readings, stations) == format_intensity_lines(readings, stations)


def test_groups_separated_by_single_blank_line():
    lines = format_intensity_lines(_readings(("a", 70), ("b", 40), ("c", 10)), StationDirectory())
    assert lines == ["震度7: a", "", "震度4: b", "", "震度1: c"]


def test_width_too_small_is_rejected():
    with pytest.raises(ValueError):
        wrap_group("5強", ["a"], 9)


def test_paginate_page_size():
    lines = [str(i) for i in range(5)]
    assert paginate(lines, 2) == [("0", "1"), ("2", "3"), ("4",)]
    assert paginate(lines, 3) == [("0", "1", "2"), ("3", "4")]
    with pytest.raises(ValueError):
        paginate(lines, 0)
