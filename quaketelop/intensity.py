from __future__ import annotations

import unicodedata
from typing import Iterable, List, Mapping, Sequence, Tuple

from .events import INTENSITY_ORDER, RegionReading
from .stations import StationDirectory


DEFAULT_LINE_WIDTH = 64
NAME_SEPARATOR = "　"

DisplayPage = Tuple[str, ...]


def char_width(ch: str) -> int:
    if unicodedata.combining(ch):
        return 0
    return 2 if unicodedata.east_asian_width(ch) in ("W", "F") else 1


def display_width(text: str) -> int:
    """Width of ``text`` in terminal cells (wide and fullwidth chars count 2)."""
    return sum(char_width(ch) for ch in text)


def group_prefix(label: str) -> str:
    return f"震度{label}: "


def _split_to_width(text: str, width: int) -> List[str]:
    chunks: List[str] = []
    cur = ""
    cur_w = 0
    for ch in text:
        w = char_width(ch)
        if cur and cur_w + w > width:
            chunks.append(cur)
            cur, cur_w = "", 0
        cur += ch
        cur_w += w
    if cur:
        chunks.append(cur)
    return chunks


def group_readings(readings: Iterable[RegionReading], stations: StationDirectory | Mapping[str, str]) -> dict[str, List[str]]:
    groups: dict[str, List[str]] = {}
    lookup = stations.lookup if isinstance(stations, StationDirectory) else (lambda c: stations.get(c) or c)
    for r in readings:
        groups.setdefault(r.label, []).append(lookup(r.station_code))
    return groups


def wrap_group(label: str, names: Sequence[str], width: int = DEFAULT_LINE_WIDTH) -> List[str]:
    prefix = group_prefix(label)
    indent = " " * display_width(prefix)
    avail = width - display_width(prefix)
    if avail < 2:
        raise ValueError(f"line width {width} leaves no room after {prefix!r}")

    sep_w = display_width(NAME_SEPARATOR)
    bodies: List[str] = []
    cur = ""
    cur_w = 0

    for name in names:
        name_w = display_width(name)
        if not cur:
            if name_w <= avail:
                cur, cur_w = name, name_w
                continue
            pieces = _split_to_width(name, avail)
            bodies.extend(pieces[:-1])
            cur = pieces[-1]
            cur_w = display_width(cur)
            continue

        if cur_w + sep_w + name_w <= avail:
            cur += NAME_SEPARATOR + name
            cur_w += sep_w + name_w
            continue

        bodies.append(cur)
        if name_w <= avail:
            cur, cur_w = name, name_w
        else:
            pieces = _split_to_width(name, avail)
            bodies.extend(pieces[:-1])
            cur = pieces[-1]
            cur_w = display_width(cur)

    if cur:
        bodies.append(cur)

    return [(prefix if i == 0 else indent) + body for i, body in enumerate(bodies)]


def format_intensity_lines(
    readings: Iterable[RegionReading],
    stations: StationDirectory | Mapping[str, str],
    width: int = DEFAULT_LINE_WIDTH,
) -> List[str]:
    """
    Render per-station intensity readings as display lines.

    Groups are emitted from 震度7 down to 震度1 (unrecognized scales last),
    separated by one blank line. Station order inside a group follows the
    input order. No line is wider than ``width`` cells.
    """
    groups = group_readings(readings, stations)

    lines: List[str] = []
    for label in INTENSITY_ORDER:
        names = groups.get(label)
        if not names:
            continue
        if lines:
            lines.append("")
        lines.extend(wrap_group(label, names, width))
    return lines


def paginate(lines: Sequence[str], per_page: int = 2) -> List[DisplayPage]:
    if per_page < 1:
        raise ValueError("per_page must be >= 1")
    return [tuple(lines[i:i + per_page]) for i in range(0, len(lines), per_page)]
