from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Union


CODE_EARTHQUAKE_INFO = 551
CODE_EARLY_WARNING = 554

UNKNOWN = "不明"

# P2P scale code -> 震度 label
INTENSITY_LABELS: dict[int, str] = {
    10: "1",
    20: "2",
    30: "3",
    40: "4",
    45: "5弱",
    50: "5強",
    55: "6弱",
    60: "6強",
    70: "7",
}

# Descending severity; unrecognized codes are listed last.
INTENSITY_ORDER: tuple[str, ...] = ("7", "6強", "6弱", "5強", "5弱", "4", "3", "2", "1", UNKNOWN)

TSUNAMI_LABELS: dict[str, str] = {
    "None": "なし",
    "Unknown": UNKNOWN,
    "Checking": "調査中",
    "NonEffective": "若干の海面変動",
    "Watch": "津波注意報",
    "Warning": "津波警報",
}
TSUNAMI_PRESENT = "有り"


class MalformedEventError(ValueError):
    """Raised when a message lacks the nested structure needed to present it."""


def intensity_label(scale: Any) -> str:
    try:
        return INTENSITY_LABELS.get(int(scale), UNKNOWN)
    except (TypeError, ValueError):
        return UNKNOWN


def tsunami_label(value: Optional[str]) -> str:
    if value is None:
        return UNKNOWN
    s = str(value).strip()
    if not s:
        return UNKNOWN
    return TSUNAMI_LABELS.get(s, TSUNAMI_PRESENT)


@dataclass(frozen=True, slots=True)
class RegionReading:
    station_code: str
    scale: Optional[int]

    @property
    def label(self) -> str:
        return intensity_label(self.scale)


@dataclass(frozen=True, slots=True)
class Hypocenter:
    name: Optional[str]
    depth_km: Optional[float]


@dataclass(frozen=True, slots=True)
class EarthquakeInfo:
    hypocenter: Hypocenter
    magnitude: Optional[float]
    domestic_tsunami: Optional[str]
    points: tuple[RegionReading, ...]


@dataclass(frozen=True, slots=True)
class EarlyWarning:
    hypocenter: Hypocenter
    magnitude: Optional[float]
    areas: tuple[str, ...]


RawEvent = Union[EarthquakeInfo, EarlyWarning]


def _opt_str(v: Any) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    return s or None


def _opt_float(v: Any) -> Optional[float]:
    if v is None or isinstance(v, bool):
        return None
    try:
        f = float(v)
    except (TypeError, ValueError):
        return None
    # P2P uses -1 for "not reported"
    if f < 0:
        return None
    return f


def _opt_int(v: Any) -> Optional[int]:
    if v is None or isinstance(v, bool):
        return None
    try:
        return int(v)
    except (TypeError, ValueError):
        return None


def _parse_hypocenter(data: dict[str, Any]) -> tuple[Hypocenter, Optional[float]]:
    eq = data.get("earthquake")
    if not isinstance(eq, dict):
        raise MalformedEventError("message has no earthquake object")
    hypo = eq.get("hypocenter")
    if not isinstance(hypo, dict):
        raise MalformedEventError("earthquake has no hypocenter object")
    return (
        Hypocenter(name=_opt_str(hypo.get("name")), depth_km=_opt_float(hypo.get("depth"))),
        _opt_float(eq.get("magnitude")),
    )


def parse_points(raw: Any) -> tuple[RegionReading, ...]:
    if not isinstance(raw, list):
        return ()
    out: list[RegionReading] = []
    for p in raw:
        if not isinstance(p, dict):
            continue
        addr = _opt_str(p.get("addr"))
        if addr is None:
            continue
        out.append(RegionReading(station_code=addr, scale=_opt_int(p.get("scale"))))
    return tuple(out)


def parse_earthquake_info(data: dict[str, Any]) -> EarthquakeInfo:
    hypocenter, magnitude = _parse_hypocenter(data)
    eq = data["earthquake"]
    return EarthquakeInfo(
        hypocenter=hypocenter,
        magnitude=magnitude,
        domestic_tsunami=_opt_str(eq.get("domesticTsunami")),
        points=parse_points(data.get("points")),
    )


def parse_early_warning(data: dict[str, Any]) -> EarlyWarning:
    areas_raw = data.get("areas")
    areas: list[str] = []
    if isinstance(areas_raw, list):
        for a in areas_raw:
            name = _opt_str(a.get("name")) if isinstance(a, dict) else None
            if name:
                areas.append(name)

    try:
        hypocenter, magnitude = _parse_hypocenter(data)
    except MalformedEventError:
        # warnings are shown even before the hypocenter is determined
        hypocenter, magnitude = Hypocenter(name=None, depth_km=None), None

    return EarlyWarning(hypocenter=hypocenter, magnitude=magnitude, areas=tuple(areas))


def format_magnitude(magnitude: Optional[float]) -> str:
    return f"M{magnitude:.1f}" if magnitude is not None else UNKNOWN


def format_depth(depth_km: Optional[float]) -> str:
    if depth_km is None:
        return UNKNOWN
    return f"{int(depth_km)}km" if float(depth_km).is_integer() else f"{depth_km}km"
