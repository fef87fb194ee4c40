from __future__ import annotations

import contextlib
import datetime as dt
import json
import logging
import os
import time
from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterator, Optional, Protocol


log = logging.getLogger("quaketelop.display")

MAIN_ALERT = "main_alert"
EQ_DETAILS = "eq_details"
INTENSITY_INFO = "intensity_info"
END_ALERT = "end_alert"
EEW_ALERT = "eew_alert"

REGION_NAMES = (MAIN_ALERT, EQ_DETAILS, INTENSITY_INFO, END_ALERT, EEW_ALERT)


class DisplayRegion(Protocol):
    def show(self) -> None: ...

    def hide(self) -> None: ...

    def set_text(self, text: str) -> None: ...


class Display(Protocol):
    def region(self, name: str) -> DisplayRegion: ...


@contextlib.contextmanager
def visible(region: DisplayRegion) -> Iterator[DisplayRegion]:
    """Show ``region`` for the duration of the block; it is hidden on every exit path."""
    region.show()
    try:
        yield region
    finally:
        region.hide()


def atomic_write_json(path: str, payload: Dict[str, Any]) -> None:
    """
    Writes JSON atomically: write temp file, fsync, rename over target.
    The overlay page polling this file never sees a half-written board.
    """
    d = os.path.dirname(path)
    if d:
        os.makedirs(d, exist_ok=True)

    tmp = f"{path}.tmp.{os.getpid()}.{int(time.time()*1000)}"
    data = json.dumps(payload, ensure_ascii=False, separators=(",", ":"), sort_keys=True)

    with open(tmp, "w", encoding="utf-8") as f:
        f.write(data)
        f.write("\n")
        f.flush()
        os.fsync(f.fileno())

    os.replace(tmp, path)


@dataclass
class RegionState:
    visible: bool = False
    text: str = ""


class KioskRegion:
    def __init__(self, board: "KioskDisplay", name: str) -> None:
        self._board = board
        self.name = name
        self.state = RegionState()

    def show(self) -> None:
        self.state.visible = True
        log.info("[%s] show: %s", self.name, self.state.text.replace("\n", " / ") or "-")
        self._board.changed()

    def hide(self) -> None:
        self.state.visible = False
        log.debug("[%s] hide", self.name)
        self._board.changed()

    def set_text(self, text: str) -> None:
        self.state.text = text
        self._board.changed()


class KioskDisplay:
    """
    The five telop regions of the kiosk.

    Every change is logged; when ``state_path`` is set the whole board is also
    mirrored to a JSON file that the browser overlay polls.
    """

    def __init__(self, state_path: Optional[str] = None) -> None:
        self.state_path = state_path
        self._regions = {name: KioskRegion(self, name) for name in REGION_NAMES}

    def region(self, name: str) -> KioskRegion:
        return self._regions[name]

    def snapshot(self) -> Dict[str, Any]:
        return {
            "updatedAt": dt.datetime.now(dt.timezone.utc).replace(microsecond=0).isoformat(),
            "regions": {name: asdict(r.state) for name, r in self._regions.items()},
        }

    def changed(self) -> None:
        if not self.state_path:
            return
        try:
            atomic_write_json(self.state_path, self.snapshot())
        except OSError:
            log.exception("Display state write failed: %s", self.state_path)
