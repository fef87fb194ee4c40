from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from . import display as regions
from .audio import SOUND_ALERT, AudioPlayer
from .config import DurationsConfig
from .display import Display, visible
from .events import (
    UNKNOWN,
    EarthquakeInfo,
    MalformedEventError,
    format_depth,
    format_magnitude,
    tsunami_label,
)
from .intensity import DEFAULT_LINE_WIDTH, DisplayPage, format_intensity_lines, paginate
from .stations import StationDirectory


log = logging.getLogger("quaketelop.sequencer")

Sleep = Callable[[float], Awaitable[None]]
PhaseListener = Callable[["Phase", Optional[int]], None]

END_BANNER = "以上、地震情報をお伝えしました"
MAIN_ALERT_TEXT = "地震情報"


class Phase(enum.Enum):
    IDLE = "idle"
    MAIN_ALERT = "main_alert"
    DETAILS = "details"
    INTENSITY_PAGE = "intensity_page"
    END_ALERT = "end_alert"
    COOLDOWN = "cooldown"


@dataclass(frozen=True)
class Presentation:
    details: str
    pages: List[DisplayPage]


def details_text(event: EarthquakeInfo) -> str:
    hypo = event.hypocenter
    return "\n".join(
        [
            f"震源地：{hypo.name or UNKNOWN}　　震源の深さ：{format_depth(hypo.depth_km)}",
            f"マグニチュード：{format_magnitude(event.magnitude)}　　津波の有無：{tsunami_label(event.domestic_tsunami)}",
        ]
    )


def play_safely(audio: AudioPlayer, sound_id: str) -> None:
    try:
        audio.play(sound_id)
    except Exception:
        log.warning("Could not play %s sound; continuing without audio", sound_id, exc_info=True)


class PresentationSequencer:
    """
    Drives the timed telop phases for one earthquake report:

        MAIN_ALERT -> DETAILS -> INTENSITY_PAGE(0..n-1) -> END_ALERT [-> COOLDOWN]

    The intensity phase is skipped when the report has no station readings.
    Each phase shows one region and hides it again before the next starts,
    including when a wait is interrupted by an exception or cancellation.
    """

    def __init__(
        self,
        display: Display,
        audio: AudioPlayer,
        stations: StationDirectory,
        *,
        durations: DurationsConfig = DurationsConfig(),
        line_width: int = DEFAULT_LINE_WIDTH,
        lines_per_page: int = 2,
        sleep: Sleep = asyncio.sleep,
        on_phase: Optional[PhaseListener] = None,
    ) -> None:
        self.display = display
        self.audio = audio
        self.stations = stations
        self.durations = durations
        self.line_width = int(line_width)
        self.lines_per_page = int(lines_per_page)
        self._sleep = sleep
        self._on_phase = on_phase
        self.phase = Phase.IDLE

    def _enter(self, phase: Phase, page: Optional[int] = None) -> None:
        self.phase = phase
        if self._on_phase is not None:
            self._on_phase(phase, page)

    def prepare(self, event: EarthquakeInfo) -> Presentation:
        if not isinstance(event, EarthquakeInfo):
            raise MalformedEventError(f"not an earthquake report: {type(event).__name__}")
        lines = format_intensity_lines(event.points, self.stations, self.line_width)
        return Presentation(details=details_text(event), pages=paginate(lines, self.lines_per_page))

    async def _hold(self, region_name: str, seconds: float, text: Optional[str] = None) -> None:
        region = self.display.region(region_name)
        if text is not None:
            region.set_text(text)
        with visible(region):
            await self._sleep(seconds)

    async def present(self, event: EarthquakeInfo) -> None:
        # Everything that can fail on bad data runs before anything is shown.
        p = self.prepare(event)
        d = self.durations

        try:
            self._enter(Phase.MAIN_ALERT)
            play_safely(self.audio, SOUND_ALERT)
            await self._hold(regions.MAIN_ALERT, d.main_alert, MAIN_ALERT_TEXT)

            self._enter(Phase.DETAILS)
            await self._hold(regions.EQ_DETAILS, d.details, p.details)

            total_lines = sum(len(page) for page in p.pages)
            shown = 0
            for i, page in enumerate(p.pages):
                self._enter(Phase.INTENSITY_PAGE, i)
                shown += len(page)
                log.debug("Intensity page %d/%d (%d lines left)", i + 1, len(p.pages), total_lines - shown)
                await self._hold(regions.INTENSITY_INFO, d.intensity_page, "\n".join(page))

            self._enter(Phase.END_ALERT)
            await self._hold(regions.END_ALERT, d.end_alert, END_BANNER)

            if d.cooldown > 0:
                self._enter(Phase.COOLDOWN)
                await self._sleep(d.cooldown)
        finally:
            self._enter(Phase.IDLE)
