from __future__ import annotations

import asyncio
import logging
from typing import Optional

from . import display as regions
from .audio import SOUND_EEW, AudioPlayer
from .display import Display, visible
from .events import UNKNOWN, EarlyWarning, format_depth, format_magnitude
from .sequencer import Sleep, play_safely


log = logging.getLogger("quaketelop.eew")


def warning_text(ev: EarlyWarning) -> str:
    areas = "、".join(ev.areas) if ev.areas else UNKNOWN
    return "\n".join(
        [
            f"震源地: {ev.hypocenter.name or UNKNOWN}",
            f"マグニチュード: {format_magnitude(ev.magnitude)}",
            f"深さ: {format_depth(ev.hypocenter.depth_km)}",
            f"警報対象地域: {areas}",
        ]
    )


class EarlyWarningInterrupt:
    """
    Immediate overlay for 緊急地震速報, independent of the presentation queue.

    A newer warning replaces one that is still on screen: the old overlay task
    is cancelled (which hides the region) and the new one gets a full window.
    """

    def __init__(
        self,
        display: Display,
        audio: AudioPlayer,
        *,
        duration: float = 10.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.display = display
        self.audio = audio
        self.duration = float(duration)
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self.shown = 0

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def trigger(self, ev: EarlyWarning) -> asyncio.Task:
        if self.active:
            log.warning("New early warning pre-empts the one on screen")
            self._task.cancel()
        self._task = asyncio.get_running_loop().create_task(self._show(ev), name="eew_overlay")
        return self._task

    async def _show(self, ev: EarlyWarning) -> None:
        region = self.display.region(regions.EEW_ALERT)
        play_safely(self.audio, SOUND_EEW)
        region.set_text(warning_text(ev))
        self.shown += 1
        log.warning(
            "EEW: epicenter=%s magnitude=%s areas=%d",
            ev.hypocenter.name or UNKNOWN,
            format_magnitude(ev.magnitude),
            len(ev.areas),
        )
        with visible(region):
            await self._sleep(self.duration)

    async def wait(self) -> None:
        """Return once no overlay is on screen, following any warning that pre-empts it."""
        while self.active:
            await asyncio.wait({self._task})

    async def close(self) -> None:
        task = self._task
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
