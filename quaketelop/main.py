from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from .audio import SOUND_ALERT, SOUND_CONNECT, SOUND_EEW, AudioPlayer, CommandAudioPlayer, NullAudioPlayer
from .config import AppConfig, load_config
from .display import Display, KioskDisplay
from .early_warning import EarlyWarningInterrupt
from .events import EarthquakeInfo, MalformedEventError, parse_early_warning, parse_earthquake_info
from .feed import FeedConnection
from .presentation_queue import PresentationQueue
from .sequencer import PresentationSequencer, Sleep, play_safely
from .stations import StationDirectory, load_station_directory


log = logging.getLogger("quaketelop")


def _setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stdout,
    )


def build_audio(cfg: AppConfig) -> AudioPlayer:
    if not cfg.audio.enabled:
        log.info("Audio disabled by configuration")
        return NullAudioPlayer()
    sounds = {
        SOUND_ALERT: cfg.audio.alert_sound,
        SOUND_EEW: cfg.audio.eew_sound,
    }
    if cfg.audio.connect_sound is not None:
        sounds[SOUND_CONNECT] = cfg.audio.connect_sound
    return CommandAudioPlayer(
        sounds,
        player=cfg.audio.player,
        cache_dir=Path(cfg.paths.cache_dir),
        sample_rate=cfg.audio.sample_rate,
    )


class Orchestrator:
    """
    Wires the feed to the two presentation paths:

      551 earthquake info -> PresentationQueue -> PresentationSequencer
      554 early warning   -> EarlyWarningInterrupt (immediate)
    """

    def __init__(
        self,
        cfg: AppConfig,
        stations: StationDirectory,
        *,
        display: Optional[Display] = None,
        audio: Optional[AudioPlayer] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.cfg = cfg
        self.stations = stations
        self.display = display if display is not None else KioskDisplay(cfg.display.state_path)
        self.audio = audio if audio is not None else build_audio(cfg)

        self.sequencer = PresentationSequencer(
            self.display,
            self.audio,
            stations,
            durations=cfg.display.durations,
            line_width=cfg.display.line_width,
            lines_per_page=cfg.display.lines_per_page,
            sleep=sleep,
        )
        self.queue: PresentationQueue[EarthquakeInfo] = PresentationQueue(self.sequencer.present)
        self.eew = EarlyWarningInterrupt(
            self.display,
            self.audio,
            duration=cfg.display.durations.early_warning,
            sleep=sleep,
        )

    def handle_earthquake(self, data: dict) -> None:
        try:
            ev = parse_earthquake_info(data)
        except MalformedEventError as e:
            log.error("Malformed earthquake info dropped: %s", e)
            return
        log.info(
            "Earthquake info: %s M=%s points=%d",
            ev.hypocenter.name,
            ev.magnitude,
            len(ev.points),
        )
        self.queue.enqueue(ev)

    def handle_early_warning(self, data: dict) -> None:
        self.eew.trigger(parse_early_warning(data))

    def handle_open(self) -> None:
        if self.cfg.audio.connect_sound is not None:
            play_safely(self.audio, SOUND_CONNECT)

    def build_feed(self, **kwargs) -> FeedConnection:
        return FeedConnection(
            self.cfg.feed.url,
            on_earthquake=self.handle_earthquake,
            on_early_warning=self.handle_early_warning,
            on_open=self.handle_open,
            max_reconnect_attempts=self.cfg.feed.max_reconnect_attempts,
            reconnect_delay=self.cfg.feed.reconnect_delay_seconds,
            open_timeout=self.cfg.feed.open_timeout_seconds,
            **kwargs,
        )

    async def aclose(self) -> None:
        await self.queue.close()
        await self.eew.close()

    async def run(self, **feed_kwargs) -> None:
        feed = self.build_feed(**feed_kwargs)
        log.info("Subscribing to %s", feed.url)
        try:
            await feed.run_forever()
            # The feed gave up; let queued events and any overlay finish on screen.
            await self.queue.join()
            await self.eew.wait()
        finally:
            await self.aclose()


async def _amain(cfg: AppConfig) -> None:
    stations = await load_station_directory(cfg.stations.source, timeout=cfg.stations.timeout_seconds)
    orch = Orchestrator(cfg, stations)
    await orch.run()


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Earthquake telop kiosk for the P2P地震情報 feed")
    ap.add_argument("--config", default=None, help="YAML config file (defaults are used when omitted)")
    args = ap.parse_args(argv)

    cfg = load_config(args.config)
    _setup_logging(cfg.log_level)
    try:
        asyncio.run(_amain(cfg))
    except KeyboardInterrupt:
        log.info("Interrupted; shutting down")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
