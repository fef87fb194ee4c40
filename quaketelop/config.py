from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional
import os

import yaml


DEFAULT_FEED_URL = "wss://api-realtime-sandbox.p2pquake.net/v2/ws"


@dataclass(frozen=True)
class FeedConfig:
    url: str = DEFAULT_FEED_URL
    max_reconnect_attempts: int = 5
    reconnect_delay_seconds: float = 5.0
    open_timeout_seconds: float = 10.0


@dataclass(frozen=True)
class DurationsConfig:
    main_alert: float = 3.0
    details: float = 5.0
    intensity_page: float = 5.0
    end_alert: float = 3.0
    cooldown: float = 2.0
    early_warning: float = 10.0


@dataclass(frozen=True)
class DisplayConfig:
    line_width: int = 64
    lines_per_page: int = 2
    state_path: Optional[str] = None
    durations: DurationsConfig = field(default_factory=DurationsConfig)


@dataclass(frozen=True)
class AudioConfig:
    enabled: bool = True
    player: str = "aplay -q"
    alert_sound: str = "sounds/alert.wav"
    eew_sound: str = "sounds/eew_alert.wav"
    connect_sound: Optional[str] = None
    sample_rate: int = 22050


@dataclass(frozen=True)
class StationsConfig:
    source: Optional[str] = "stations.json"
    timeout_seconds: float = 8.0


@dataclass(frozen=True)
class PathsConfig:
    cache_dir: str = "/tmp/quaketelop"


@dataclass(frozen=True)
class AppConfig:
    feed: FeedConfig = field(default_factory=FeedConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    audio: AudioConfig = field(default_factory=AudioConfig)
    stations: StationsConfig = field(default_factory=StationsConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)
    log_level: str = "INFO"


def _env(key: str, default: str | None = None) -> str | None:
    v = os.environ.get(key)
    return v if v not in (None, "") else default


def _env_bool(key: str, default: bool) -> bool:
    v = _env(key)
    if v is None:
        return default
    return v.strip().lower() in {"1", "true", "yes", "y", "on"}


def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    sec = raw.get(name)
    return dict(sec) if isinstance(sec, dict) else {}


def _get(sec: Dict[str, Any], key: str, default: Any) -> Any:
    v = sec.get(key)
    return default if v is None else v


def config_from_dict(raw: Dict[str, Any] | None) -> AppConfig:
    raw = raw or {}

    feed_raw = _section(raw, "feed")
    feed = FeedConfig(
        url=str(_env("QUAKETELOP_FEED_URL", feed_raw.get("url") or DEFAULT_FEED_URL)),
        max_reconnect_attempts=int(_get(feed_raw, "max_reconnect_attempts", 5)),
        reconnect_delay_seconds=float(_get(feed_raw, "reconnect_delay_seconds", 5.0)),
        open_timeout_seconds=float(_get(feed_raw, "open_timeout_seconds", 10.0)),
    )

    display_raw = _section(raw, "display")
    dur_raw = _section(display_raw, "durations")
    dur_defaults = DurationsConfig()
    durations = DurationsConfig(
        main_alert=float(_get(dur_raw, "main_alert", dur_defaults.main_alert)),
        details=float(_get(dur_raw, "details", dur_defaults.details)),
        intensity_page=float(_get(dur_raw, "intensity_page", dur_defaults.intensity_page)),
        end_alert=float(_get(dur_raw, "end_alert", dur_defaults.end_alert)),
        cooldown=float(_get(dur_raw, "cooldown", dur_defaults.cooldown)),
        early_warning=float(_get(dur_raw, "early_warning", dur_defaults.early_warning)),
    )
    display = DisplayConfig(
        line_width=int(_get(display_raw, "line_width", 64)),
        lines_per_page=int(_get(display_raw, "lines_per_page", 2)),
        state_path=_env("QUAKETELOP_STATE_PATH", display_raw.get("state_path")),
        durations=durations,
    )

    audio_raw = _section(raw, "audio")
    audio_defaults = AudioConfig()
    audio = AudioConfig(
        enabled=_env_bool("QUAKETELOP_AUDIO_ENABLED", bool(audio_raw.get("enabled", True))),
        player=str(audio_raw.get("player", audio_defaults.player)),
        alert_sound=str(audio_raw.get("alert_sound", audio_defaults.alert_sound)),
        eew_sound=str(audio_raw.get("eew_sound", audio_defaults.eew_sound)),
        connect_sound=audio_raw.get("connect_sound"),
        sample_rate=int(_get(audio_raw, "sample_rate", audio_defaults.sample_rate)),
    )

    stations_raw = _section(raw, "stations")
    stations = StationsConfig(
        source=_env("QUAKETELOP_STATIONS", stations_raw.get("source", "stations.json")),
        timeout_seconds=float(_get(stations_raw, "timeout_seconds", 8.0)),
    )

    paths = PathsConfig(cache_dir=str(_get(_section(raw, "paths"), "cache_dir", PathsConfig.cache_dir)))

    log_level = str(_env("QUAKETELOP_LOG_LEVEL", _section(raw, "logging").get("level", "INFO"))).upper()

    return AppConfig(
        feed=feed,
        display=display,
        audio=audio,
        stations=stations,
        paths=paths,
        log_level=log_level,
    )


def load_config(path: str | None) -> AppConfig:
    if not path:
        return config_from_dict({})
    raw: Dict[str, Any] = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    return config_from_dict(raw)
