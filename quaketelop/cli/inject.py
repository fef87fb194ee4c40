"""
Rehearsal tool: push captured feed messages through the real presentation path.

    quaketelop-inject sample
    quaketelop-inject replay captured/*.json --speed 4

Messages go through FeedConnection.dispatch(), so classification, the
presentation queue, the sequencer and the early-warning overlay behave exactly
as they do live. Nothing connects to the network.
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Iterable, List, Optional

from quaketelop.config import AppConfig, load_config
from quaketelop.feed import FeedSignal
from quaketelop.main import Orchestrator, _setup_logging
from quaketelop.stations import StationDirectory, load_station_directory


log = logging.getLogger("quaketelop.inject")

SAMPLE_MESSAGES: List[dict] = [
    {
        "code": 551,
        "earthquake": {
            "hypocenter": {"name": "東京湾", "depth": 50},
            "magnitude": 5.3,
            "domesticTsunami": "None",
        },
        "points": [
            {"addr": "千葉市中央区", "scale": 50},
            {"addr": "市川市", "scale": 45},
            {"addr": "船橋市", "scale": 45},
            {"addr": "さいたま市浦和区", "scale": 40},
            {"addr": "川崎市川崎区", "scale": 40},
            {"addr": "横浜市中区", "scale": 30},
        ],
    },
]


def _load_messages(path: Path) -> List[Any]:
    text = path.read_text(encoding="utf-8").strip()
    if not text:
        return []
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        # JSON Lines capture
        return [json.loads(ln) for ln in text.splitlines() if ln.strip()]
    return list(data) if isinstance(data, list) else [data]


def _scaled_sleep(speed: float):
    factor = 1.0 / speed if speed > 0 else 0.0

    async def _sleep(seconds: float) -> None:
        await asyncio.sleep(seconds * factor)

    return _sleep


async def run_messages(
    cfg: AppConfig,
    messages: Iterable[Any],
    *,
    stations: Optional[StationDirectory] = None,
    speed: float = 1.0,
    gap: float = 0.0,
) -> Orchestrator:
    if stations is None:
        stations = await load_station_directory(cfg.stations.source, timeout=cfg.stations.timeout_seconds)

    sleep = _scaled_sleep(speed)
    orch = Orchestrator(cfg, stations, sleep=sleep)
    feed = orch.build_feed()

    try:
        for i, msg in enumerate(messages):
            if i and gap > 0:
                await sleep(gap)
            feed.dispatch(FeedSignal.MESSAGE, msg)

        await orch.queue.join()
        await orch.eew.wait()
    finally:
        await orch.aclose()
    return orch


def cmd_sample(cfg: AppConfig, args: argparse.Namespace) -> int:
    orch = asyncio.run(run_messages(cfg, SAMPLE_MESSAGES, speed=args.speed))
    print(f"OK: presented {orch.queue.presented} sample event(s)")
    return 0


def cmd_replay(cfg: AppConfig, args: argparse.Namespace) -> int:
    messages: List[Any] = []
    for f in args.files:
        try:
            messages.extend(_load_messages(Path(f)))
        except (OSError, ValueError) as e:
            print(f"ERROR: cannot read {f}: {e}", file=sys.stderr)
            return 2

    if not messages:
        print("ERROR: no messages to replay", file=sys.stderr)
        return 2

    orch = asyncio.run(run_messages(cfg, messages, speed=args.speed, gap=args.gap))
    print(
        f"OK: replayed {len(messages)} message(s); presented={orch.queue.presented} "
        f"failed={orch.queue.failed} warnings={orch.eew.shown}"
    )
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    ap = argparse.ArgumentParser(prog="quaketelop-inject", description="Replay feed messages through the telop without a connection")
    ap.add_argument("--config", default=None, help="Path to quaketelop config.yaml")
    ap.add_argument("--speed", default=1.0, type=float, help="Playback speed factor (2 = twice as fast, 0 = no waits)")
    ap.add_argument("--no-audio", action="store_true", help="Do not play alert sounds")
    ap.add_argument("--stations", default=None, help="Override the station table path/URL")

    sub = ap.add_subparsers(dest="cmd", required=True)

    sub.add_parser("sample", help="Present a built-in sample earthquake report")

    ap_replay = sub.add_parser("replay", help="Replay captured messages (JSON object, JSON array or JSON Lines)")
    ap_replay.add_argument("files", nargs="+")
    ap_replay.add_argument("--gap", default=0.0, type=float, help="Seconds between injected messages")

    args = ap.parse_args(argv)

    cfg = load_config(args.config)
    if args.no_audio:
        cfg = replace(cfg, audio=replace(cfg.audio, enabled=False))
    if args.stations:
        cfg = replace(cfg, stations=replace(cfg.stations, source=args.stations))
    _setup_logging(cfg.log_level)

    if args.cmd == "sample":
        return cmd_sample(cfg, args)
    return cmd_replay(cfg, args)


if __name__ == "__main__":
    raise SystemExit(main())
