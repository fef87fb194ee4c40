from __future__ import annotations

import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional

import httpx


log = logging.getLogger("quaketelop.stations")

DEFAULT_UA = "quaketelop/1.0 (earthquake telop kiosk)"


class StationLoadError(RuntimeError):
    pass


class StationDirectory:
    """
    Read-only station code -> display name table.

    Built once at startup. Unknown codes resolve to themselves.
    """

    def __init__(self, names: Mapping[str, Any] | None = None) -> None:
        table: dict[str, str] = {}
        for k, v in (names or {}).items():
            kk = str(k).strip()
            vv = str(v).strip() if v is not None else ""
            if kk and vv:
                table[kk] = vv
        self._names: Mapping[str, str] = MappingProxyType(table)

    def __len__(self) -> int:
        return len(self._names)

    def lookup(self, code: str) -> str:
        return self._names.get(code) or code


def _decode_table(raw: str, source: str) -> dict[str, Any]:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise StationLoadError(f"station table is not valid JSON: {source}") from e
    if not isinstance(data, dict):
        raise StationLoadError(f"station table must be a JSON object: {source}")
    return data


async def _fetch_table(url: str, timeout: float) -> dict[str, Any]:
    async with httpx.AsyncClient(
        timeout=timeout,
        headers={"User-Agent": DEFAULT_UA, "Accept": "application/json"},
        follow_redirects=True,
    ) as client:
        try:
            r = await client.get(url)
            r.raise_for_status()
        except httpx.HTTPError as e:
            raise StationLoadError(f"station table fetch failed: {url}") from e
        return _decode_table(r.text, url)


async def load_station_directory(source: Optional[str], *, timeout: float = 8.0) -> StationDirectory:
    """
    Load the station table from a local JSON file or an http(s) URL.

    A missing or broken table is not fatal: the kiosk keeps running and shows
    raw station codes instead.
    """
    if not source:
        log.info("No station table configured; raw station codes will be shown")
        return StationDirectory()

    try:
        if "://" in source:
            table = await _fetch_table(source, timeout)
        else:
            path = Path(source)
            try:
                raw = path.read_text(encoding="utf-8")
            except OSError as e:
                raise StationLoadError(f"station table unreadable: {path}") from e
            table = _decode_table(raw, str(path))
    except StationLoadError as e:
        log.warning("%s; raw station codes will be shown", e)
        return StationDirectory()

    directory = StationDirectory(table)
    log.info("Station table loaded: %d entries from %s", len(directory), source)
    return directory
