import asyncio

import pytest

from quaketelop.display import REGION_NAMES
from quaketelop.stations import StationDirectory


class FakeRegion:
    def __init__(self, log, name):
        self._log = log
        self.name = name
        self.visible = False
        self.text = ""

    def show(self):
        self.visible = True
        self._log.append(("show", self.name, self.text))

    def hide(self):
        self.visible = False
        self._log.append(("hide", self.name))

    def set_text(self, text):
        self.text = text


class FakeDisplay:
    def __init__(self):
        self.log = []
        self.regions = {name: FakeRegion(self.log, name) for name in REGION_NAMES}

    def region(self, name):
        return self.regions[name]

    def shown(self, name=None):
        return [e for e in self.log if e[0] == "show" and (name is None or e[1] == name)]

    def any_visible(self):
        return any(r.visible for r in self.regions.values())


class FakeAudio:
    def __init__(self, fail=False):
        self.played = []
        self.fail = fail

    def play(self, sound_id):
        self.played.append(sound_id)
        if self.fail:
            raise OSError("no sound device")


class FakeClock:
    """Records requested waits and yields to the loop instead of sleeping."""

    def __init__(self):
        self.now = 0.0
        self.waits = []

    async def sleep(self, seconds):
        self.waits.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


@pytest.fixture
def display():
    return FakeDisplay()


@pytest.fixture
def audio():
    return FakeAudio()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def stations():
    return StationDirectory({"A1": "Chiba", "A2": "Saitama"})


@pytest.fixture
def scenario_message():
    return {
        "code": 551,
        "earthquake": {
            "hypocenter": {"name": "Tokyo Bay", "depth": 50},
            "magnitude": 5.3,
            "domesticTsunami": "None",
        },
        "points": [{"addr": "A1", "scale": 50}, {"addr": "A2", "scale": 40}],
    }
