import asyncio

import pytest

from quaketelop import display as regions
from quaketelop.audio import SOUND_EEW
from quaketelop.early_warning import EarlyWarningInterrupt, warning_text
from quaketelop.events import parse_early_warning


EEW_MESSAGE = {
    "code": 554,
    "earthquake": {"hypocenter": {"name": "宮城県沖", "depth": 40}, "magnitude": 6.8},
    "areas": [{"name": "宮城県"}, {"name": "岩手県"}, {"name": "福島県"}],
}


def test_warning_text_lists_all_fields():
    text = warning_text(parse_early_warning(EEW_MESSAGE))
    assert text.split("\n") == [
        "震源地: 宮城県沖",
        "マグニチュード: M6.8",
        "深さ: 40km",
        "警報対象地域: 宮城県、岩手県、福島県",
    ]


def test_warning_without_hypocenter_still_renders():
    ev = parse_early_warning({"code": 554, "areas": [{"name": "千葉県"}]})
    text = warning_text(ev)
    assert "震源地: 不明" in text
    assert "マグニチュード: 不明" in text
    assert "警報対象地域: 千葉県" in text


@pytest.mark.asyncio
async def test_warning_shows_for_configured_duration_then_hides(display, audio, clock):
    eew = EarlyWarningInterrupt(display, audio, duration=10.0, sleep=clock.sleep)

    await eew.trigger(parse_early_warning(EEW_MESSAGE))

    assert audio.played == [SOUND_EEW]
    assert clock.waits == [10.0]
    assert display.shown(regions.EEW_ALERT)[0][2].startswith("震源地: 宮城県沖")
    assert not display.regions[regions.EEW_ALERT].visible
    assert not eew.active


@pytest.mark.asyncio
async def test_new_warning_preempts_visible_one(display, audio):
    release = asyncio.Event()

    async def held_sleep(seconds):
        await release.wait()

    eew = EarlyWarningInterrupt(display, audio, sleep=held_sleep)

    first = eew.trigger(parse_early_warning(EEW_MESSAGE))
    await asyncio.sleep(0)
    assert display.regions[regions.EEW_ALERT].visible

    updated = dict(EEW_MESSAGE, areas=[{"name": "宮城県"}])
    second = eew.trigger(parse_early_warning(updated))
    await asyncio.sleep(0)

    assert first.cancelled()
    assert display.regions[regions.EEW_ALERT].visible
    assert "警報対象地域: 宮城県" in display.regions[regions.EEW_ALERT].text
    assert audio.played == [SOUND_EEW, SOUND_EEW]

    release.set()
    await second
    assert not display.regions[regions.EEW_ALERT].visible
    assert [e[0] for e in display.log] == ["show", "hide", "show", "hide"]


@pytest.mark.asyncio
async def test_audio_failure_does_not_block_warning(display, audio, clock):
    audio.fail = True
    eew = EarlyWarningInterrupt(display, audio, sleep=clock.sleep)

    await eew.trigger(parse_early_warning(EEW_MESSAGE))

    assert eew.shown == 1
    assert display.shown(regions.EEW_ALERT)


@pytest.mark.asyncio
async def test_wait_follows_preempting_warning(display, audio):
    release = asyncio.Event()

    async def held_sleep(seconds):
        await release.wait()

    eew = EarlyWarningInterrupt(display, audio, sleep=held_sleep)
    await eew.wait()

    eew.trigger(parse_early_warning(EEW_MESSAGE))
    waiter = asyncio.create_task(eew.wait())
    await asyncio.sleep(0)

    eew.trigger(parse_early_warning(EEW_MESSAGE))
    await asyncio.sleep(0)
    assert not waiter.done()

    release.set()
    await waiter
    assert not eew.active
    assert eew.shown == 2
    assert not display.regions[regions.EEW_ALERT].visible
