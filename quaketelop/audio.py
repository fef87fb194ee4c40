from __future__ import annotations

import asyncio
import logging
import math
import shlex
import shutil
import wave
from pathlib import Path
from typing import Dict, Iterable, Optional, Protocol, Tuple


log = logging.getLogger("quaketelop.audio")

SOUND_ALERT = "alert"
SOUND_EEW = "eew"
SOUND_CONNECT = "connect"

# (frequency Hz, seconds) steps for tones synthesized when no WAV is configured
FALLBACK_TONES: Dict[str, Tuple[Tuple[float, float], ...]] = {
    SOUND_ALERT: ((880.0, 0.25), (0.0, 0.08), (1318.5, 0.45)),
    SOUND_EEW: ((960.0, 0.18), (0.0, 0.06), (960.0, 0.18), (0.0, 0.06), (960.0, 0.18), (0.0, 0.06), (1440.0, 0.6)),
    SOUND_CONNECT: ((1318.5, 0.2),),
}


class AudioPlayer(Protocol):
    def play(self, sound_id: str) -> None: ...


class NullAudioPlayer:
    def play(self, sound_id: str) -> None:
        log.debug("Audio disabled; not playing %s", sound_id)


def write_tone_sequence_wav(
    path: Path,
    steps: Iterable[Tuple[float, float]],
    sample_rate: int,
    amplitude: float = 0.25,
) -> None:
    """Write a mono 16-bit WAV of consecutive sine steps; a 0 Hz step is silence."""
    path.parent.mkdir(parents=True, exist_ok=True)
    amp = max(0.0, min(1.0, amplitude))
    with wave.open(str(path), "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)  # 16-bit
        wf.setframerate(sample_rate)
        for freq_hz, seconds in steps:
            n_frames = int(seconds * sample_rate)
            frames = bytearray()
            for i in range(n_frames):
                if freq_hz <= 0:
                    s = 0
                else:
                    # short linear fade at both ends avoids clicks
                    env = min(1.0, i / (0.01 * sample_rate), (n_frames - i) / (0.01 * sample_rate))
                    s = int(math.sin(2 * math.pi * freq_hz * i / sample_rate) * 32767 * amp * env)
                frames += s.to_bytes(2, "little", signed=True)
            wf.writeframes(bytes(frames))


def wav_duration_seconds(path: Path) -> float:
    """Length of a WAV file; raises wave.Error or EOFError on a damaged file."""
    with wave.open(str(path), "rb") as wf:
        rate = wf.getframerate()
        return wf.getnframes() / rate if rate > 0 else 0.0


def _tone_is_current(path: Path, steps: Iterable[Tuple[float, float]], sample_rate: int) -> bool:
    if not path.is_file():
        return False
    expected = sum(int(seconds * sample_rate) for _, seconds in steps) / sample_rate
    try:
        return abs(wav_duration_seconds(path) - expected) < 1e-3
    except (OSError, EOFError, wave.Error):
        return False


class CommandAudioPlayer:
    """
    Plays WAV files through an external player command (``aplay -q`` by default).

    Playback is fire-and-forget: the subprocess runs in the background and any
    failure is logged, never raised into the presentation.
    """

    def __init__(
        self,
        sounds: Dict[str, Optional[str]],
        *,
        player: str = "aplay -q",
        cache_dir: Path = Path("/tmp/quaketelop"),
        sample_rate: int = 22050,
    ) -> None:
        self.player_cmd = shlex.split(player)
        self.sample_rate = int(sample_rate)
        self.cache_dir = Path(cache_dir)
        self._paths: Dict[str, Path] = {}
        self._tasks: set[asyncio.Task] = set()

        for sound_id, configured in sounds.items():
            p = self._resolve(sound_id, configured)
            if p is not None:
                self._paths[sound_id] = p

    def _resolve(self, sound_id: str, configured: Optional[str]) -> Optional[Path]:
        if configured and Path(configured).is_file():
            return Path(configured)

        steps = FALLBACK_TONES.get(sound_id)
        if steps is None:
            if configured:
                log.warning("Sound file for %s not found: %s", sound_id, configured)
            return None

        out = self.cache_dir / f"tone_{sound_id}.wav"
        try:
            if not _tone_is_current(out, steps, self.sample_rate):
                write_tone_sequence_wav(out, steps, self.sample_rate)
            if configured:
                log.warning("Sound file for %s not found (%s); using synthesized tone %s", sound_id, configured, out)
            return out
        except OSError:
            log.exception("Could not synthesize fallback tone for %s", sound_id)
            return None

    def play(self, sound_id: str) -> None:
        path = self._paths.get(sound_id)
        if path is None:
            log.warning("No sound registered for %s", sound_id)
            return
        if not self.player_cmd or not shutil.which(self.player_cmd[0]):
            log.warning("Audio player not found: %s", " ".join(self.player_cmd) or "(empty)")
            return

        try:
            task = asyncio.get_running_loop().create_task(self._run(sound_id, path), name=f"audio_{sound_id}")
        except RuntimeError:
            log.warning("No running event loop; cannot play %s", sound_id)
            return
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, sound_id: str, path: Path) -> None:
        try:
            proc = await asyncio.create_subprocess_exec(
                *self.player_cmd,
                str(path),
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
            _, err = await proc.communicate()
            if proc.returncode != 0:
                log.warning(
                    "Audio playback failed (%s rc=%s): %s",
                    sound_id,
                    proc.returncode,
                    (err or b"").decode("utf-8", errors="replace").strip(),
                )
        except asyncio.CancelledError:
            raise
        except Exception:
            log.exception("Audio playback failed: %s", sound_id)
