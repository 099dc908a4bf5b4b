"""Completion tone for the focus timer.

Synthesises a short sine beep (800 Hz, 0.5 s, exponential fade) into a WAV
file and hands it to the platform's audio player.  Machines without audio
simply stay silent.
"""

import logging
import math
import shutil
import struct
import subprocess
import sys
import tempfile
import wave
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

SAMPLE_RATE = 22050


def synthesize_tone(
    frequency: float = 800.0, seconds: float = 0.5, volume: float = 0.3, sample_rate: int = SAMPLE_RATE
) -> bytes:
    """Return 16-bit mono PCM frames for a fading sine tone."""
    total = int(sample_rate * seconds)
    # gain falls from *volume* to 0.01 over the tone, like an exponential ramp
    decay = math.log(0.01 / volume) / max(total, 1)
    frames = bytearray()
    for i in range(total):
        gain = volume * math.exp(decay * i)
        sample = gain * math.sin(2 * math.pi * frequency * i / sample_rate)
        frames += struct.pack("<h", int(sample * 32767))
    return bytes(frames)


def write_wav(path: Path, frames: bytes, sample_rate: int = SAMPLE_RATE) -> None:
    with wave.open(str(path), "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(frames)


def _player_command(path: Path) -> Optional[list[str]]:
    if sys.platform == "darwin":
        return ["afplay", str(path)]
    for player in ("paplay", "aplay"):
        if shutil.which(player):
            return [player, "-q", str(path)] if player == "aplay" else [player, str(path)]
    return None


class TonePlayer:
    """Plays the completion tone; callable so it can be handed to the timer."""

    def __init__(self) -> None:
        self._wav_path: Optional[Path] = None

    def __call__(self) -> None:
        self.play()

    def play(self) -> None:
        try:
            path = self._ensure_wav()
            if sys.platform == "win32":
                import winsound
                winsound.PlaySound(str(path), winsound.SND_FILENAME | winsound.SND_ASYNC)
                return
            cmd = _player_command(path)
            if cmd is None:
                logger.debug("No audio player available; skipping completion tone")
                return
            subprocess.Popen(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        except Exception:
            logger.debug("Could not play completion tone", exc_info=True)

    def _ensure_wav(self) -> Path:
        if self._wav_path is None or not self._wav_path.exists():
            path = Path(tempfile.gettempdir()) / "focusflow-tone.wav"
            write_wav(path, synthesize_tone())
            self._wav_path = path
        return self._wav_path
