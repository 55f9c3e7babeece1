"""Alarm synthesis and playback using numpy + QSoundEffect.

Alarms are generated as sine-wave WAV files with ADSR envelopes and
cached on disk, so later launches only load them.  Each alarm loops
until ``stop()`` is called.

Sound names
-----------
- ``work_complete``  — repeated bright beep pattern for the end of focus
- ``break_complete`` — soft two-tone bell for the end of a break
"""

from __future__ import annotations

import io
import logging
import wave
from pathlib import Path
from typing import Callable

import numpy as np

from PyQt6.QtCore import QObject, QUrl
from PyQt6.QtMultimedia import QSoundEffect

from ..settings import APP_SUPPORT_DIR


logger = logging.getLogger(__name__)

SOUNDS_DIR = APP_SUPPORT_DIR / "sounds"

SOUND_NAMES = (
    "work_complete",
    "break_complete",
)

SAMPLE_RATE = 44100

LOOP_FOREVER = QSoundEffect.Loop.Infinite.value


# ═══════════════════════════════════════════════════════════════════════════
#  WAV SYNTHESIS HELPERS
# ═══════════════════════════════════════════════════════════════════════════


def _make_envelope(
    length: int,
    attack: int = 200,
    decay: int = 400,
    sustain_level: float = 0.7,
    release: int = 800,
) -> np.ndarray:
    """ADSR envelope (all durations in samples)."""
    env = np.ones(length, dtype=np.float64)
    a = min(attack, length)
    if a > 0:
        env[:a] = np.linspace(0.0, 1.0, a)
    d_end = min(a + decay, length)
    if decay > 0 and d_end > a:
        env[a:d_end] = np.linspace(1.0, sustain_level, d_end - a)
    s_end = max(length - release, d_end)
    if s_end > d_end:
        env[d_end:s_end] = sustain_level
    if release > 0 and s_end < length:
        env[s_end:] = np.linspace(sustain_level, 0.0, length - s_end)
    return env


def _sine(freq: float, duration_s: float) -> np.ndarray:
    """Pure sine wave at *freq* Hz for *duration_s* seconds."""
    t = np.linspace(0, duration_s, int(SAMPLE_RATE * duration_s), endpoint=False)
    return np.sin(2 * np.pi * freq * t)


def _silence(duration_s: float) -> np.ndarray:
    return np.zeros(int(SAMPLE_RATE * duration_s))


def _to_wav_bytes(samples: np.ndarray) -> bytes:
    """Convert a float64 numpy array (-1..1) to 16-bit PCM WAV bytes."""
    samples = np.clip(samples, -1.0, 1.0)
    int_samples = (samples * 32767).astype(np.int16)

    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(SAMPLE_RATE)
        wf.writeframes(int_samples.tobytes())
    return buf.getvalue()


# ═══════════════════════════════════════════════════════════════════════════
#  SOUND GENERATORS
# ═══════════════════════════════════════════════════════════════════════════


def _generate_alarm() -> bytes:
    """Work complete — three pairs of 880 Hz beeps, loud enough to notice."""
    beep = _sine(880.0, 0.12) * 0.6
    env = _make_envelope(len(beep), attack=80, decay=200, sustain_level=0.6, release=400)
    beep = beep * env
    parts: list[np.ndarray] = []
    for _ in range(3):
        parts.extend([beep, _silence(0.08), beep, _silence(0.35)])
    return _to_wav_bytes(np.concatenate(parts))


def _generate_bell() -> bytes:
    """Break complete — E5 then C5 bell with a long decay."""
    parts: list[np.ndarray] = []
    for freq in (659.25, 523.25):
        tone = _sine(freq, 0.6) * 0.4 + _sine(freq * 2, 0.6) * 0.08
        env = _make_envelope(
            len(tone),
            attack=int(SAMPLE_RATE * 0.01),
            decay=int(SAMPLE_RATE * 0.2),
            sustain_level=0.3,
            release=int(SAMPLE_RATE * 0.35),
        )
        parts.append(tone * env)
    return _to_wav_bytes(np.concatenate(parts))


_GENERATORS: dict[str, Callable[[], bytes]] = {
    "work_complete": _generate_alarm,
    "break_complete": _generate_bell,
}


def sound_for_session(session_type: str) -> str:
    """Alarm name for the end of *session_type* (a SessionType value)."""
    return "work_complete" if session_type == "work" else "break_complete"


# ═══════════════════════════════════════════════════════════════════════════
#  ALARM PLAYER
# ═══════════════════════════════════════════════════════════════════════════


class AlarmPlayer(QObject):
    """Synthesises, caches and plays the completion alarms.

    Usage::

        alarm = AlarmPlayer(parent=self)
        alarm.set_volume(70)
        alarm.play("work_complete")
    """

    def __init__(
        self,
        parent: QObject | None = None,
        *,
        sounds_dir: Path | None = None,
    ) -> None:
        super().__init__(parent)
        self._enabled = True
        self._volume = 0.7  # 0.0–1.0
        self._sounds_dir = sounds_dir or SOUNDS_DIR
        self._effects: dict[str, QSoundEffect] = {}

        self._ensure_wav_files()
        self._load_effects()

    # ── public API ────────────────────────────────────────────────────

    def set_volume(self, level: int) -> None:
        """Set volume (0-100).  Updates all loaded effects."""
        self._volume = max(0, min(level, 100)) / 100.0
        for effect in self._effects.values():
            effect.setVolume(self._volume)

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled

    def play(self, name: str) -> None:
        """Start looping a sound by name.  No-op if disabled or name unknown."""
        if not self._enabled:
            return
        effect = self._effects.get(name)
        if effect is None:
            logger.debug("No alarm loaded for %r", name)
            return
        effect.play()

    def stop(self) -> None:
        for effect in self._effects.values():
            effect.stop()

    @property
    def volume(self) -> int:
        """Current volume as 0-100 integer."""
        return round(self._volume * 100)

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def is_playing(self) -> bool:
        return any(effect.isPlaying() for effect in self._effects.values())

    @property
    def loaded(self) -> tuple[str, ...]:
        return tuple(self._effects)

    # ── internal ──────────────────────────────────────────────────────

    def _ensure_wav_files(self) -> None:
        """Generate any missing WAV files to the cache directory."""
        self._sounds_dir.mkdir(parents=True, exist_ok=True)
        for name, gen_fn in _GENERATORS.items():
            path = self._sounds_dir / f"{name}.wav"
            if not path.exists():
                path.write_bytes(gen_fn())

    def _load_effects(self) -> None:
        """Create QSoundEffect instances from cached WAV files."""
        for name in SOUND_NAMES:
            path = self._sounds_dir / f"{name}.wav"
            if path.exists():
                effect = QSoundEffect(self)
                effect.setSource(QUrl.fromLocalFile(str(path)))
                effect.setVolume(self._volume)
                effect.setLoopCount(LOOP_FOREVER)
                self._effects[name] = effect
