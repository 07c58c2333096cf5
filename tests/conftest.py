from __future__ import annotations

import wave
from pathlib import Path
from typing import Callable

import pytest


def write_wav(path: Path, *, frames: int = 800, tone: int = 0) -> Path:
    """Write a tiny mono 8 kHz PCM file. Different `tone` values give different content hashes."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with wave.open(str(path), "wb") as w:
        w.setnchannels(1)
        w.setsampwidth(2)
        w.setframerate(8000)
        w.writeframes(bytes([tone % 256, 0]) * frames)
    return path


@pytest.fixture
def make_wav(tmp_path: Path) -> Callable[..., Path]:
    def _make(relative: str, **kwargs) -> Path:
        return write_wav(tmp_path / relative, **kwargs)

    return _make
