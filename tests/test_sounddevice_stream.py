"""Tests for the microphone fan-out adapter.

sounddevice needs the PortAudio library at import time; skipped where it is missing.
"""

import numpy as np
import pytest

try:
    from wakeword_service.adapters.audio.sounddevice_stream import SoundDeviceAudioStreamAdapter
    HAS_PORTAUDIO = True
except (ImportError, OSError):
    HAS_PORTAUDIO = False

from tests.fakes import FORMAT

pytestmark = pytest.mark.skipif(not HAS_PORTAUDIO, reason="PortAudio not available")


def _raw(value: int) -> bytes:
    return np.full(FORMAT.blocksize, value, dtype=np.int16).tobytes()


def test_callback_fans_out_to_all_readers():
    stream = SoundDeviceAudioStreamAdapter(audio_format=FORMAT)
    first = stream.subscribe(name="a")
    second = stream.subscribe(name="b")
    stream._callback(_raw(3), FORMAT.blocksize, None, None)

    for reader in (first, second):
        frame = reader.read(timeout_seconds=0)
        assert frame is not None
        assert frame.sequence == 1
        assert frame.data.dtype == np.int16
        assert frame.num_samples == FORMAT.blocksize


def test_full_reader_drops_oldest_frame():
    stream = SoundDeviceAudioStreamAdapter(audio_format=FORMAT)
    reader = stream.subscribe(name="small", max_frames=2)
    for value in (1, 2, 3):
        stream._callback(_raw(value), FORMAT.blocksize, None, None)

    assert reader.read(timeout_seconds=0).sequence == 2
    assert reader.read(timeout_seconds=0).sequence == 3
    assert reader.read(timeout_seconds=0) is None
    assert reader.dropped == 1


def test_closed_reader_is_detached():
    stream = SoundDeviceAudioStreamAdapter(audio_format=FORMAT)
    reader = stream.subscribe(name="gone")
    reader.close()
    reader.close()
    stream._callback(_raw(1), FORMAT.blocksize, None, None)
    assert reader.read(timeout_seconds=0) is None
    assert stream._readers == []


def test_not_running_until_started():
    stream = SoundDeviceAudioStreamAdapter(audio_format=FORMAT)
    assert stream.is_running() is False
    stream.stop()
    assert stream.audio_format() is FORMAT
