"""Shared fixtures: synthetic test signals."""

import io

import numpy as np
import pytest
import soundfile as sf


SAMPLE_RATE = 44100


def make_sine(frequency, duration=1.0, sample_rate=SAMPLE_RATE, amplitude=0.5, offset=0.0):
    """Pure sine wave, optionally shifted by a constant DC offset."""
    t = np.arange(int(round(duration * sample_rate))) / sample_rate
    return amplitude * np.sin(2 * np.pi * frequency * t) + offset


def wav_bytes(samples, sample_rate=SAMPLE_RATE, subtype="PCM_16"):
    """Encode samples as an in-memory WAV file."""
    buf = io.BytesIO()
    sf.write(buf, samples, sample_rate, format="WAV", subtype=subtype)
    return buf.getvalue()


@pytest.fixture
def sine_220():
    """One second of 220 Hz at 44.1 kHz."""
    return make_sine(220.0)


@pytest.fixture
def rng():
    return np.random.default_rng(1234)
