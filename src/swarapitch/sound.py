"""
SampleBuffer - Mono audio samples with sample rate.

A SampleBuffer is the only input the estimator accepts. It is created by
the caller (from a numpy array, an audio file or raw uploaded bytes) and is
owned by the caller for the duration of an estimation call.

Design Principles:
------------------
1. Mono only: Multi-channel audio is not accepted directly. Use
   from_file(..., channel=N) or from_bytes(..., channel=N) to pick one.

2. Float64 samples: Audio is stored as 64-bit floating point, normalized
   to the range [-1, 1] for PCM formats. The array is read-only so analysis
   can hand out views without copying.

3. Integer sample rate: The rate is a positive whole number of Hz.

Supported Audio Formats:
------------------------
Via soundfile/libsndfile: WAV, FLAC, OGG Vorbis, AIFF, MP3 (libsndfile 1.1.0+)

Usage:
------
    from swarapitch import SampleBuffer

    buffer = SampleBuffer.from_file("recording.wav")

    import numpy as np
    t = np.arange(44100) / 44100
    buffer = SampleBuffer(np.sin(2 * np.pi * 220 * t), sample_rate=44100)

    estimate = buffer.to_pitch_estimate()
"""

import io
import math
from pathlib import Path
from typing import Union

import numpy as np
import soundfile as sf

from .config import ConfigurationError


class AudioDecodeError(Exception):
    """Raised when audio data cannot be decoded into samples."""
    pass


class SampleBuffer:
    """
    Mono audio samples with sample rate.

    Attributes:
        samples: Read-only 1D float64 array
        sample_rate: Sample rate in Hz

    Properties:
        n_samples: Number of samples
        duration: Total duration in seconds
    """

    def __init__(self, samples: np.ndarray, sample_rate: int):
        """
        Create a SampleBuffer from samples and sample rate.

        Args:
            samples: 1D array of audio samples
            sample_rate: Sample rate in Hz

        Raises:
            ValueError: If samples is not 1D (mono only supported)
            ConfigurationError: If sample_rate is not a positive integer
        """
        samples = np.array(samples, dtype=np.float64)
        if samples.ndim != 1:
            raise ValueError("Only mono audio supported. Got shape: {}".format(samples.shape))

        rate = float(sample_rate)
        if not math.isfinite(rate) or not rate.is_integer() or rate <= 0:
            raise ConfigurationError(f"sample_rate must be a positive integer, got {sample_rate}")

        samples.setflags(write=False)
        self._samples = samples
        self._sample_rate = int(rate)

    @classmethod
    def from_file(cls, path: Union[str, Path], channel: int = 0) -> "SampleBuffer":
        """
        Load audio from a file.

        Args:
            path: Path to audio file
            channel: Channel to keep for multi-channel files (0-based)

        Returns:
            SampleBuffer

        Raises:
            AudioDecodeError: If the file cannot be read
            ValueError: If the channel does not exist
        """
        try:
            data, sample_rate = sf.read(path, dtype="float64")
        except (sf.LibsndfileError, RuntimeError) as exc:
            raise AudioDecodeError(f"Could not read audio file {path}: {exc}") from exc
        return cls._from_data(data, sample_rate, channel)

    @classmethod
    def from_bytes(cls, payload: bytes, channel: int = 0) -> "SampleBuffer":
        """
        Decode an in-memory audio file (e.g. an uploaded WAV).

        Args:
            payload: Encoded audio file contents
            channel: Channel to keep for multi-channel data (0-based)

        Returns:
            SampleBuffer

        Raises:
            AudioDecodeError: If the bytes are empty or not a readable format
        """
        if not payload:
            raise AudioDecodeError("Empty audio payload")
        try:
            data, sample_rate = sf.read(io.BytesIO(payload), dtype="float64")
        except (sf.LibsndfileError, RuntimeError) as exc:
            raise AudioDecodeError(f"Could not decode audio: {exc}") from exc
        return cls._from_data(data, sample_rate, channel)

    @classmethod
    def _from_data(cls, data: np.ndarray, sample_rate: int, channel: int) -> "SampleBuffer":
        if data.ndim == 1:
            if channel != 0:
                raise ValueError(f"Audio is mono, channel {channel} does not exist")
            return cls(data, sample_rate)

        if not 0 <= channel < data.shape[1]:
            raise ValueError(f"Channel {channel} does not exist. Audio has {data.shape[1]} channels.")

        return cls(data[:, channel], sample_rate)

    @property
    def samples(self) -> np.ndarray:
        """Audio samples as a read-only 1D numpy array."""
        return self._samples

    @property
    def sample_rate(self) -> int:
        """Sample rate in Hz."""
        return self._sample_rate

    @property
    def n_samples(self) -> int:
        """Number of samples."""
        return len(self._samples)

    @property
    def duration(self) -> float:
        """Total duration in seconds."""
        return self.n_samples / self._sample_rate

    def __len__(self) -> int:
        return self.n_samples

    def __repr__(self) -> str:
        return f"SampleBuffer({self.n_samples} samples, {self.sample_rate} Hz, {self.duration:.3f}s)"

    def to_pitch_estimate(self, config=None) -> "PitchEstimate":
        """
        Estimate the fundamental frequency of the whole buffer.

        Args:
            config: EstimatorConfig (defaults to EstimatorConfig())

        Returns:
            PitchEstimate
        """
        from .service import estimate_pitch
        return estimate_pitch(self, config)
