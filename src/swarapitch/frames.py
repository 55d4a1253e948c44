"""
Frame segmentation and DC removal.

A buffer is cut into fixed-size frames starting at 0, H, 2H, ... for as long
as a whole frame fits. Trailing samples shorter than one frame are not
analyzed. Every frame has its own mean subtracted before analysis, so a
constant microphone or encoder bias never reaches the detectors.
"""

from dataclasses import dataclass
from typing import Iterator

import numpy as np

from .config import ConfigurationError


@dataclass(frozen=True)
class Frame:
    """A DC-removed analysis window."""
    index: int             # Position in the frame sequence (0-based)
    start: int             # First sample index in the source buffer
    samples: np.ndarray    # frame_size samples, mean removed


def remove_dc(frame: np.ndarray) -> np.ndarray:
    """Return a copy of the frame with its arithmetic mean subtracted."""
    x = np.asarray(frame, dtype=np.float64)
    if x.size == 0:
        return x.copy()
    return x - np.mean(x)


class FrameSequence:
    """
    Lazy, restartable sequence of frames over one buffer.

    Iterating twice yields the same frames; nothing is computed until
    iteration.
    """

    def __init__(self, samples: np.ndarray, frame_size: int, hop_size: int):
        if frame_size <= 0:
            raise ConfigurationError(f"frame_size must be positive, got {frame_size}")
        if hop_size <= 0:
            raise ConfigurationError(f"hop_size must be positive, got {hop_size}")
        if hop_size > frame_size:
            raise ConfigurationError(
                f"hop_size ({hop_size}) must not exceed frame_size ({frame_size})"
            )
        self._samples = np.asarray(samples, dtype=np.float64)
        self._frame_size = int(frame_size)
        self._hop_size = int(hop_size)

    @property
    def frame_size(self) -> int:
        return self._frame_size

    @property
    def hop_size(self) -> int:
        return self._hop_size

    def __len__(self) -> int:
        n = len(self._samples)
        if n < self._frame_size:
            return 0
        return (n - self._frame_size) // self._hop_size + 1

    def __iter__(self) -> Iterator[Frame]:
        for index in range(len(self)):
            start = index * self._hop_size
            raw = self._samples[start:start + self._frame_size]
            yield Frame(index, start, remove_dc(raw))

    def __repr__(self) -> str:
        return (f"FrameSequence({len(self)} frames, size={self._frame_size}, "
                f"hop={self._hop_size})")


def frame_buffer(samples: np.ndarray, frame_size: int, hop_size: int) -> FrameSequence:
    """
    Split samples into overlapping DC-removed frames.

    Args:
        samples: 1D sample array
        frame_size: Samples per frame (F > 0)
        hop_size: Stride between frame starts (0 < H <= F)

    Returns:
        FrameSequence (empty when fewer than frame_size samples)

    Raises:
        ConfigurationError: If frame_size or hop_size is invalid
    """
    return FrameSequence(samples, frame_size, hop_size)
