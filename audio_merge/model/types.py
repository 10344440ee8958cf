from __future__ import annotations

from array import array
from dataclasses import dataclass, field
from typing import Iterable, Sequence


def _as_float_array(samples: Iterable[float]) -> array:
    if isinstance(samples, array) and samples.typecode == "f":
        return samples
    return array("f", samples)


@dataclass
class SampleBuffer:
    """Decoded multi-channel audio.

    Channels are stored planar (one float32 array per channel), values nominally
    in [-1, 1]. Every channel has the same length; that length is the frame count.

    Buffers are treated as read-only once built: the concatenator and encoder
    never write into them.
    """

    channel_count: int
    sample_rate: int
    channels: list[array] = field(default_factory=list)

    # Where the buffer came from (file path, label). Diagnostics only.
    source: str | None = None

    def __post_init__(self) -> None:
        self.channel_count = int(self.channel_count)
        self.sample_rate = int(self.sample_rate)
        if self.channel_count < 0:
            raise ValueError(f"channel_count must be >= 0: {self.channel_count}")
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be > 0: {self.sample_rate}")

        self.channels = [_as_float_array(ch) for ch in self.channels]
        if len(self.channels) != self.channel_count:
            raise ValueError(f"expected {self.channel_count} channels, got {len(self.channels)}")

        lengths = {len(ch) for ch in self.channels}
        if len(lengths) > 1:
            raise ValueError(f"channels have different lengths: {sorted(lengths)}")

    @property
    def frame_count(self) -> int:
        if not self.channels:
            return 0
        return len(self.channels[0])

    @property
    def duration_seconds(self) -> float:
        return self.frame_count / float(self.sample_rate)

    def channel(self, index: int) -> array:
        return self.channels[index]

    @classmethod
    def from_interleaved(
        cls,
        samples: Sequence[float],
        *,
        channel_count: int,
        sample_rate: int,
        source: str | None = None,
    ) -> "SampleBuffer":
        """Split frame-major interleaved samples (L,R,L,R,...) into planar channels.

        A trailing partial frame is dropped.
        """

        ch = int(channel_count)
        if ch <= 0:
            raise ValueError(f"channel_count must be > 0: {ch}")
        usable = len(samples) - (len(samples) % ch)
        channels = [_as_float_array(samples[c:usable:ch]) for c in range(ch)]
        return cls(channel_count=ch, sample_rate=sample_rate, channels=channels, source=source)

    @classmethod
    def silent(cls, *, channel_count: int, sample_rate: int, frame_count: int) -> "SampleBuffer":
        n = max(0, int(frame_count))
        channels = [array("f", bytes(4 * n)) for _ in range(int(channel_count))]
        return cls(channel_count=channel_count, sample_rate=sample_rate, channels=channels)


@dataclass
class MergedBuffer(SampleBuffer):
    """Concatenation result; same shape as SampleBuffer.

    `sources` lists the inputs in merge order.
    """

    sources: list[str] = field(default_factory=list)
