from __future__ import annotations

import logging
from array import array
from typing import Sequence

from audio_merge.errors import EmptyInputError, IncompatibleBufferError
from audio_merge.model.types import MergedBuffer, SampleBuffer

log = logging.getLogger(__name__)


def check_compatible(buffers: Sequence[SampleBuffer]) -> None:
    """Raise IncompatibleBufferError if any buffer disagrees with buffers[0].

    Channel count is checked before sample rate.
    """

    if not buffers:
        raise EmptyInputError()
    first = buffers[0]
    for i, b in enumerate(buffers[1:], start=1):
        if b.channel_count != first.channel_count:
            raise IncompatibleBufferError(i, "channel_count", first.channel_count, b.channel_count)
        if b.sample_rate != first.sample_rate:
            raise IncompatibleBufferError(i, "sample_rate", first.sample_rate, b.sample_rate)


def concatenate(buffers: Sequence[SampleBuffer], *, strict: bool = True) -> MergedBuffer:
    """Join buffers end to end, channel by channel, in the order given.

    Shape (channel count, sample rate) comes from buffers[0].

    strict=True rejects any buffer whose shape differs. strict=False merges anyway:
    - a buffer with fewer channels leaves the missing channels silent for its span
    - a buffer with more channels has the extra channels dropped
    - sample rate differences are ignored (no resampling)
    """

    if not buffers:
        raise EmptyInputError()

    if strict:
        check_compatible(buffers)

    first = buffers[0]
    channel_count = first.channel_count
    total = sum(b.frame_count for b in buffers)

    # Preallocated with zeros so lenient merges leave unset slots silent.
    merged = [array("f", bytes(4 * total)) for _ in range(channel_count)]

    offset = 0
    for i, b in enumerate(buffers):
        n = b.frame_count
        if b.channel_count != channel_count or b.sample_rate != first.sample_rate:
            log.warning(
                "buffer %d (%s) has %d ch @ %d Hz, merging as %d ch @ %d Hz",
                i,
                b.source or "?",
                b.channel_count,
                b.sample_rate,
                channel_count,
                first.sample_rate,
            )
        for c in range(min(channel_count, b.channel_count)):
            merged[c][offset : offset + n] = b.channels[c]
        offset += n

    log.debug("concatenated %d buffers into %d frames x %d ch", len(buffers), total, channel_count)

    return MergedBuffer(
        channel_count=channel_count,
        sample_rate=first.sample_rate,
        channels=merged,
        sources=[b.source or f"buffer{i}" for i, b in enumerate(buffers)],
    )
