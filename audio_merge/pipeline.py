from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from audio_merge.audio.concat import concatenate
from audio_merge.audio.decode import Decoder, decode_all, default_decoder
from audio_merge.audio.wav import HEADER_SIZE, encode_wav, write_wav_bytes
from audio_merge.errors import EmptyInputError
from audio_merge.model.types import SampleBuffer
from audio_merge.util.limits import MAX_INPUTS
from audio_merge.util.state_log import log_event

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class MergeSummary:
    inputs: list[str]
    channel_count: int
    sample_rate: int
    frame_count: int
    duration_seconds: float
    wav_bytes: int
    output: str | None = None
    input_frames: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "inputs": list(self.inputs),
            "input_frames": list(self.input_frames),
            "channel_count": self.channel_count,
            "sample_rate": self.sample_rate,
            "frame_count": self.frame_count,
            "duration_seconds": self.duration_seconds,
            "wav_bytes": self.wav_bytes,
            "output": self.output,
        }


def summarize(buffers: Sequence[SampleBuffer], merged: SampleBuffer, *, output: str | None = None) -> MergeSummary:
    return MergeSummary(
        inputs=[b.source or f"buffer{i}" for i, b in enumerate(buffers)],
        input_frames=[b.frame_count for b in buffers],
        channel_count=merged.channel_count,
        sample_rate=merged.sample_rate,
        frame_count=merged.frame_count,
        duration_seconds=merged.duration_seconds,
        wav_bytes=HEADER_SIZE + merged.frame_count * merged.channel_count * 2,
        output=output,
    )


def merge_buffers(buffers: Sequence[SampleBuffer], *, strict: bool = True) -> bytes:
    """Concatenate already-decoded buffers and return the WAV bytes."""
    return encode_wav(concatenate(buffers, strict=strict))


def merge_files(
    paths: Sequence[str | Path],
    *,
    decoder: Decoder | None = None,
    out: str | Path | None = None,
    strict: bool = True,
    max_workers: int | None = None,
    record_event: bool = True,
) -> tuple[bytes, MergeSummary]:
    """Decode `paths` (in parallel), join them in order and encode one WAV.

    Any decode failure aborts the whole merge; nothing is written in that case.
    If `out` is given the WAV is written there as well as returned.
    """

    if not paths:
        raise EmptyInputError("no input files provided")
    if len(paths) > MAX_INPUTS:
        raise ValueError(f"too many inputs: {len(paths)} (max {MAX_INPUTS})")

    dec = decoder or default_decoder()
    log.info("decoding %d inputs with %s", len(paths), type(dec).__name__)
    buffers = decode_all(paths, dec, max_workers=max_workers)

    merged = concatenate(buffers, strict=strict)
    data = encode_wav(merged)

    out_str: str | None = None
    if out is not None:
        out_str = write_wav_bytes(out, data)
        log.info("wrote %s (%d bytes)", out_str, len(data))

    summary = summarize(buffers, merged, output=out_str)

    if record_event:
        try:
            log_event({"event": "merge", **summary.to_dict()})
        except OSError as e:
            log.warning("could not append to event log: %s", e)

    return data, summary
