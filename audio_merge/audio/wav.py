from __future__ import annotations

import math
import struct
import sys
from array import array
from dataclasses import dataclass
from pathlib import Path

from audio_merge.errors import WavFormatError
from audio_merge.model.types import SampleBuffer
from audio_merge.util.limits import MAX_CHANNELS, MAX_DATA_BYTES, MAX_SAMPLE_RATE

HEADER_SIZE = 44
BYTES_PER_SAMPLE = 2
BITS_PER_SAMPLE = 16
PCM_FORMAT = 1

# RIFF id, riff size, WAVE, "fmt ", fmt size, format, channels, rate, byte rate,
# block align, bits, "data", data size
_HEADER = struct.Struct("<4sI4s4sIHHIIHH4sI")


@dataclass(frozen=True)
class WavHeader:
    chunk_size: int
    audio_format: int
    channel_count: int
    sample_rate: int
    byte_rate: int
    block_align: int
    bits_per_sample: int
    data_size: int

    @property
    def frame_count(self) -> int:
        if self.block_align <= 0:
            return 0
        return self.data_size // self.block_align

    @property
    def duration_seconds(self) -> float:
        if self.sample_rate <= 0:
            return 0.0
        return self.frame_count / float(self.sample_rate)

    def to_dict(self) -> dict:
        return {
            "chunk_size": self.chunk_size,
            "audio_format": self.audio_format,
            "channel_count": self.channel_count,
            "sample_rate": self.sample_rate,
            "byte_rate": self.byte_rate,
            "block_align": self.block_align,
            "bits_per_sample": self.bits_per_sample,
            "data_size": self.data_size,
            "frame_count": self.frame_count,
            "duration_seconds": self.duration_seconds,
        }


def quantize_sample(x: float) -> int:
    """Map a float sample to a signed 16-bit value.

    Clips to [-1, 1], scales negatives by 32768 and the rest by 32767, then
    truncates toward zero. NaN maps to 0.
    """

    v = float(x)
    if math.isnan(v):
        return 0
    v = max(-1.0, min(1.0, v))
    if v < 0:
        return math.trunc(v * 32768.0)
    return math.trunc(v * 32767.0)


def wav_header(channel_count: int, sample_rate: int, frame_count: int) -> bytes:
    """Build the canonical 44-byte PCM header for 16-bit samples."""

    ch = int(channel_count)
    sr = int(sample_rate)
    n = int(frame_count)
    if ch < 0 or ch > MAX_CHANNELS:
        raise WavFormatError(f"channel count out of range for WAV: {ch}")
    if sr < 0 or sr > MAX_SAMPLE_RATE:
        raise WavFormatError(f"sample rate out of range for WAV: {sr}")
    if n < 0:
        raise WavFormatError(f"frame count must be >= 0: {n}")

    data_bytes = n * ch * BYTES_PER_SAMPLE
    if data_bytes > MAX_DATA_BYTES:
        raise WavFormatError(f"audio too long for a WAV file ({data_bytes} data bytes)")
    byte_rate = sr * ch * BYTES_PER_SAMPLE
    if byte_rate > 0xFFFFFFFF:
        raise WavFormatError(f"byte rate does not fit a WAV header: {byte_rate}")

    return _HEADER.pack(
        b"RIFF",
        36 + data_bytes,
        b"WAVE",
        b"fmt ",
        16,
        PCM_FORMAT,
        ch,
        sr,
        byte_rate,
        ch * BYTES_PER_SAMPLE,
        BITS_PER_SAMPLE,
        b"data",
        data_bytes,
    )


def encode_wav(buffer: SampleBuffer) -> bytes:
    """Serialize a buffer as a canonical 16-bit PCM WAV.

    Samples are interleaved frame-major (f0c0, f0c1, ..., f1c0, ...).
    """

    ch = buffer.channel_count
    n = buffer.frame_count
    header = wav_header(ch, buffer.sample_rate, n)

    pcm = array("h", bytes(BYTES_PER_SAMPLE * n * ch))
    for c in range(ch):
        pcm[c::ch] = array("h", [quantize_sample(x) for x in buffer.channels[c]])

    if sys.byteorder != "little":
        pcm.byteswap()
    return header + pcm.tobytes()


def write_wav_bytes(path: str | Path, data: bytes) -> str:
    """Write already-encoded WAV bytes, creating parent directories."""
    out = Path(path).expanduser()
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(data)
    return str(out)


def write_wav(path: str | Path, buffer: SampleBuffer) -> str:
    return write_wav_bytes(path, encode_wav(buffer))


def read_wav_header(data: bytes) -> WavHeader:
    """Parse the 44-byte header written by encode_wav.

    Only the canonical layout is accepted (fmt chunk of 16 bytes directly
    followed by the data chunk).
    """

    if len(data) < HEADER_SIZE:
        raise WavFormatError(f"too short for a WAV header: {len(data)} bytes")

    riff, chunk_size, wave_id, fmt_id, fmt_size, audio_format, ch, sr, byte_rate, block_align, bits, data_id, data_size = (
        _HEADER.unpack_from(data, 0)
    )
    if riff != b"RIFF" or wave_id != b"WAVE":
        raise WavFormatError("not a RIFF/WAVE stream")
    if fmt_id != b"fmt " or fmt_size != 16:
        raise WavFormatError("missing canonical fmt chunk")
    if data_id != b"data":
        raise WavFormatError("data chunk does not follow fmt chunk")

    return WavHeader(
        chunk_size=chunk_size,
        audio_format=audio_format,
        channel_count=ch,
        sample_rate=sr,
        byte_rate=byte_rate,
        block_align=block_align,
        bits_per_sample=bits,
        data_size=data_size,
    )


def decode_wav(data: bytes, *, source: str | None = None) -> SampleBuffer:
    """Read a canonical 16-bit PCM WAV back into a float buffer (value / 32768)."""

    hdr = read_wav_header(data)
    if hdr.audio_format != PCM_FORMAT or hdr.bits_per_sample != BITS_PER_SAMPLE:
        raise WavFormatError(f"expected 16-bit PCM, got format={hdr.audio_format} bits={hdr.bits_per_sample}")
    if hdr.channel_count <= 0:
        raise WavFormatError("WAV declares zero channels")

    payload = data[HEADER_SIZE : HEADER_SIZE + hdr.data_size]
    if len(payload) < hdr.data_size:
        raise WavFormatError(f"truncated data chunk: {len(payload)} of {hdr.data_size} bytes")

    pcm = array("h")
    pcm.frombytes(payload[: len(payload) - (len(payload) % 2)])
    if sys.byteorder != "little":
        pcm.byteswap()

    return SampleBuffer.from_interleaved(
        [v / 32768.0 for v in pcm],
        channel_count=hdr.channel_count,
        sample_rate=hdr.sample_rate,
        source=source,
    )
