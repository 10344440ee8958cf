from __future__ import annotations

"""Hard limits for merge inputs and WAV header fields.

The WAV limits come straight from the header field widths (u16 channel count,
u32 sample rate / byte rate / chunk sizes). They are enforced by the encoder
and by the pipeline before any decoding starts.
"""

MAX_INPUTS = 1024

# NumChannels is a u16 field.
MAX_CHANNELS = 0xFFFF

# ByteRate (sample_rate * 2 at mono) must still fit a u32.
MAX_SAMPLE_RATE = 0xFFFFFFFF // 2

# ChunkSize = 36 + data bytes must fit a u32.
MAX_DATA_BYTES = 0xFFFFFFFF - 36
