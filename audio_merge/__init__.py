"""Join decoded audio files end to end and write one canonical 16-bit PCM WAV.

Core pipeline:
- decode_all(paths, decoder) -> list[SampleBuffer]   (parallel, input order kept)
- concatenate(buffers) -> MergedBuffer
- encode_wav(buffer) -> bytes
- merge_files(paths, ...) runs all three
"""

from .audio.concat import concatenate
from .audio.wav import encode_wav, quantize_sample
from .errors import DecodeError, EmptyInputError, IncompatibleBufferError, MergeError, WavFormatError
from .model.types import MergedBuffer, SampleBuffer
from .pipeline import merge_buffers, merge_files

__all__ = [
    "DecodeError",
    "EmptyInputError",
    "IncompatibleBufferError",
    "MergeError",
    "MergedBuffer",
    "SampleBuffer",
    "WavFormatError",
    "concatenate",
    "encode_wav",
    "merge_buffers",
    "merge_files",
    "quantize_sample",
]
