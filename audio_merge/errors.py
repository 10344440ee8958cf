from __future__ import annotations


class MergeError(RuntimeError):
    """Base class for every failure raised by audio-merge."""


class EmptyInputError(MergeError, ValueError):
    def __init__(self, message: str = "no input buffers provided") -> None:
        super().__init__(message)


class DecodeError(MergeError):
    """An input file could not be turned into a sample buffer."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"failed to decode {path}: {reason}")
        self.path = path
        self.reason = reason


class IncompatibleBufferError(MergeError, ValueError):
    def __init__(self, index: int, field: str, expected: int, actual: int) -> None:
        super().__init__(f"buffer {index} has {field}={actual}, expected {expected} (from buffer 0)")
        self.index = index
        self.field = field
        self.expected = expected
        self.actual = actual


class WavFormatError(MergeError, ValueError):
    """Header values out of range, or bytes that are not a canonical 16-bit PCM WAV."""
