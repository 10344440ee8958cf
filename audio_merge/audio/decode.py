from __future__ import annotations

import json
import logging
import shutil
import struct
import subprocess
import sys
import wave
from array import array
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Protocol, Sequence

from audio_merge.errors import DecodeError
from audio_merge.model.types import SampleBuffer

log = logging.getLogger(__name__)


class Decoder(Protocol):
    """Turns one encoded audio file into a SampleBuffer, or raises DecodeError."""

    def decode(self, path: str | Path) -> SampleBuffer: ...


def _run(cmd: list[str]) -> subprocess.CompletedProcess[bytes]:
    return subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, check=False)


class FfmpegDecoder:
    """Decode anything ffmpeg understands (mp3, m4a, flac, ogg, wav, ...).

    ffprobe supplies the stream's channel count and sample rate, then ffmpeg
    writes interleaved float32 PCM to stdout, which is split into channels.
    """

    def __init__(self, ffmpeg: str = "ffmpeg", ffprobe: str = "ffprobe") -> None:
        self.ffmpeg = ffmpeg
        self.ffprobe = ffprobe

    def _probe(self, src: str) -> tuple[int, int]:
        cmd = [
            self.ffprobe,
            "-v",
            "error",
            "-select_streams",
            "a:0",
            "-show_entries",
            "stream=channels,sample_rate",
            "-of",
            "json",
            src,
        ]
        try:
            p = _run(cmd)
        except FileNotFoundError:
            raise DecodeError(src, f"{self.ffprobe} not found on PATH") from None
        if p.returncode != 0:
            raise DecodeError(src, _stderr_tail(p.stderr) or f"ffprobe exited with {p.returncode}")

        try:
            info = json.loads(p.stdout.decode("utf-8", errors="replace") or "{}")
            streams = info.get("streams") or []
            stream = streams[0] if streams else {}
            ch = int(stream.get("channels") or 0)
            sr = int(stream.get("sample_rate") or 0)
        except (ValueError, TypeError, AttributeError) as e:
            raise DecodeError(src, f"unreadable ffprobe output ({e})") from e

        if ch <= 0 or sr <= 0:
            raise DecodeError(src, "no audio stream found")
        return ch, sr

    def decode(self, path: str | Path) -> SampleBuffer:
        src = str(path)
        ch, sr = self._probe(src)

        cmd = [
            self.ffmpeg,
            "-hide_banner",
            "-loglevel",
            "error",
            "-i",
            src,
            "-map",
            "0:a:0",
            "-ac",
            str(ch),
            "-ar",
            str(sr),
            "-f",
            "f32le",
            "-",
        ]
        log.debug("decoding %s (%d ch @ %d Hz) via ffmpeg", src, ch, sr)
        try:
            p = _run(cmd)
        except FileNotFoundError:
            raise DecodeError(src, f"{self.ffmpeg} not found on PATH") from None
        if p.returncode != 0:
            raise DecodeError(src, _stderr_tail(p.stderr) or f"ffmpeg exited with {p.returncode}")

        buf = p.stdout or b""
        a = array("f")
        a.frombytes(buf[: len(buf) - (len(buf) % 4)])
        if sys.byteorder != "little":
            a.byteswap()
        return SampleBuffer.from_interleaved(a, channel_count=ch, sample_rate=sr, source=src)


def _stderr_tail(stderr: bytes | None, limit: int = 300) -> str:
    s = (stderr or b"").decode("utf-8", errors="replace").strip()
    return s[-limit:]


def _pcm_to_floats(data: bytes, width: int) -> list[float]:
    """Little-endian integer PCM -> floats in [-1, 1). 8-bit WAV is unsigned."""

    if width == 1:
        return [(b - 128) / 128.0 for b in data]
    if width == 2:
        a = array("h")
        a.frombytes(data[: len(data) - (len(data) % 2)])
        if sys.byteorder != "little":
            a.byteswap()
        return [v / 32768.0 for v in a]
    if width == 3:
        n = len(data) // 3
        return [int.from_bytes(data[3 * i : 3 * i + 3], "little", signed=True) / 8388608.0 for i in range(n)]
    if width == 4:
        a = array("i")
        if a.itemsize != 4:
            a = array("l")
        a.frombytes(data[: len(data) - (len(data) % 4)])
        if sys.byteorder != "little":
            a.byteswap()
        return [v / 2147483648.0 for v in a]
    raise ValueError(f"unsupported PCM sample width: {width}")


# wave rejects float WAVs (tag 3) and, before 3.12, WAVE_FORMAT_EXTENSIBLE.
_RIFF_FALLBACK_ERRORS = ("unknown format", "unknown extended format")

WAVE_FORMAT_PCM = 0x0001
WAVE_FORMAT_IEEE_FLOAT = 0x0003
WAVE_FORMAT_EXTENSIBLE = 0xFFFE


class WavDecoder:
    """Pure-Python WAV reader (integer PCM 8/16/24/32-bit, IEEE float 32/64-bit).

    WAVE_FORMAT_EXTENSIBLE files are accepted when their subformat is PCM or
    IEEE float. Used when ffmpeg is not installed.
    """

    def decode(self, path: str | Path) -> SampleBuffer:
        src = str(path)
        try:
            with wave.open(src, "rb") as wf:
                sr = int(wf.getframerate())
                ch = int(wf.getnchannels())
                sw = int(wf.getsampwidth())
                data = wf.readframes(wf.getnframes())
            samples = _pcm_to_floats(data, sw)
        except FileNotFoundError:
            raise DecodeError(src, "file not found") from None
        except OSError as e:
            raise DecodeError(src, str(e)) from e
        except (wave.Error, EOFError) as e:
            if not any(m in str(e) for m in _RIFF_FALLBACK_ERRORS):
                raise DecodeError(src, str(e)) from e
            ch, sr, samples = self._read_riff(src)
        except ValueError as e:
            raise DecodeError(src, str(e)) from e

        if ch <= 0:
            raise DecodeError(src, "WAV declares zero channels")
        if sr <= 0:
            raise DecodeError(src, "WAV declares a zero sample rate")
        return SampleBuffer.from_interleaved(samples, channel_count=ch, sample_rate=sr, source=src)

    def _read_riff(self, src: str) -> tuple[int, int, list[float]]:
        with open(src, "rb") as f:
            header = f.read(12)
            if len(header) < 12 or header[0:4] != b"RIFF" or header[8:12] != b"WAVE":
                raise DecodeError(src, "invalid WAV header")

            fmt_chunk: bytes | None = None
            data_chunk: bytes | None = None
            while True:
                chunk_hdr = f.read(8)
                if len(chunk_hdr) < 8:
                    break
                cid = chunk_hdr[0:4]
                size = struct.unpack("<I", chunk_hdr[4:8])[0]
                payload = f.read(size)
                if cid == b"fmt ":
                    fmt_chunk = payload
                elif cid == b"data":
                    data_chunk = payload
                # pad to even
                if size % 2 == 1:
                    f.read(1)

        if fmt_chunk is None or data_chunk is None or len(fmt_chunk) < 16:
            raise DecodeError(src, "missing fmt/data chunk")

        fmt_tag, ch, sr, _byte_rate, _block_align, bits = struct.unpack("<HHIIHH", fmt_chunk[:16])
        if fmt_tag == WAVE_FORMAT_EXTENSIBLE:
            # cbSize, valid bits, channel mask, then the subformat GUID whose
            # first two bytes are the real format tag.
            if len(fmt_chunk) < 40:
                raise DecodeError(src, "truncated WAVE_FORMAT_EXTENSIBLE fmt chunk")
            fmt_tag = struct.unpack("<H", fmt_chunk[24:26])[0]

        if fmt_tag == WAVE_FORMAT_PCM:
            try:
                return int(ch), int(sr), _pcm_to_floats(data_chunk, max(1, int(bits // 8)))
            except ValueError as e:
                raise DecodeError(src, str(e)) from e
        if fmt_tag != WAVE_FORMAT_IEEE_FLOAT:
            raise DecodeError(src, f"unsupported WAV format tag: {fmt_tag}")
        if bits not in {32, 64}:
            raise DecodeError(src, f"unsupported float WAV bit depth: {bits}")

        arr = array("f") if bits == 32 else array("d")
        arr.frombytes(data_chunk[: len(data_chunk) - (len(data_chunk) % arr.itemsize)])
        if sys.byteorder != "little":
            arr.byteswap()
        return int(ch), int(sr), [float(x) for x in arr]


def default_decoder(preference: str = "auto") -> Decoder:
    """Pick a decoder: "ffmpeg", "wav", or "auto" (ffmpeg when it is on PATH)."""

    pref = (preference or "auto").strip().lower()
    if pref == "ffmpeg":
        return FfmpegDecoder()
    if pref == "wav":
        return WavDecoder()
    if pref != "auto":
        raise ValueError(f"unknown decoder: {preference} (expected auto, ffmpeg or wav)")
    if shutil.which("ffmpeg") and shutil.which("ffprobe"):
        return FfmpegDecoder()
    log.info("ffmpeg not found, falling back to the WAV-only decoder")
    return WavDecoder()


def decode_all(paths: Sequence[str | Path], decoder: Decoder, *, max_workers: int | None = None) -> list[SampleBuffer]:
    """Decode every path on a thread pool; results come back in input order.

    The first failure (in input order) is raised and the remaining decodes are
    cancelled.
    """

    if not paths:
        return []

    workers = max(1, min(int(max_workers or 4), len(paths)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="decode") as ex:
        futures: list[Future[SampleBuffer]] = [ex.submit(decoder.decode, p) for p in paths]
        out: list[SampleBuffer] = []
        try:
            for fut in futures:
                out.append(fut.result())
        except BaseException:
            for fut in futures:
                fut.cancel()
            raise
    return out
