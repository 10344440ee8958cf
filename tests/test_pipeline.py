from __future__ import annotations

import json
import struct
import wave
from pathlib import Path

import pytest

from audio_merge.audio.concat import concatenate
from audio_merge.audio.decode import WavDecoder
from audio_merge.audio.wav import encode_wav, read_wav_header
from audio_merge.errors import DecodeError, EmptyInputError, IncompatibleBufferError
from audio_merge.model.types import SampleBuffer
from audio_merge.pipeline import merge_buffers, merge_files


def _write_wav(path: Path, values: list[int], *, channels: int = 1, sr: int = 8000) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with wave.open(str(path), "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(2)
        wf.setframerate(sr)
        wf.writeframes(struct.pack(f"<{len(values)}h", *values))


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("AUDIO_MERGE_CONFIG_DIR", str(tmp_path / "cfg"))


def test_merge_buffers_is_concat_then_encode() -> None:
    a = SampleBuffer(channel_count=1, sample_rate=8000, channels=[[0.5, 0.25]])
    b = SampleBuffer(channel_count=1, sample_rate=8000, channels=[[-0.5]])
    assert merge_buffers([a, b]) == encode_wav(concatenate([a, b]))


def test_merge_files_writes_and_returns_wav(tmp_path: Path) -> None:
    a = tmp_path / "a.wav"
    b = tmp_path / "b.wav"
    _write_wav(a, [100, -100, 200, -200], channels=2)
    _write_wav(b, [300, -300], channels=2)

    out = tmp_path / "out" / "merged.wav"
    data, summary = merge_files([a, b], decoder=WavDecoder(), out=out, record_event=False)

    assert out.read_bytes() == data
    assert len(data) == 44 + 3 * 2 * 2
    assert summary.frame_count == 3
    assert summary.input_frames == [2, 1]
    assert summary.channel_count == 2
    assert summary.output == str(out)
    assert summary.wav_bytes == len(data)

    # negatives come back exactly; positives lose one step (read as /32768, written as *32767)
    with wave.open(str(out), "rb") as wf:
        raw = wf.readframes(wf.getnframes())
    assert struct.unpack("<6h", raw) == (99, -100, 199, -200, 299, -300)


def test_merge_files_without_output_only_returns_bytes(tmp_path: Path) -> None:
    a = tmp_path / "a.wav"
    _write_wav(a, [0, 0, 0])
    data, summary = merge_files([a], decoder=WavDecoder(), record_event=False)
    assert summary.output is None
    assert read_wav_header(data).frame_count == 3


def test_merge_files_rejects_empty_list() -> None:
    with pytest.raises(EmptyInputError):
        merge_files([], decoder=WavDecoder())


def test_merge_files_fails_fast_and_writes_nothing(tmp_path: Path) -> None:
    a = tmp_path / "a.wav"
    _write_wav(a, [1, 2, 3])
    out = tmp_path / "merged.wav"

    with pytest.raises(DecodeError):
        merge_files([a, tmp_path / "nope.wav"], decoder=WavDecoder(), out=out)
    assert not out.exists()


def test_merge_files_strict_and_lenient(tmp_path: Path) -> None:
    mono = tmp_path / "mono.wav"
    stereo = tmp_path / "stereo.wav"
    _write_wav(mono, [-10, -20])
    _write_wav(stereo, [-1, -2, -3, -4], channels=2)

    with pytest.raises(IncompatibleBufferError):
        merge_files([mono, stereo], decoder=WavDecoder(), record_event=False)

    data, summary = merge_files([mono, stereo], decoder=WavDecoder(), strict=False, record_event=False)
    assert summary.channel_count == 1
    assert summary.frame_count == 4
    assert struct.unpack("<4h", data[44:]) == (-10, -20, -1, -3)


def test_merge_files_appends_event(tmp_path: Path) -> None:
    a = tmp_path / "a.wav"
    _write_wav(a, [5, 6])
    merge_files([a, a], decoder=WavDecoder())

    log_path = tmp_path / "cfg" / "events.jsonl"
    lines = log_path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    ev = json.loads(lines[0])
    assert ev["event"] == "merge"
    assert ev["frame_count"] == 4
    assert ev["inputs"] == [str(a), str(a)]
