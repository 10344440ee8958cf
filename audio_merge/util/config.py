from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

DECODER_CHOICES = ("auto", "ffmpeg", "wav")


def default_config_dir() -> Path:
    env = os.environ.get("AUDIO_MERGE_CONFIG_DIR")
    if env:
        return Path(env).expanduser()
    return Path.home() / ".config" / "audio-merge"


def default_config_path() -> Path:
    return default_config_dir() / "config.json"


@dataclass
class AppConfig:
    decoder: str = "auto"  # auto|ffmpeg|wav
    max_workers: int | None = None
    strict: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "decoder": self.decoder,
            "max_workers": self.max_workers,
            "strict": self.strict,
        }

    @staticmethod
    def from_dict(d: dict[str, Any]) -> "AppConfig":
        decoder = str(d.get("decoder") or "auto").strip().lower()
        if decoder not in DECODER_CHOICES:
            raise ValueError(f"config: decoder must be one of {', '.join(DECODER_CHOICES)}")
        workers = d.get("max_workers")
        return AppConfig(
            decoder=decoder,
            max_workers=int(workers) if workers else None,
            strict=bool(d.get("strict", True)),
        )


def load_config(path: Path | None = None) -> AppConfig:
    """Read the JSON config; AUDIO_MERGE_DECODER overrides the decoder choice."""
    p = path or default_config_path()
    cfg = AppConfig()
    if p.exists():
        data = json.loads(p.read_text(encoding="utf-8"))
        cfg = AppConfig.from_dict(data)

    env_decoder = os.environ.get("AUDIO_MERGE_DECODER")
    if env_decoder:
        cfg = AppConfig.from_dict({**cfg.to_dict(), "decoder": env_decoder})
    return cfg


def save_config(cfg: AppConfig, path: Path | None = None) -> Path:
    p = path or default_config_path()
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(cfg.to_dict(), indent=2, sort_keys=True) + "\n", encoding="utf-8")
    return p
