from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml


@dataclass
class MergeManifest:
    name: str
    inputs: list[str] = field(default_factory=list)
    output: str | None = None
    strict: bool | None = None
    max_workers: int | None = None
    decoder: str | None = None


def _resolve(base: Path, p: str) -> str:
    pp = Path(p).expanduser()
    if not pp.is_absolute():
        pp = base / pp
    return str(pp)


def load_merge_manifest(path: str | Path) -> MergeManifest:
    """Load a YAML merge manifest; relative paths resolve against its directory."""
    p = Path(path)
    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"invalid merge manifest YAML: {p}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("merge manifest YAML must be a mapping/object")

    inputs = data.get("inputs")
    if not inputs:
        raise ValueError("merge manifest missing required field: inputs")
    if not isinstance(inputs, list):
        raise ValueError("merge manifest field 'inputs' must be a list of paths")

    base = p.parent
    output = data.get("output")
    workers = data.get("max_workers")

    return MergeManifest(
        name=str(data.get("name") or p.stem),
        inputs=[_resolve(base, str(x)) for x in inputs],
        output=_resolve(base, str(output)) if output else None,
        strict=bool(data["strict"]) if data.get("strict") is not None else None,
        max_workers=int(workers) if workers else None,
        decoder=str(data["decoder"]) if data.get("decoder") else None,
    )


def save_report_json(path: str | Path, report: dict[str, Any]) -> str:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(json.dumps(report, indent=2, sort_keys=True), encoding="utf-8")
    return str(out)


def manifest_to_dict(m: MergeManifest) -> dict[str, Any]:
    return asdict(m)
