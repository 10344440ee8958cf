from __future__ import annotations

import argparse
import logging
import shutil
import sys
from dataclasses import dataclass
from pathlib import Path

from audio_merge.errors import MergeError
from audio_merge.util.config import DECODER_CHOICES, default_config_path, load_config


@dataclass
class DoctorResult:
    ok: bool
    notes: list[str]


def _doctor() -> DoctorResult:
    notes: list[str] = []
    ok = True

    for tool in ("ffmpeg", "ffprobe"):
        found = shutil.which(tool)
        if found:
            notes.append(f"{tool}: OK ({found})")
        else:
            ok = False
            notes.append(f"{tool}: MISSING (needed for mp3/m4a/ogg/flac inputs; WAV inputs still work)")

    notes.append(f"config: {default_config_path()}")
    notes.append(f"python: {sys.version.split()[0]}")
    notes.append(f"platform: {sys.platform}")

    return DoctorResult(ok=ok, notes=notes)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="audio-merge",
        add_help=True,
        formatter_class=argparse.RawTextHelpFormatter,
        description="audio-merge: join audio files end to end into one 16-bit PCM WAV\n",
    )

    p.add_argument("--version", action="store_true", help="Print version and exit.")
    p.add_argument("-v", "--verbose", action="count", default=0, help="More logging (-v info, -vv debug).")

    sub = p.add_subparsers(dest="cmd")

    m = sub.add_parser("merge", help="Merge input files (in the order given) into one WAV.")
    m.add_argument("inputs", nargs="+", help="Input audio files in order")
    m.add_argument("-o", "--output", required=True, help="Output WAV path ('-' for stdout)")
    m.add_argument("--decoder", choices=DECODER_CHOICES, default=None, help="Decoder backend (default from config: auto)")
    m.add_argument("--lenient", action="store_true", help="Merge even if channel count / sample rate differ.")
    m.add_argument("--jobs", type=int, default=None, help="Parallel decode workers")
    m.add_argument("--report", default=None, help="Write a JSON summary here")

    mf = sub.add_parser("manifest", help="Run a YAML merge manifest.")
    mf.add_argument("manifest", help="Path to manifest (.yaml)")
    mf.add_argument("-o", "--output", default=None, help="Override the manifest's output path")
    mf.add_argument("--lenient", action="store_true", help="Merge even if channel count / sample rate differ.")
    mf.add_argument("--report", default=None, help="Write a JSON summary here")

    info = sub.add_parser("info", help="Print the header fields of a PCM WAV file.")
    info.add_argument("wav", help="Path to a .wav file")

    sub.add_parser("doctor", help="Check for optional deps (ffmpeg/ffprobe).")

    return p


def _configure_logging(verbose: int) -> None:
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)


def _run_merge(
    inputs: list[str],
    *,
    output: str | None,
    decoder: str,
    strict: bool,
    jobs: int | None,
    report: str | None,
    extra: dict | None = None,
) -> None:
    from audio_merge.audio.decode import default_decoder
    from audio_merge.io.manifest import save_report_json
    from audio_merge.pipeline import merge_files

    to_stdout = output is not None and output.strip() == "-"
    data, summary = merge_files(
        inputs,
        decoder=default_decoder(decoder),
        out=None if (to_stdout or output is None) else output,
        strict=strict,
        max_workers=jobs,
    )

    if to_stdout:
        sys.stdout.buffer.write(data)
        sys.stdout.buffer.flush()
    elif summary.output:
        print(f"wrote {summary.output} ({summary.frame_count} frames, {summary.duration_seconds:.2f}s)", file=sys.stderr)

    if report:
        save_report_json(report, {**(extra or {}), **summary.to_dict()})


def main(argv: list[str] | None = None) -> None:
    argv = list(sys.argv[1:] if argv is None else argv)

    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(int(args.verbose or 0))

    if getattr(args, "version", False):
        try:
            from importlib.metadata import version

            v = version("audio-merge")
        except Exception:
            v = "0.0.0"
        print(f"audio-merge {v}")
        return

    if args.cmd == "doctor":
        res = _doctor()
        status = "OK" if res.ok else "MISSING_DEPS"
        print(f"audio-merge doctor: {status}")
        for n in res.notes:
            print(f"- {n}")
        if not res.ok:
            print("\nLinux (Debian/Ubuntu): sudo apt-get install ffmpeg")
            print("macOS: brew install ffmpeg")
        return

    if args.cmd == "info":
        from audio_merge.audio.wav import read_wav_header

        try:
            hdr = read_wav_header(Path(args.wav).expanduser().read_bytes()[:44])
        except OSError as e:
            raise SystemExit(f"ERROR: {e}")
        except MergeError as e:
            raise SystemExit(f"ERROR: {args.wav}: {e}")
        for k, val in hdr.to_dict().items():
            print(f"{k}: {val}")
        return

    try:
        cfg = load_config()
    except ValueError as e:
        raise SystemExit(f"ERROR: {e}")

    if args.cmd == "merge":
        try:
            _run_merge(
                list(args.inputs),
                output=args.output,
                decoder=args.decoder or cfg.decoder,
                strict=cfg.strict and not args.lenient,
                jobs=args.jobs or cfg.max_workers,
                report=args.report,
            )
        except (MergeError, ValueError, OSError) as e:
            raise SystemExit(f"ERROR: {e}")
        return

    if args.cmd == "manifest":
        from audio_merge.io.manifest import load_merge_manifest, manifest_to_dict

        try:
            man = load_merge_manifest(args.manifest)
            output = args.output or man.output
            if not output:
                raise SystemExit(f"ERROR: manifest {args.manifest} has no output; pass -o <path>")
            _run_merge(
                man.inputs,
                output=output,
                decoder=man.decoder or cfg.decoder,
                strict=(cfg.strict if man.strict is None else man.strict) and not args.lenient,
                jobs=man.max_workers or cfg.max_workers,
                report=args.report,
                extra={"manifest": manifest_to_dict(man)},
            )
        except (MergeError, ValueError, OSError) as e:
            raise SystemExit(f"ERROR: {e}")
        return

    parser.print_help()


if __name__ == "__main__":
    main()
