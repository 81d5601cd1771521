from __future__ import annotations

import argparse
import logging
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from .audio import export_as_code, read_wav, write_wav
from .convert import ExportFormat, convert
from .logging_utils import configure_logging, debug_enabled, log_exception
from .presets import PRESETS
from .rng import RandomSource
from .session import Session

_LOGGER = logging.getLogger("chipfx.cli")
_CONSOLE = Console()
_DEFAULT_OUTPUT = "output.wav"


def _describe(fmt: ExportFormat) -> str:
    layout = "Mono" if fmt.channels == 1 else "Stereo"
    return f"{fmt.sample_rate} Hz, {fmt.bit_depth} bit, {layout}"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="chipfx")
    sub = parser.add_subparsers(dest="command", required=True)

    render = sub.add_parser("render", help="Render a .rfx/.sfs file (or reformat a .wav).")
    render.add_argument("input", type=str)
    render.add_argument("-o", "--output", type=str, default=_DEFAULT_OUTPUT)
    render.add_argument(
        "-f",
        "--format",
        type=str,
        default=None,
        help="Output format as RATE,BITS,CHANNELS (default: 44100,16,1).",
    )

    preset = sub.add_parser("preset", help="Generate a preset sound.")
    preset.add_argument("name", choices=sorted(PRESETS), type=str)
    preset.add_argument("-o", "--output", type=str, default="sound.rfx")
    preset.add_argument("--seed", type=int, default=None)
    preset.add_argument("-f", "--format", type=str, default=None)
    return parser


def _export_wav_input(source: Path, target: Path, fmt: ExportFormat) -> Path:
    waveform = convert(read_wav(source), fmt)
    if target.suffix.lower() == ".h":
        return export_as_code(target, waveform)
    return write_wav(target, waveform)


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        fmt = ExportFormat.parse(args.format) if args.format else ExportFormat()

        if args.command == "render":
            source = Path(args.input)
            target = Path(args.output)
            if source.suffix.lower() == ".wav":
                path = _export_wav_input(source, target, fmt)
            else:
                session = Session(export_format=fmt)
                result = session.load(source)
                if not result.ok:
                    reason = escape(result.message or "unknown error")
                    _CONSOLE.print(f"Could not load {escape(str(source))}: {reason}")
                    return 1
                path = session.export(target)
            _CONSOLE.print(f"Wrote {escape(str(path))} ({_describe(fmt)})")
            return 0

        if args.command == "preset":
            session = Session(RandomSource(args.seed), export_format=fmt)
            session.generate(args.name)
            target = Path(args.output)
            if target.suffix.lower() == ".rfx":
                path = session.save(target)
            else:
                path = session.export(target)
            seed = session.params.seed
            _CONSOLE.print(f"Wrote {args.name} preset to {escape(str(path))} (seed={seed})")
            return 0

        parser.print_help()
        return 1
    except Exception as exc:
        _LOGGER.warning("chipfx CLI failed: %s", exc, exc_info=debug_enabled())
        log_exception("chipfx CLI", exc)
        _CONSOLE.print(f"[bold red]chipfx CLI failed:[/bold red] {escape(str(exc))}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
