import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .constants import CANVAS_SIZES
from .engine import IconEngine
from .errors import InvalidSettings
from .settings import IconSettings, from_flat, update

# CLI option -> flat settings key
OVERRIDES = {
    "text": "text",
    "animation": "animation",
    "size": "canvasSize",
    "frames": "gifFrames",
    "speed": "animationSpeed",
    "quality": "gifQuality",
    "background": "backgroundColor",
}


def parse_arguments(argv: Iterable[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Render a chat reaction icon to a PNG, or an animated GIF when an animation is set."
    )
    parser.add_argument(
        "settings",
        type=Path,
        nargs="?",
        help="JSON file with flat icon settings (camelCase keys such as text, animation, canvasSize).",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Output path (defaults to reaction-icon-<timestamp>.png|gif in the current directory).",
    )
    parser.add_argument("--text", type=str, default=None, help="Icon text; overrides the settings file.")
    parser.add_argument("--animation", type=str, default=None, help="Text animation kind (e.g. bounce, rainbow).")
    parser.add_argument(
        "--size",
        type=int,
        choices=CANVAS_SIZES,
        default=None,
        help="Canvas size in pixels.",
    )
    parser.add_argument("--frames", type=int, default=None, help="Number of GIF frames (5-60).")
    parser.add_argument("--speed", type=int, default=None, help="Frame delay in milliseconds.")
    parser.add_argument(
        "--quality",
        type=int,
        default=None,
        help="GIF quality from 1 (finest, largest) to 30 (coarsest, smallest).",
    )
    parser.add_argument("--background", type=str, default=None, help="Background color for animated output.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    return parser.parse_args(argv)


def resolve_unique_path(path: Path) -> Path:
    if not path.exists():
        return path
    stem = path.stem
    suffix = path.suffix
    index = 1
    while True:
        candidate = path.with_name(f"{stem}-{index}{suffix}")
        if not candidate.exists():
            return candidate
        index += 1


def load_settings_file(path: Optional[Path]) -> Dict[str, Any]:
    if path is None:
        return {}
    if not path.exists() or not path.is_file():
        raise FileNotFoundError(f"Settings file not found: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Settings file is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("Settings file must contain a JSON object.")
    return data


def build_settings(args: argparse.Namespace) -> IconSettings:
    settings = from_flat(load_settings_file(args.settings))
    for option, key in OVERRIDES.items():
        value = getattr(args, option)
        if value is not None:
            settings = update(settings, key, value)
    return settings


def main(argv: Optional[Iterable[str]] = None) -> int:
    args = parse_arguments(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    saved: List[Path] = []

    def save(data: bytes, file_name: str, mime_type: str) -> None:
        target = args.output if args.output is not None else Path(file_name)
        target_path = resolve_unique_path(target)
        target_path.parent.mkdir(parents=True, exist_ok=True)
        target_path.write_bytes(data)
        saved.append(target_path)

    engine = IconEngine()
    try:
        settings = build_settings(args)
        result = asyncio.run(engine.download_request(settings, save))
        if not result.is_ok():
            error = result.error
            cause = error.cause
            if isinstance(cause, InvalidSettings):
                for message in cause.errors:
                    print(f"Error: {message}", file=sys.stderr)
            else:
                print(f"Error: {error.message}", file=sys.stderr)
            return 1

        final_output = saved[-1]
        if args.output is not None and final_output != args.output:
            print(f"Existing file detected. Saved icon as {final_output} instead.")
        print(f"Created {final_output}")
        return 0
    except FileNotFoundError as not_found_err:
        print(f"Error: {not_found_err}", file=sys.stderr)
    except ValueError as value_err:
        print(f"Error: {value_err}", file=sys.stderr)
    finally:
        engine.close()
    return 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
