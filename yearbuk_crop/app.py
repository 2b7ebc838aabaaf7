"""
Application entry point and dark-theme stylesheet.

Usage:
    python -m yearbuk_crop.app logo.png
    yearbuk-crop banner.jpg --preset banner          (after pip install)
    yearbuk-crop --headless *.jpg --preset logo -o out/
"""

import argparse
import logging
import sys
from pathlib import Path

from yearbuk_crop.image_io import unique_path
from yearbuk_crop.models import OutputSpec
from yearbuk_crop.presets import load_presets, output_spec_for, preset_names, upsert_preset

logger = logging.getLogger(__name__)

DARK_STYLESHEET = """
    QDialog { background: #111827; }
    QWidget { background: #111827; color: #fff; font-size: 10pt; }
    QPushButton { background: #1f2937; border: 1px solid #4b5563; border-radius: 4px; padding: 6px 12px; }
    QPushButton:hover { background: #374151; }
    QPushButton:pressed { background: #111827; }
    QPushButton:default { background: #2563eb; border-color: #3b82f6; }
    QPushButton:disabled { color: #666; }
    QSlider::groove:horizontal { height: 4px; background: #4b5563; border-radius: 2px; }
    QSlider::handle:horizontal { background: #fff; width: 14px; margin: -6px 0; border-radius: 7px; }
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="yearbuk-crop",
        description="Crop a school logo (circular) or banner (rectangular) image.",
    )
    parser.add_argument("images", nargs="*", type=Path, help="image file(s) to crop")
    parser.add_argument("--preset", help="named output preset (default presets: logo, banner)")
    parser.add_argument("--aspect-ratio", type=float, help="width/height ratio; omit for a circular crop")
    parser.add_argument("--min-width", type=int, help="output width in pixels")
    parser.add_argument("--min-height", type=int, help="output height in pixels")
    parser.add_argument("-o", "--output", type=Path, help="output file (dialog) or directory (headless)")
    parser.add_argument("--headless", action="store_true", help="export without opening the dialog")
    parser.add_argument("--zoom", type=float, help="headless zoom (default: middle of the zoom range)")
    parser.add_argument("--pan", type=float, nargs=2, metavar=("X", "Y"), default=(0.0, 0.0),
                        help="headless pan offset in canvas pixels")
    parser.add_argument("-j", "--jobs", type=int, help="headless worker processes")
    parser.add_argument("--save-preset", metavar="NAME",
                        help="store the resolved output settings as preset NAME")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


def resolve_output_spec(args: argparse.Namespace) -> OutputSpec:
    """Preset first, then explicit flags override its fields."""
    if args.preset:
        presets = load_presets()
        try:
            base = output_spec_for(presets, args.preset)
        except KeyError:
            raise SystemExit(
                f"Unknown preset '{args.preset}'. Available: {', '.join(preset_names(presets))}"
            )
    else:
        base = OutputSpec()
    try:
        return OutputSpec(
            aspect_ratio=args.aspect_ratio if args.aspect_ratio is not None else base.aspect_ratio,
            min_width=args.min_width or base.min_width,
            min_height=args.min_height or base.min_height,
        )
    except ValueError as exc:
        raise SystemExit(str(exc))


def run_headless(args: argparse.Namespace, spec: OutputSpec) -> int:
    from yearbuk_crop.worker import run_batch

    jobs = [
        {
            "index": i,
            "path": str(path),
            "output_dir": str(args.output) if args.output else None,
            "spec": {
                "aspect_ratio": spec.aspect_ratio,
                "min_width": spec.min_width,
                "min_height": spec.min_height,
            },
            "zoom": args.zoom,
            "pan": tuple(args.pan),
        }
        for i, path in enumerate(args.images)
    ]
    results = run_batch(jobs, max_workers=args.jobs)
    failed = [r for r in results if not r["success"]]
    for r in failed:
        print(f"{r['name']}: {r['error']}", file=sys.stderr)
    print(f"Exported {len(results) - len(failed)} of {len(results)} image(s).")
    return 1 if failed else 0


def run_dialog(args: argparse.Namespace, spec: OutputSpec) -> int:
    from PyQt6.QtWidgets import QApplication

    from yearbuk_crop.crop_dialog import CropDialog

    app = QApplication(sys.argv)
    app.setStyleSheet(DARK_STYLESHEET)

    dialog = CropDialog(spec)
    saved_to: list[Path] = []

    def _write(result):
        if args.output:
            out_path = args.output
        else:
            base = dialog.source_path or Path.cwd() / "image"
            out_path = unique_path(base.with_name(f"{base.stem}-cropped{result.extension}"))
        saved_to.append(result.save(out_path))
        logger.info("Saved %s", saved_to[-1])

    dialog.saved.connect(_write)
    if args.images:
        dialog.open_file(args.images[0])
    else:
        dialog.choose_file()

    try:
        dialog.exec()
    except KeyboardInterrupt:
        pass
    if saved_to:
        print(saved_to[0])
        return 0
    return 1


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    spec = resolve_output_spec(args)

    if args.save_preset:
        try:
            upsert_preset(args.save_preset, spec)
        except ValueError as exc:
            raise SystemExit(str(exc))
        print(f"Saved preset '{args.save_preset}'.")
        if not args.images:
            return 0

    if args.headless:
        if not args.images:
            raise SystemExit("--headless needs at least one image")
        return run_headless(args, spec)
    return run_dialog(args, spec)


if __name__ == "__main__":
    sys.exit(main())
