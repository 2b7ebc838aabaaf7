"""
Headless export worker for batch cropping (Qt-free).

This module is imported in child processes spawned by
``concurrent.futures.ProcessPoolExecutor``.  It must **never** import
PyQt6, which can crash or hang when loaded in a forked child.
"""

import logging
from concurrent.futures import ProcessPoolExecutor, as_completed
from pathlib import Path

from yearbuk_crop.engine import ImageTransformEngine
from yearbuk_crop.errors import CropError
from yearbuk_crop.image_io import unique_path
from yearbuk_crop.models import OutputSpec

logger = logging.getLogger(__name__)


def export_crop(args: dict) -> dict:
    """Crop one image without UI.  Runs in a separate process.

    ``args["spec"]`` holds the ``OutputSpec`` fields.  ``args["zoom"]`` of
    None keeps the engine's initial zoom; ``args["pan"]`` is an ``(x, y)``
    offset in canvas pixels, clamped like a drag.
    """
    idx = args["index"]
    img_path = Path(args["path"])
    output_dir = Path(args["output_dir"]) if args.get("output_dir") else img_path.parent
    zoom = args.get("zoom")
    pan_x, pan_y = args.get("pan") or (0.0, 0.0)

    try:
        spec = OutputSpec(**args.get("spec", {}))
        with ImageTransformEngine(spec) as engine:
            engine.load_image(img_path)
            if zoom is not None:
                engine.set_zoom(zoom)
            engine.pan(pan_x, pan_y)
            result = engine.commit()

        output_dir.mkdir(parents=True, exist_ok=True)
        out_path = unique_path(output_dir / f"{img_path.stem}-cropped{result.extension}")
        result.save(out_path)
        return {"index": idx, "success": True, "name": img_path.name, "output": str(out_path)}
    except CropError as e:
        return {"index": idx, "success": False, "name": img_path.name, "error": e.user_message}
    except Exception as e:
        return {"index": idx, "success": False, "name": img_path.name, "error": str(e)}


def run_batch(jobs: list[dict], max_workers: int | None = None) -> list[dict]:
    """Run ``export_crop`` for each job in a process pool; results in job order."""
    results: list[dict | None] = [None] * len(jobs)
    with ProcessPoolExecutor(max_workers=max_workers) as pool:
        futures = [pool.submit(export_crop, job) for job in jobs]
        for future in as_completed(futures):
            res = future.result()
            results[res["index"]] = res
            if res["success"]:
                logger.info("Exported %s -> %s", res["name"], res["output"])
            else:
                logger.warning("Failed %s: %s", res["name"], res["error"])
    return results
