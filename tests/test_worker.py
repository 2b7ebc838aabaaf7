"""Headless export worker and the command-line entry point."""

from __future__ import annotations

import pytest
from PIL import Image

from yearbuk_crop.app import build_parser, main, resolve_output_spec
from yearbuk_crop.presets import load_presets, preset_names
from yearbuk_crop.worker import export_crop, run_batch


def _job(index, path, out_dir, **extra):
    job = {"index": index, "path": str(path), "output_dir": str(out_dir), "spec": {}, "zoom": None, "pan": (0, 0)}
    job.update(extra)
    return job


def test_export_circle(image_file, tmp_path):
    src = image_file(800, 600, name="crest.png")
    res = export_crop(_job(0, src, tmp_path / "out"))
    assert res["success"], res
    out = Image.open(res["output"])
    assert out.format == "PNG"
    assert out.size == (1200, 1200)
    assert res["output"].endswith("crest-cropped.png")


def test_export_banner_with_zoom_and_pan(image_file, tmp_path):
    src = image_file(2000, 1000, name="hall.png")
    job = _job(0, src, tmp_path, spec={"aspect_ratio": 3}, zoom=4.0, pan=(10_000, 0))
    res = export_crop(job)
    assert res["success"], res
    out = Image.open(res["output"])
    assert out.format == "JPEG"
    assert out.size == (1200, 400)


def test_export_does_not_overwrite(image_file, tmp_path):
    src = image_file(400, 400, name="a.png")
    first = export_crop(_job(0, src, tmp_path))
    second = export_crop(_job(1, src, tmp_path))
    assert first["output"] != second["output"]
    assert second["output"].endswith("a-cropped-01.png")


def test_export_reports_too_small(image_file, tmp_path):
    src = image_file(150, 400, name="tiny.png")
    res = export_crop(_job(3, src, tmp_path))
    assert res == {
        "index": 3,
        "success": False,
        "name": "tiny.png",
        "error": "Image is too small. Minimum size is 200x200 pixels.",
    }


def test_run_batch_keeps_job_order(image_file, tmp_path):
    good = image_file(400, 400, name="good.png")
    bad = tmp_path / "bad.png"
    bad.write_bytes(b"garbage")
    results = run_batch([_job(0, good, tmp_path / "o"), _job(1, bad, tmp_path / "o")], max_workers=1)
    assert [r["name"] for r in results] == ["good.png", "bad.png"]
    assert results[0]["success"]
    assert not results[1]["success"]
    assert results[1]["error"] == "Failed to load image. Please try a different image."


def test_resolve_output_spec_preset_with_override(isolated_config):
    args = build_parser().parse_args(["--preset", "banner", "--min-width", "900", "x.png"])
    spec = resolve_output_spec(args)
    assert spec.aspect_ratio == 3
    assert (spec.min_width, spec.min_height) == (900, 400)


def test_resolve_output_spec_unknown_preset(isolated_config):
    args = build_parser().parse_args(["--preset", "poster"])
    with pytest.raises(SystemExit):
        resolve_output_spec(args)


def test_main_headless(image_file, tmp_path, isolated_config):
    src = image_file(600, 600, name="logo.png")
    out_dir = tmp_path / "exports"
    code = main(["--headless", str(src), "--preset", "logo", "-o", str(out_dir), "-j", "1"])
    assert code == 0
    assert (out_dir / "logo-cropped.png").is_file()


def test_export_reports_pixel_limit_overflow(image_file, tmp_path, monkeypatch):
    src = image_file(400, 400, name="huge.png")
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 10_000)
    res = export_crop(_job(0, src, tmp_path))
    assert not res["success"]
    assert res["error"] == "Failed to load image. Please try a different image."


def test_export_reports_unexpected_failure(image_file, tmp_path, monkeypatch):
    def explode(self):
        raise RuntimeError("renderer crashed")

    monkeypatch.setattr("yearbuk_crop.worker.ImageTransformEngine.commit", explode)
    src = image_file(400, 400, name="ok.png")
    res = export_crop(_job(2, src, tmp_path))
    assert res == {"index": 2, "success": False, "name": "ok.png", "error": "renderer crashed"}


def test_run_batch_survives_a_non_crop_failure(image_file, tmp_path):
    good = image_file(400, 400, name="good.png")
    other = image_file(400, 400, name="other.png")
    jobs = [
        _job(0, other, tmp_path / "o", spec={"aspect_ratio": -1}),
        _job(1, good, tmp_path / "o"),
    ]
    results = run_batch(jobs, max_workers=1)
    assert not results[0]["success"]
    assert "aspect_ratio" in results[0]["error"]
    assert results[1]["success"]
    assert (tmp_path / "o" / "good-cropped.png").is_file()


def test_save_preset_then_use_it(isolated_config, capsys):
    assert main(["--save-preset", "square", "--aspect-ratio", "1", "--min-width", "800"]) == 0
    assert "square" in capsys.readouterr().out

    args = build_parser().parse_args(["--preset", "square"])
    spec = resolve_output_spec(args)
    assert spec.aspect_ratio == 1
    assert (spec.min_width, spec.min_height) == (800, None)


def test_save_preset_replaces_in_place(isolated_config):
    main(["--save-preset", "logo", "--min-width", "600", "--min-height", "600"])
    presets = load_presets()
    assert preset_names(presets) == ["logo", "banner"]
    assert presets[0]["min_width"] == 600


def test_save_preset_rejects_blank_name(isolated_config):
    with pytest.raises(SystemExit):
        main(["--save-preset", " "])
