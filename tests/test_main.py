"""
Tests for the command-line entry point.
"""

import json

import pytest

import main as cli
from main import build_parser, load_settings, main
from models import EnhancementLevel, RunResult, UniqueObject


class TestLoadSettings:

    def test_cli_overrides_settings_file(self, tmp_path):
        cfg = tmp_path / "settings.json"
        cfg.write_text(json.dumps({"confidenceThreshold": 0.3, "imageEnhancement": "basic"}))
        args = build_parser().parse_args(["v.mp4", "--settings", str(cfg),
                                          "--confidence", "0.8", "--frame-skip", "2"])
        s = load_settings(args)
        assert s.confidence_threshold == 0.8
        assert s.image_enhancement is EnhancementLevel.BASIC
        assert s.frame_skip == 2

    def test_defaults_without_options(self):
        s = load_settings(build_parser().parse_args(["v.mp4"]))
        assert s.max_detections == 20


class TestMain:

    def test_unreadable_video_exits_with_error(self, tmp_path):
        assert main([str(tmp_path / "nope.mp4")]) == 1

    def test_invalid_settings_exit_code(self, tmp_path):
        assert main([str(tmp_path / "nope.mp4"), "--confidence", "3"]) == 2

    def test_rejects_unknown_enhancement(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["v.mp4", "--enhancement", "extreme"])

    def test_non_video_path_is_rejected_before_opening(self, tmp_path, monkeypatch):
        opened = []
        monkeypatch.setattr(cli, "process_video_file", lambda *a, **kw: opened.append(a))
        notes = tmp_path / "notes.txt"
        notes.write_text("not a video")

        assert main([str(notes)]) == 1
        assert opened == []

    def test_writes_requested_outputs(self, tmp_path, monkeypatch):
        calls = []

        def fake_run(path, settings, progress_cb=None, abort=None):
            calls.append((path, settings.frame_skip, abort))
            progress_cb(100, "Done")
            return RunResult(file_name="clip.MP4", duration=12.0,
                             objects=[UniqueObject("car", 0.9, 4.0, (1.0, 2.0, 3.0, 4.0))])

        monkeypatch.setattr(cli, "process_video_file", fake_run)
        video = str(tmp_path / "clip.MP4")
        out_json = tmp_path / "out.json"
        out_pptx = tmp_path / "out.pptx"

        code = main([video, "--frame-skip", "3", "--json", str(out_json),
                     "--pptx", str(out_pptx), "--history", str(tmp_path / "h.json")])

        assert code == 0
        assert calls[0][:2] == (video, 3)
        assert calls[0][2] is not None
        assert json.loads(out_json.read_text())["objects"][0]["className"] == "car"
        assert out_pptx.exists()
        assert json.loads((tmp_path / "h.json").read_text())["users"]["local"]["history"]
