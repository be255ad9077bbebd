"""
Configuration Tests
===================
"""

import pytest
from pydantic import ValidationError

from signcam.config import Settings, load_config


ENV_VARS = [
    "SIGNCAM_CAMERA_DEVICE",
    "SIGNCAM_INPUT_FORMAT",
    "SIGNCAM_FPS",
    "SIGNCAM_FFMPEG_PATH",
    "SIGNCAM_PREVIEW_ENABLED",
    "SIGNCAM_CLASSIFIER_BACKEND",
    "SIGNCAM_MODEL_PATH",
    "SIGNCAM_LABELS",
    "SIGNCAM_REPORT_INTERVAL_MS",
    "SIGNCAM_PORT",
    "SIGNCAM_LOG_LEVEL",
    "PORT",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestDefaults:

    def test_default_values(self):
        settings = Settings()

        assert settings.classifier.labels == ["TEACH", "STRONG", "STOP", "SORRY", "PLEASE"]
        assert settings.classifier.image_size == 224
        assert settings.capture.fps == 10
        assert settings.demuxer.max_window_bytes == 1024 * 1024
        assert settings.demuxer.tail_bytes == 1024
        assert settings.reporting.interval_ms == 500
        assert settings.reporting.top_k == 2

    def test_invalid_values_rejected(self):
        with pytest.raises(ValidationError):
            Settings.model_validate({"capture": {"fps": 0}})

    def test_demuxer_tail_must_fit_window(self):
        with pytest.raises(ValidationError, match="tail_bytes"):
            Settings.model_validate(
                {"demuxer": {"max_window_bytes": 4096, "tail_bytes": 4096}}
            )

        settings = Settings.model_validate(
            {"demuxer": {"max_window_bytes": 4096, "tail_bytes": 4095}}
        )
        assert settings.demuxer.tail_bytes == 4095


class TestLoading:

    def test_yaml_file(self, tmp_path, clean_env):
        path = tmp_path / "config.yaml"
        path.write_text(
            "capture:\n"
            "  input_format: v4l2\n"
            "  device: /dev/video0\n"
            "classifier:\n"
            "  labels: [HELLO, THANKS]\n"
        )

        settings = load_config(str(path))

        assert settings.capture.input_format == "v4l2"
        assert settings.capture.device == "/dev/video0"
        assert settings.classifier.labels == ["HELLO", "THANKS"]

    def test_env_overrides_file(self, tmp_path, clean_env):
        path = tmp_path / "config.yaml"
        path.write_text("capture:\n  fps: 5\n")
        clean_env.setenv("SIGNCAM_FPS", "15")
        clean_env.setenv("SIGNCAM_LABELS", "A, B ,C")
        clean_env.setenv("SIGNCAM_PREVIEW_ENABLED", "false")
        clean_env.setenv("SIGNCAM_CLASSIFIER_BACKEND", "torchscript")

        settings = load_config(str(path))

        assert settings.capture.fps == 15
        assert settings.classifier.labels == ["A", "B", "C"]
        assert settings.preview.enabled is False
        assert settings.classifier.backend == "torchscript"

    def test_port_precedence(self, tmp_path, clean_env):
        clean_env.setenv("SIGNCAM_PORT", "9000")
        clean_env.setenv("PORT", "9100")

        settings = load_config(str(tmp_path / "missing.yaml"))

        assert settings.server.port == 9100
