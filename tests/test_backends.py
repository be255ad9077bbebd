"""
Classifier Backend Tests
========================

Backend factory, TorchScript backend and status endpoints.
"""

import numpy as np
import pytest
from fastapi.testclient import TestClient

from signcam import main
from signcam.config import settings
from signcam.exceptions import ClassifierError
from signcam.inference import MockClassifier


class TestFactory:

    def test_mock_backend(self, monkeypatch):
        monkeypatch.setattr(settings.classifier, "backend", "mock")

        classifier = main.create_classifier()

        assert isinstance(classifier, MockClassifier)
        assert classifier.num_labels == len(settings.classifier.labels)

    def test_unknown_backend(self, monkeypatch):
        monkeypatch.setattr(settings.classifier, "backend", "tflite")

        with pytest.raises(ClassifierError):
            main.create_classifier()


class TestTorchScriptClassifier:

    def test_missing_model(self, tmp_path):
        pytest.importorskip("torch")
        from signcam.inference.torch_backend import TorchScriptClassifier

        with pytest.raises(ClassifierError):
            TorchScriptClassifier(tmp_path / "missing.pt")

    def test_predict(self, tmp_path):
        torch = pytest.importorskip("torch")
        from signcam.inference.torch_backend import TorchScriptClassifier

        class MeanHead(torch.nn.Module):
            def forward(self, x):
                return x.mean(dim=[1, 2])

        path = tmp_path / "model.pt"
        torch.jit.script(MeanHead()).save(str(path))

        classifier = TorchScriptClassifier(path)
        scores = classifier.predict(np.full((1, 8, 8, 3), 0.5, dtype=np.float32))

        assert scores.shape == (1, 3)
        assert scores[0] == pytest.approx([0.5, 0.5, 0.5])


class TestStatusEndpoints:
    """Endpoints without running the lifespan (no camera needed)."""

    def test_health(self):
        client = TestClient(main.app)

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_not_ready_before_startup(self):
        client = TestClient(main.app)

        response = client.get("/ready")

        assert response.status_code == 503
        assert response.json()["pipeline_state"] == "IDLE"

    def test_no_prediction_yet(self):
        client = TestClient(main.app)

        assert client.get("/prediction").status_code == 503

    def test_root_lists_labels(self):
        client = TestClient(main.app)

        assert client.get("/").json()["labels"] == settings.classifier.labels
