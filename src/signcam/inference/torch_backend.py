"""
TorchScript Classifier
======================

Production classifier backend running a TorchScript model.

The model is loaded once with torch.jit.load and called under
torch.no_grad(). It must accept a float32 batch in the layout configured
by `channels_first` and return raw scores of shape (1, L).

Design Rules:
    - Fail fast on a missing or unloadable model (ClassifierError)
    - No softmax here, the ClassifierAdapter normalizes scores
"""

import logging
from pathlib import Path
from typing import Union

import numpy as np
import torch

from signcam.exceptions import ClassifierError


logger = logging.getLogger(__name__)


class TorchScriptClassifier:
    """
    Classifier backed by a serialized TorchScript module.

    Attributes:
        model_path: Path to the .pt file
        device: Torch device used for inference
    """

    def __init__(self, model_path: Union[str, Path], device: str = "cpu") -> None:
        """
        Load a TorchScript model.

        Args:
            model_path: Path to the serialized module
            device: Torch device string, e.g. "cpu" or "cuda:0"

        Raises:
            ClassifierError: If the file is missing or cannot be loaded
        """
        self.model_path = Path(model_path)
        if not self.model_path.is_file():
            raise ClassifierError(f"Model file not found: {self.model_path}")

        try:
            self.device = torch.device(device)
            self.model = torch.jit.load(str(self.model_path), map_location=self.device)
        except (RuntimeError, ValueError) as e:
            raise ClassifierError(f"Failed to load model {self.model_path}: {e}") from e

        self.model.eval()
        logger.info(f"TorchScript model loaded: {self.model_path} on {self.device}")

    @torch.no_grad()
    def predict(self, batch: np.ndarray) -> np.ndarray:
        tensor = torch.from_numpy(batch).to(self.device)
        output = self.model(tensor)
        if isinstance(output, (tuple, list)):
            output = output[0]
        return output.detach().cpu().numpy()
