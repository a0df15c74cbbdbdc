"""
Classifier adapter.

The pipeline only needs ``classify(window) -> WindowClassification``.
This module provides that capability on top of a torch model that maps a
resampled [channels, samples] window matrix to exercise logits, together
with checkpoint loading and a model source keyed by model id.
"""

import pickle
from pathlib import Path
from typing import Dict, List, Optional, Protocol

import numpy as np
import torch
import torch.nn as nn

from ..config import CONFIG
from ..data.windows import FusedWindow
from ..exceptions import ClassificationFailure
from ..utils import get_logger
from .results import WindowClassification


class WindowClassifier(Protocol):
    """Anything that turns one fused window into a label and a confidence."""

    def classify(self, window: FusedWindow) -> WindowClassification:
        ...


class MLPClassifier(nn.Module):
    """
    Multilayer perceptron over a flattened window matrix.
    """

    def __init__(
        self,
        n_channels: int,
        samples_per_window: int,
        n_classes: int,
        hidden_size: int = 256,
        dropout: float = 0.3
    ):
        super().__init__()

        self.n_channels = n_channels
        self.samples_per_window = samples_per_window
        self.hidden_size = hidden_size

        self.mlp = nn.Sequential(
            nn.Linear(n_channels * samples_per_window, hidden_size),
            nn.BatchNorm1d(hidden_size),
            nn.ReLU(inplace=True),
            nn.Dropout(dropout),

            nn.Linear(hidden_size, hidden_size // 2),
            nn.BatchNorm1d(hidden_size // 2),
            nn.ReLU(inplace=True),
            nn.Dropout(dropout),

            nn.Linear(hidden_size // 2, n_classes)
        )

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        """
        Forward pass.

        Args:
            x: Input tensor [batch, channels, samples]

        Returns:
            Logits [batch, n_classes]
        """
        return self.mlp(x.reshape(x.size(0), -1))


class TorchWindowClassifier:
    """
    Classifies fused windows with a torch model.

    Windows are resampled to the model's input size and normalized per
    channel before inference.
    """

    def __init__(
        self,
        model: nn.Module,
        labels: List[str],
        n_channels: int,
        samples_per_window: int,
        config=None,
        device: str = 'cpu'
    ):
        self.config = config or CONFIG
        self.labels = list(labels)
        self.n_channels = n_channels
        self.samples_per_window = samples_per_window
        self.device = torch.device(device)
        self.model = model.to(self.device)
        self.model.eval()

    def prepare(self, window: FusedWindow) -> torch.Tensor:
        """Window matrix as a normalized [1, channels, samples] tensor."""
        matrix = window.to_matrix(self.config)
        if matrix.shape[0] != self.n_channels:
            raise ClassificationFailure(
                f"Model expects {self.n_channels} channels, window has {matrix.shape[0]}"
            )

        if matrix.shape[1] != self.samples_per_window:
            source_x = np.linspace(0.0, 1.0, matrix.shape[1])
            target_x = np.linspace(0.0, 1.0, self.samples_per_window)
            matrix = np.stack([np.interp(target_x, source_x, row) for row in matrix])

        mean = matrix.mean(axis=1, keepdims=True)
        std = matrix.std(axis=1, keepdims=True)
        matrix = (matrix - mean) / (std + 1e-6)

        return torch.from_numpy(matrix.astype(np.float32)).unsqueeze(0).to(self.device)

    def classify(self, window: FusedWindow) -> WindowClassification:
        """
        Classify one window.

        Raises:
            ClassificationFailure: if the window does not fit the model
        """
        x = self.prepare(window)
        with torch.no_grad():
            logits = self.model(x)
        probs = torch.softmax(logits, dim=1)[0]
        confidence, index = torch.max(probs, dim=0)
        return WindowClassification(self.labels[index.item()], float(confidence.item()))


def check_labels(labels: List[str], config=None) -> List[str]:
    """
    Compare model labels with the configured exercises.

    Returns:
        Labels the configuration does not know, which are logged
    """
    config = config or CONFIG
    known = set(config.classification.exercises)
    unknown = [label for label in labels if label not in known]
    if unknown:
        get_logger('classifier').warning(
            f"Model labels not among the configured exercises: {', '.join(unknown)}"
        )
    return unknown


def create_classifier(
    labels: List[str],
    n_channels: int,
    samples_per_window: int,
    config=None,
    hidden_size: int = 256
) -> TorchWindowClassifier:
    """Create an (untrained) MLP window classifier."""
    model = MLPClassifier(n_channels, samples_per_window, len(labels), hidden_size=hidden_size)
    return TorchWindowClassifier(model, labels, n_channels, samples_per_window, config)


def save_classifier(classifier: TorchWindowClassifier, path: Path):
    """Save an MLP window classifier as a checkpoint."""
    model = classifier.model
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    torch.save({
        'model_state_dict': model.state_dict(),
        'labels': classifier.labels,
        'n_channels': classifier.n_channels,
        'samples_per_window': classifier.samples_per_window,
        'hidden_size': getattr(model, 'hidden_size', 256),
    }, path)


def load_classifier(path: Path, config=None, device: str = 'cpu') -> TorchWindowClassifier:
    """
    Load an MLP window classifier checkpoint.

    Raises:
        ClassificationFailure: if the checkpoint is missing or unreadable
    """
    logger = get_logger('classifier')
    path = Path(path)
    if not path.exists():
        raise ClassificationFailure(f"Model not found: {path}")

    try:
        checkpoint = torch.load(path, map_location=device)
        model = MLPClassifier(
            checkpoint['n_channels'],
            checkpoint['samples_per_window'],
            len(checkpoint['labels']),
            hidden_size=checkpoint.get('hidden_size', 256)
        )
        model.load_state_dict(checkpoint['model_state_dict'])
    except (KeyError, RuntimeError, OSError, EOFError, pickle.UnpicklingError) as e:
        raise ClassificationFailure(f"Could not load model {path}: {e}") from e

    logger.info(f"Loaded model {path.name} ({len(checkpoint['labels'])} exercises)")
    check_labels(checkpoint['labels'], config)
    return TorchWindowClassifier(
        model,
        checkpoint['labels'],
        checkpoint['n_channels'],
        checkpoint['samples_per_window'],
        config,
        device
    )


class ExerciseModelSource(Protocol):
    """Resolves an exercise model id to a window classifier."""

    def get_exercise_model(self, model_id: str) -> WindowClassifier:
        ...


class DirectoryModelSource:
    """
    Loads ``<model_id>.pth`` checkpoints from a directory, once per id.
    """

    def __init__(self, models_dir: Optional[Path] = None, config=None):
        self.config = config or CONFIG
        self.models_dir = Path(models_dir or self.config.output.models_dir)
        self._cache: Dict[str, TorchWindowClassifier] = {}

    def get_exercise_model(self, model_id: str) -> TorchWindowClassifier:
        if model_id not in self._cache:
            self._cache[model_id] = load_classifier(
                self.models_dir / f"{model_id}.pth", self.config
            )
        return self._cache[model_id]
