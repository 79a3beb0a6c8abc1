from __future__ import annotations

import random
import threading
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

import joblib
import numpy as np
from loguru import logger
from prometheus_client import Histogram

DEMO_MODE_SUFFIX = "(Demo Mode)"

MODEL_LOADING_TIME = Histogram(
    "api_model_loading_time_seconds",
    "Time taken to load a model artifact from disk in seconds",
    ["artifact"],
)


class Scaler(Protocol):
    """A fitted feature scaler."""

    def transform(self, rows: Any) -> Any: ...


class Classifier(Protocol):
    """A fitted binary classifier."""

    def predict(self, rows: Any) -> Any: ...


class RiskLabel(str, Enum):
    """Enumeration of risk outcomes."""

    HIGH = "high-risk"
    LOW = "low-risk"


_HEADLINES = {
    RiskLabel.HIGH: "High risk of Alzheimer's Disease detected",
    RiskLabel.LOW: "Low risk of Alzheimer's Disease detected",
}
_ADVICE = {
    RiskLabel.HIGH: "(Please consult a healthcare professional)",
}


@dataclass(frozen=True)
class PredictionResult:
    """Outcome of a single prediction.

    Attributes:
        label: Predicted risk label.
        demo_mode: True when the label is a random stand-in because the model
            artifacts could not be loaded or applied.
    """

    label: RiskLabel
    demo_mode: bool = False

    @classmethod
    def from_label(cls, label: Any) -> PredictionResult:
        """Map a raw classifier label (1 is high risk) to a result."""
        return cls(RiskLabel.HIGH if int(label) == 1 else RiskLabel.LOW)

    @classmethod
    def demo(cls, rng: random.Random | None = None) -> PredictionResult:
        """Draw a uniformly random demo-mode result."""
        draw = (rng or random).random()
        return cls(RiskLabel.HIGH if draw > 0.5 else RiskLabel.LOW, demo_mode=True)

    @property
    def message(self) -> str:
        """Human-readable risk string returned to the form."""
        headline = _HEADLINES[self.label]
        if self.demo_mode:
            return f"{headline} {DEMO_MODE_SUFFIX}"
        advice = _ADVICE.get(self.label)
        return f"{headline} {advice}" if advice else headline


@dataclass(frozen=True)
class ModelArtifacts:
    """The pair of fitted objects used for inference."""

    scaler: Scaler
    classifier: Classifier


class ArtifactStore:
    """Loads the scaler and classifier from disk.

    With caching enabled, each artifact is loaded once per (path, mtime) and
    shared between requests. Replacing a file on disk invalidates its entry.

    Args:
        scaler_path: Path to the serialized scaler.
        classifier_path: Path to the serialized classifier.
        cache: Whether to keep loaded artifacts in memory.
    """

    def __init__(self, scaler_path: str | Path, classifier_path: str | Path, cache: bool = True) -> None:
        self.scaler_path = Path(scaler_path)
        self.classifier_path = Path(classifier_path)
        self.cache = cache
        self._lock = threading.Lock()
        self._cache: dict[Path, tuple[float, Any]] = {}

    def available(self) -> bool:
        """Return whether both artifact files exist."""
        return self.scaler_path.is_file() and self.classifier_path.is_file()

    def clear(self) -> None:
        """Drop every cached artifact."""
        with self._lock:
            self._cache.clear()

    def load(self) -> ModelArtifacts:
        """Load both artifacts.

        Raises:
            FileNotFoundError: If either artifact is missing.
            Exception: Whatever the deserializer raises for a corrupt file.
        """
        scaler = self._load_artifact(self.scaler_path, "scaler")
        classifier = self._load_artifact(self.classifier_path, "classifier")
        return ModelArtifacts(scaler=scaler, classifier=classifier)

    def _load_artifact(self, path: Path, name: str) -> Any:
        if not path.is_file():
            raise FileNotFoundError(f"{name.capitalize()} artifact not found: {path}")
        if not self.cache:
            return self._read(path, name)

        key = path.resolve()
        mtime = key.stat().st_mtime
        with self._lock:
            cached = self._cache.get(key)
            if cached is not None and cached[0] == mtime:
                return cached[1]
            artifact = self._read(key, name)
            self._cache[key] = (mtime, artifact)
            return artifact

    @staticmethod
    def _read(path: Path, name: str) -> Any:
        start = time.perf_counter()
        artifact = joblib.load(path)
        elapsed = time.perf_counter() - start
        MODEL_LOADING_TIME.labels(artifact=name).observe(elapsed)
        logger.info(f"Loaded {name} from {path} ({elapsed * 1000:.1f}ms)")
        return artifact


def predict_risk(
    vector: np.ndarray,
    store: ArtifactStore,
    rng: random.Random | None = None,
) -> PredictionResult:
    """Run a feature vector through the scaler and classifier.

    Any failure while loading or applying the artifacts is logged and answered
    with a random demo-mode result instead of being raised.

    Args:
        vector: Feature vector of shape ``(NUM_FEATURES,)``.
        store: Source of the fitted artifacts.
        rng: Optional random generator used for the demo-mode fallback.

    Returns:
        The prediction result.
    """
    try:
        artifacts = store.load()
        rows = np.asarray(vector, dtype=np.float64).reshape(1, -1)
        scaled = artifacts.scaler.transform(rows)
        labels = np.asarray(artifacts.classifier.predict(scaled)).ravel()
        result = PredictionResult.from_label(labels[0])
    except Exception as e:
        logger.error(f"Model error: {e!r}")
        result = PredictionResult.demo(rng)
        logger.warning(f"Serving demo-mode prediction: {result.label.value}")
        return result

    logger.info(f"Prediction: {result.label.value}")
    return result
