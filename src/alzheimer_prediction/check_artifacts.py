from __future__ import annotations

from pathlib import Path

import numpy as np
import typer
from loguru import logger

from alzheimer_prediction.api import Settings
from alzheimer_prediction.features import build_feature_vector
from alzheimer_prediction.form import SAMPLE_PATIENTS
from alzheimer_prediction.model import ArtifactStore, PredictionResult

app = typer.Typer(add_completion=False)


@app.command()
def check_artifacts(
    scaler_path: Path | None = typer.Option(
        None,
        "--scaler",
        help="Path to the serialized scaler (defaults to API_SCALER_PATH).",
    ),
    classifier_path: Path | None = typer.Option(
        None,
        "--classifier",
        help="Path to the serialized classifier (defaults to API_CLASSIFIER_PATH).",
    ),
) -> None:
    """
    Load the model artifacts and run both sample patients through them.

    Unlike the API there is no demo-mode fallback: any loading or inference
    error aborts with a non-zero exit code.

    Args:
    ----
        scaler_path: Path to the serialized scaler.
        classifier_path: Path to the serialized classifier.
    """
    settings = Settings()
    store = ArtifactStore(
        scaler_path or settings.scaler_path,
        classifier_path or settings.classifier_path,
        cache=False,
    )

    try:
        artifacts = store.load()
    except Exception as exc:
        logger.error(f"Unable to load artifacts: {exc!r}")
        raise typer.Exit(code=1) from exc

    for number, record in sorted(SAMPLE_PATIENTS.items()):
        rows = build_feature_vector(record).reshape(1, -1)
        try:
            scaled = artifacts.scaler.transform(rows)
            label = np.asarray(artifacts.classifier.predict(scaled)).ravel()[0]
            result = PredictionResult.from_label(label)
        except Exception as exc:
            logger.error(f"Inference failed for sample patient {number}: {exc!r}")
            raise typer.Exit(code=1) from exc
        typer.echo(f"Sample patient {number}: {result.label.value} - {result.message}")


if __name__ == "__main__":
    app()
