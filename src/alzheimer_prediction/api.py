from __future__ import annotations

import json
import time
from functools import lru_cache
from http import HTTPStatus
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, Response
from loguru import logger
from prometheus_client import Counter, Histogram, make_asgi_app
from pydantic_settings import BaseSettings, SettingsConfigDict

from alzheimer_prediction import __version__
from alzheimer_prediction.features import build_feature_vector, missing_features
from alzheimer_prediction.model import ArtifactStore, predict_risk


class Settings(BaseSettings):
    """API configuration settings."""

    # Paths
    scaler_path: str = "models/scaler.pkl"
    classifier_path: str = "models/xgb_best_model.pkl"

    # Behaviour
    cache_artifacts: bool = True
    strict_validation: bool = False

    model_config = SettingsConfigDict(
        env_prefix="API_",
        env_file=".env",
        env_file_encoding="utf-8",
    )


CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}

# Every method is routed to the handler so that it can answer with the JSON error body itself.
PREDICT_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]

# Prometheus metrics
PREDICTION_LATENCY = Histogram(
    "api_prediction_latency_seconds",
    "Latency of API predictions in seconds",
    ["outcome"],
)
PREDICTION_REQUEST_COUNT = Counter(
    "api_prediction_request_count",
    "Total number of prediction requests",
    ["outcome"],
)


class RequestError(Exception):
    """Raised for requests that are answered with HTTP 400."""


app = FastAPI(title="Alzheimer's Risk Prediction API", version=__version__)
app.mount("/metrics", make_asgi_app())


@lru_cache
def get_settings() -> Settings:
    """Dependency to get the API settings."""
    return Settings()


@lru_cache
def _build_artifact_store(scaler_path: str, classifier_path: str, cache: bool) -> ArtifactStore:
    return ArtifactStore(scaler_path, classifier_path, cache=cache)


def get_artifact_store(settings: Settings = Depends(get_settings)) -> ArtifactStore:
    """Dependency to get the artifact store for the configured paths."""
    return _build_artifact_store(settings.scaler_path, settings.classifier_path, settings.cache_artifacts)


def _json_response(content: dict[str, Any], status_code: int = HTTPStatus.OK) -> JSONResponse:
    return JSONResponse(content=content, status_code=status_code, headers=CORS_HEADERS)


async def _read_record(request: Request) -> dict[str, Any]:
    """Parse the request body as a patient record."""
    try:
        payload = json.loads(await request.body())
    except (ValueError, RecursionError) as e:
        # ValueError covers JSONDecodeError, UnicodeDecodeError and oversized integer literals.
        raise RequestError(f"Invalid JSON body: {e}") from e
    if not isinstance(payload, dict):
        raise RequestError("Request body must be a JSON object")
    return payload


@app.get("/")
async def read_root(
    settings: Settings = Depends(get_settings),
    store: ArtifactStore = Depends(get_artifact_store),
) -> dict[str, Any]:
    """Health check endpoint with API status information."""
    return {
        "status": "healthy",
        "message": "Alzheimer's Risk Prediction API is running",
        "version": __version__,
        "artifacts": {
            "scaler_path": settings.scaler_path,
            "classifier_path": settings.classifier_path,
            "available": store.available(),
        },
        "endpoints": {
            "health": "/",
            "predict": "/predict",
            "metrics": "/metrics",
        },
    }


@app.api_route("/predict", methods=PREDICT_METHODS)
async def predict(
    request: Request,
    settings: Settings = Depends(get_settings),
    store: ArtifactStore = Depends(get_artifact_store),
) -> Response:
    """Predict the Alzheimer's risk for a patient record."""
    if request.method == "OPTIONS":
        return Response(status_code=HTTPStatus.OK, headers=CORS_HEADERS)

    try:
        if request.method != "POST":
            raise RequestError("Method not allowed")

        record = await _read_record(request)
        vector = build_feature_vector(record)

        if settings.strict_validation:
            missing = missing_features(vector)
            if missing:
                raise RequestError(f"Missing or non-numeric features: {missing}")
    except RequestError as e:
        logger.warning(f"Rejected {request.method} /predict: {e}")
        PREDICTION_REQUEST_COUNT.labels(outcome="rejected").inc()
        return _json_response({"error": str(e)}, status_code=HTTPStatus.BAD_REQUEST)

    missing = missing_features(vector)
    if missing:
        logger.debug(f"Record is missing {len(missing)} feature(s): {missing}")

    start_time = time.perf_counter()
    # Artifact loading and inference block, keep them off the event loop.
    result = await run_in_threadpool(predict_risk, vector, store)
    inference_time = time.perf_counter() - start_time

    outcome = "demo" if result.demo_mode else "model"
    logger.debug(f"Prediction completed in {inference_time * 1000:.2f}ms (outcome={outcome})")
    PREDICTION_LATENCY.labels(outcome=outcome).observe(inference_time)
    PREDICTION_REQUEST_COUNT.labels(outcome=outcome).inc()

    return _json_response({"prediction": result.message, "demo_mode": result.demo_mode})
