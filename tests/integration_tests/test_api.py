import asyncio
from types import SimpleNamespace

import pytest
from prometheus_client import REGISTRY

from alzheimer_prediction import model
from alzheimer_prediction.api import CORS_HEADERS, app, get_artifact_store
from alzheimer_prediction.form import SAMPLE_PATIENTS

PREDICT_URL = "/predict"

HIGH_RISK = "High risk of Alzheimer's Disease detected (Please consult a healthcare professional)"
LOW_RISK = "Low risk of Alzheimer's Disease detected"


class ExplodingStore:
    """Artifact store that fails the test if anything tries to load from it."""

    def load(self):
        raise AssertionError("Artifacts must not be loaded")

    def available(self) -> bool:
        return False


def assert_cors_headers(response) -> None:
    for header, value in CORS_HEADERS.items():
        assert response.headers[header] == value


def test_read_root(client):
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["artifacts"]["available"] is True


def test_read_root_without_artifacts(demo_client):
    response = demo_client.get("/")
    assert response.status_code == 200
    assert response.json()["artifacts"]["available"] is False


def test_predict(client):
    response = client.post(PREDICT_URL, json=SAMPLE_PATIENTS[1])
    assert response.status_code == 200
    assert response.json() == {"prediction": HIGH_RISK, "demo_mode": False}
    assert_cors_headers(response)


def test_predict_low_risk(client):
    response = client.post(PREDICT_URL, json=SAMPLE_PATIENTS[2])
    assert response.status_code == 200
    assert response.json()["prediction"] == LOW_RISK


def test_predict_accepts_numeric_strings(client):
    features = {name: str(value) for name, value in SAMPLE_PATIENTS[1].items()}

    response = client.post(PREDICT_URL, json=features)
    assert response.status_code == 200
    assert response.json()["prediction"] == HIGH_RISK


def test_predict_missing_feature(client):
    features = dict(SAMPLE_PATIENTS[1])
    del features["Age"]

    response = client.post(PREDICT_URL, json=features)
    assert response.status_code == 200
    assert response.json()["prediction"]


def test_predict_missing_feature_strict(client_factory, artifact_paths):
    scaler_path, classifier_path = artifact_paths
    strict_client = client_factory(
        scaler_path=str(scaler_path),
        classifier_path=str(classifier_path),
        strict_validation=True,
    )
    features = dict(SAMPLE_PATIENTS[1])
    del features["Age"]

    response = strict_client.post(PREDICT_URL, json=features)
    assert response.status_code == 400
    assert "Age" in response.json()["error"]


def test_predict_demo_mode_without_artifacts(demo_client):
    response = demo_client.post(PREDICT_URL, json={"Age": 70})
    assert response.status_code == 200
    data = response.json()
    assert data["prediction"].endswith("(Demo Mode)")
    assert data["demo_mode"] is True


def test_demo_mode_is_random(demo_client, monkeypatch):
    draws = iter([0.9, 0.1])
    monkeypatch.setattr(model, "random", SimpleNamespace(random=lambda: next(draws)))

    first = demo_client.post(PREDICT_URL, json={}).json()["prediction"]
    second = demo_client.post(PREDICT_URL, json={}).json()["prediction"]

    assert first == "High risk of Alzheimer's Disease detected (Demo Mode)"
    assert second == "Low risk of Alzheimer's Disease detected (Demo Mode)"


def test_options_preflight(client):
    response = client.options(PREDICT_URL)
    assert response.status_code == 200
    assert response.content == b""
    assert_cors_headers(response)


def test_options_preflight_ignores_body(client):
    response = client.request("OPTIONS", PREDICT_URL, content=b"{not json")
    assert response.status_code == 200
    assert_cors_headers(response)


@pytest.mark.parametrize("method", ["GET", "PUT", "PATCH", "DELETE"])
def test_other_methods_are_rejected(client, method):
    app.dependency_overrides[get_artifact_store] = ExplodingStore

    response = client.request(method, PREDICT_URL)
    assert response.status_code == 400
    assert response.json() == {"error": "Method not allowed"}
    assert_cors_headers(response)


def test_predict_malformed_json(client):
    response = client.post(PREDICT_URL, content=b"{not json", headers={"Content-Type": "application/json"})
    assert response.status_code == 400
    assert "Invalid JSON" in response.json()["error"]
    assert_cors_headers(response)


def test_predict_non_object_body(client):
    response = client.post(PREDICT_URL, json=[1, 2, 3])
    assert response.status_code == 400
    assert response.json()["error"] == "Request body must be a JSON object"


def test_predict_ignores_authorization_header(client):
    response = client.post(PREDICT_URL, json=SAMPLE_PATIENTS[2], headers={"Authorization": "Bearer anything"})
    assert response.status_code == 200


def test_metrics_endpoint(client):
    client.post(PREDICT_URL, json=SAMPLE_PATIENTS[2])

    response = client.get("/metrics/")
    assert response.status_code == 200
    assert "api_prediction_request_count" in response.text


def request_count(outcome: str) -> float:
    return REGISTRY.get_sample_value("api_prediction_request_count_total", {"outcome": outcome}) or 0.0


def test_metrics_count_demo_and_rejected_requests(demo_client):
    demo_before = request_count("demo")
    rejected_before = request_count("rejected")

    demo_client.post(PREDICT_URL, json=SAMPLE_PATIENTS[1])
    demo_client.get(PREDICT_URL)

    assert request_count("demo") == demo_before + 1
    assert request_count("rejected") == rejected_before + 1


HUGE_DIGITS = "1" * 400


@pytest.mark.parametrize(
    ("body", "expected_status"),
    [
        ('{"Age": "' + HUGE_DIGITS + '"}', 200),
        ('{"Age": ' + HUGE_DIGITS + "}", 200),
        ('{"BMI": ' + HUGE_DIGITS + "}", 200),
        ('{"Age": ' + "1" * 5000 + "}", 400),
        ("[" * 100000 + "]" * 100000, 400),
    ],
    ids=["long-digit-string", "huge-int", "huge-float-field", "int-over-digit-limit", "deep-nesting"],
)
def test_predict_oversized_values(demo_client, body, expected_status):
    response = demo_client.post(PREDICT_URL, content=body.encode(), headers={"Content-Type": "application/json"})
    assert response.status_code == expected_status
    assert_cors_headers(response)
    if expected_status == 200:
        assert response.json()["demo_mode"] is True
    else:
        assert "Invalid JSON" in response.json()["error"]


class LoopRecordingStore:
    """Artifact store that records whether it was loaded on the event loop."""

    def __init__(self) -> None:
        self.loaded_on_loop: list[bool] = []

    def load(self):
        try:
            asyncio.get_running_loop()
            self.loaded_on_loop.append(True)
        except RuntimeError:
            self.loaded_on_loop.append(False)
        raise FileNotFoundError("no artifacts")

    def available(self) -> bool:
        return False


def test_inference_runs_off_the_event_loop(client):
    store = LoopRecordingStore()
    app.dependency_overrides[get_artifact_store] = lambda: store

    response = client.post(PREDICT_URL, json=SAMPLE_PATIENTS[1])

    assert response.status_code == 200
    assert response.json()["demo_mode"] is True
    assert store.loaded_on_loop == [False]
