from pathlib import Path

import joblib
import numpy as np
import pytest
from fastapi.testclient import TestClient
from sklearn.preprocessing import StandardScaler
from sklearn.tree import DecisionTreeClassifier

from alzheimer_prediction.api import Settings, app, get_settings
from alzheimer_prediction.features import FEATURE_ORDER, NUM_FEATURES
from alzheimer_prediction.form import SAMPLE_PATIENTS

MMSE_INDEX = FEATURE_ORDER.index("MMSE")


def _fit_artifacts(n_samples: int = 400, seed: int = 0) -> tuple[StandardScaler, DecisionTreeClassifier]:
    """Fit a scaler and a classifier that flags low MMSE scores as high risk."""
    rng = np.random.default_rng(seed)
    features = rng.normal(size=(n_samples, NUM_FEATURES))
    features[:, MMSE_INDEX] = rng.uniform(0, 30, size=n_samples)
    labels = (features[:, MMSE_INDEX] < 20).astype(int)

    scaler = StandardScaler().fit(features)
    classifier = DecisionTreeClassifier(max_depth=1, random_state=seed).fit(scaler.transform(features), labels)
    return scaler, classifier


@pytest.fixture(scope="session")
def fitted_artifacts() -> tuple[StandardScaler, DecisionTreeClassifier]:
    return _fit_artifacts()


@pytest.fixture()
def artifact_paths(tmp_path: Path, fitted_artifacts) -> tuple[Path, Path]:
    """Write the fitted artifacts to disk and return (scaler_path, classifier_path)."""
    scaler, classifier = fitted_artifacts
    scaler_path = tmp_path / "scaler.pkl"
    classifier_path = tmp_path / "xgb_best_model.pkl"
    joblib.dump(scaler, scaler_path)
    joblib.dump(classifier, classifier_path)
    return scaler_path, classifier_path


@pytest.fixture()
def missing_artifact_paths(tmp_path: Path) -> tuple[Path, Path]:
    return tmp_path / "missing" / "scaler.pkl", tmp_path / "missing" / "xgb_best_model.pkl"


@pytest.fixture()
def client_factory():
    """Create TestClients wired to the given settings."""
    clients: list[TestClient] = []

    def _factory(**settings_overrides) -> TestClient:
        settings = Settings(**settings_overrides)
        app.dependency_overrides[get_settings] = lambda: settings
        test_client = TestClient(app)
        clients.append(test_client)
        return test_client

    yield _factory

    for test_client in clients:
        test_client.close()
    app.dependency_overrides.clear()


@pytest.fixture()
def client(client_factory, artifact_paths):
    scaler_path, classifier_path = artifact_paths
    return client_factory(scaler_path=str(scaler_path), classifier_path=str(classifier_path))


@pytest.fixture()
def demo_client(client_factory, missing_artifact_paths):
    scaler_path, classifier_path = missing_artifact_paths
    return client_factory(scaler_path=str(scaler_path), classifier_path=str(classifier_path))


@pytest.fixture()
def sample_patient() -> dict[str, float]:
    return dict(SAMPLE_PATIENTS[1])
