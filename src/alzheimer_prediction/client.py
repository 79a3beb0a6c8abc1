from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

import requests
from loguru import logger

API_PATH = "/predict"


@dataclass(frozen=True)
class ClientConfig:
    """Connection settings for the prediction endpoint.

    Attributes:
        base_url: Host serving the ``/predict`` endpoint.
        auth_token: Bearer credential sent with every request, if any.
        timeout: Request timeout in seconds.
    """

    base_url: str
    auth_token: str | None = None
    timeout: float = 10.0

    @property
    def predict_url(self) -> str:
        return f"{self.base_url.rstrip('/')}{API_PATH}"


class PredictionClient:
    """Sends patient records to the prediction endpoint."""

    def __init__(self, config: ClientConfig) -> None:
        self.config = config

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.auth_token:
            headers["Authorization"] = f"Bearer {self.config.auth_token}"
        return headers

    def predict(self, record: Mapping[str, float]) -> tuple[dict[str, Any] | None, str | None]:
        """Send a patient record to the prediction API.

        Args:
            record: Patient record keyed by attribute name.

        Returns:
            Tuple of response JSON and error message, exactly one of which is set.
        """
        url = self.config.predict_url
        try:
            response = requests.post(url, json=dict(record), headers=self._headers(), timeout=self.config.timeout)
        except requests.RequestException as exc:
            logger.warning(f"Prediction request to {url} failed: {exc}")
            return None, f"Could not reach the API: {exc}"
        if not response.ok:
            detail = response.text
            try:
                data = response.json()
                if isinstance(data, dict):
                    detail = data.get("error", detail)
            except ValueError:
                pass
            return None, f"API error ({response.status_code}): {detail}"
        try:
            data = response.json()
        except ValueError:
            return None, "The API did not return valid JSON."
        if not isinstance(data, dict) or "prediction" not in data:
            return None, "The API response did not contain a prediction."
        return data, None
