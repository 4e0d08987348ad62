"""
Client for the hosted skin-lesion classifier and normalization of its output.
"""

from __future__ import annotations

import base64
import logging
import math
import time
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

import requests

from skinscan.errors import ClassificationServiceError

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30  # seconds
PREDICT_PATH = "/api/predict"


@dataclass(frozen=True)
class Prediction:
    """Normalized classifier output. ``confidence`` is a percentage."""

    disease_code: str
    confidence: float
    disease_name: Optional[str] = None
    probabilities: dict[str, float] = field(default_factory=dict)


class ClassifierClient(Protocol):
    def predict(self, image_bytes: bytes) -> dict:
        """Return the raw JSON payload produced by the classifier."""
        ...


def to_percentage(raw_confidence: float) -> float:
    return round(raw_confidence * 100, 2)


def normalize_prediction(payload: Any) -> Prediction:
    """
    Turn a raw classifier payload into a Prediction.

    Gradio wraps outputs as ``{"data": [prediction, ...]}``; a bare prediction
    object is accepted too. ``confidence`` must be a fraction in [0, 1].

    Raises:
        ClassificationServiceError: If required fields are missing or invalid.
    """
    prediction = payload
    if isinstance(payload, dict) and isinstance(payload.get("data"), list):
        if not payload["data"]:
            raise ClassificationServiceError("Classifier returned no prediction")
        prediction = payload["data"][0]
    if not isinstance(prediction, dict):
        raise ClassificationServiceError("Classifier returned an unexpected payload")

    code = prediction.get("disease_code")
    if not isinstance(code, str) or not code.strip():
        raise ClassificationServiceError("Classifier response is missing disease_code")

    raw_confidence = prediction.get("confidence")
    if isinstance(raw_confidence, bool) or not isinstance(raw_confidence, (int, float)):
        raise ClassificationServiceError("Classifier response is missing confidence")
    if math.isnan(raw_confidence) or not 0 <= raw_confidence <= 1:
        raise ClassificationServiceError("Classifier confidence is out of range")

    raw_probabilities = prediction.get("all_probabilities")
    probabilities = {}
    if isinstance(raw_probabilities, dict):
        probabilities = {
            str(label): float(value)
            for label, value in raw_probabilities.items()
            if isinstance(value, (int, float)) and not isinstance(value, bool)
        }

    name = prediction.get("disease_name")
    return Prediction(
        disease_code=code.strip(),
        confidence=to_percentage(float(raw_confidence)),
        disease_name=name if isinstance(name, str) and name else None,
        probabilities=probabilities,
    )


def guess_image_mime(image_bytes: bytes) -> str:
    if image_bytes.startswith(b"\x89PNG"):
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"


@dataclass
class GradioClassifierClient:
    """
    Calls a Gradio space exposing the classifier on ``/api/predict``.
    """

    base_url: str
    token: str
    timeout: float = REQUEST_TIMEOUT

    def predict(self, image_bytes: bytes) -> dict:
        encoded = base64.b64encode(image_bytes).decode("ascii")
        data_url = f"data:{guess_image_mime(image_bytes)};base64,{encoded}"
        start_time = time.time()
        try:
            response = requests.post(
                f"{self.base_url.rstrip('/')}{PREDICT_PATH}",
                headers={"Authorization": f"Bearer {self.token}"},
                json={"data": [data_url]},
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            logger.warning("Classifier timed out after %.1fs", self.timeout)
            raise ClassificationServiceError("ML analysis timed out") from exc
        except requests.RequestException as exc:
            logger.warning("Classifier unreachable: %s", exc)
            raise ClassificationServiceError() from exc

        logger.info("Classifier call took %.2fs", time.time() - start_time)
        if not response.ok:
            logger.error(
                "Classifier returned HTTP %s: %s",
                response.status_code,
                response.text[:500],
            )
            raise ClassificationServiceError()
        try:
            return response.json()
        except ValueError as exc:
            raise ClassificationServiceError(
                "Classifier returned an unexpected payload"
            ) from exc
