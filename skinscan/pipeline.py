"""
Image analysis pipeline: fetch the uploaded image, classify it, enrich the
label from the taxonomy and persist a Scan record.

Each step depends on the previous one, so the steps run sequentially. The
store write is the final step; a failure anywhere before it leaves no record.
"""

from __future__ import annotations

import logging
from typing import Optional

from skinscan.classifier import ClassifierClient, normalize_prediction
from skinscan.errors import ServiceMisconfigured
from skinscan.identity import Identity, require_owner
from skinscan.repository import Scan, ScanRepository
from skinscan.storage import StorageClient
from skinscan.taxonomy import classify

logger = logging.getLogger(__name__)


class AnalysisPipeline:
    def __init__(
        self,
        repository: ScanRepository,
        storage: StorageClient,
        classifier: Optional[ClassifierClient],
    ):
        self.repository = repository
        self.storage = storage
        self.classifier = classifier

    def analyze(self, caller: Identity, owner_id: str, image_url: str) -> Scan:
        """
        Run one analysis for ``owner_id`` and return the persisted Scan.

        Raises:
            Forbidden: caller is not the owner.
            ServiceMisconfigured: no classifier credentials are configured.
            UpstreamFetchError: the image could not be retrieved.
            ClassificationServiceError: the classifier failed or returned
                unusable data.
        """
        require_owner(caller, owner_id, "analyze for")
        if self.classifier is None:
            logger.error("Classifier token not configured; refusing analysis")
            raise ServiceMisconfigured("ML service not configured")

        logger.info("[%s] Fetching image for analysis", owner_id)
        image_bytes = self.storage.fetch_url(image_url)

        logger.info("[%s] Classifying image (%d bytes)", owner_id, len(image_bytes))
        payload = self.classifier.predict(image_bytes)
        prediction = normalize_prediction(payload)

        info = classify(prediction.disease_code, prediction.disease_name)
        scan = self.repository.create_scan(
            owner_id=owner_id,
            image_url=image_url,
            disease_code=prediction.disease_code,
            info=info,
            confidence=prediction.confidence,
            probability_distribution=prediction.probabilities,
        )
        logger.info(
            "[%s] Scan %s stored: %s (%.2f%%)",
            owner_id,
            scan.id,
            scan.disease_code,
            scan.confidence,
        )
        return scan
