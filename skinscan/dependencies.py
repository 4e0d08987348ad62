"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends

from skinscan.classifier import ClassifierClient, GradioClassifierClient
from skinscan.config import get_settings
from skinscan.identity import (
    IdentityProvider,
    InMemoryIdentityProvider,
    SupabaseIdentityProvider,
)
from skinscan.kv_store import InMemoryKvStore, KvStore, RedisKvStore, SqlKvStore
from skinscan.pipeline import AnalysisPipeline
from skinscan.repository import ScanRepository
from skinscan.storage import InMemoryStorageClient, S3StorageClient, StorageClient

logger = logging.getLogger(__name__)

_kv_store: KvStore | None = None
_storage_client: StorageClient | None = None
_identity_provider: IdentityProvider | None = None


def get_kv_store() -> KvStore:
    """
    Return a singleton store so records persist across requests.
    """
    global _kv_store
    if _kv_store:
        return _kv_store

    settings = get_settings()
    if settings.use_in_memory_backends:
        _kv_store = InMemoryKvStore()
    elif settings.database_url:
        _kv_store = SqlKvStore(settings.database_url)
    elif settings.redis_url:
        _kv_store = RedisKvStore(
            url=settings.redis_url, key_prefix=settings.redis_key_prefix
        )
    else:
        logger.warning("No DATABASE_URL or REDIS_URL set; records live in memory")
        _kv_store = InMemoryKvStore()
    return _kv_store


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.use_s3_storage:
        _storage_client = InMemoryStorageClient(bucket=settings.storage_bucket)
    else:
        _storage_client = S3StorageClient(
            bucket=settings.storage_bucket,
            region=settings.storage_region or "",
            endpoint=settings.storage_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            fetch_timeout=settings.storage_timeout_seconds,
        )
    return _storage_client


def get_identity_provider() -> IdentityProvider:
    global _identity_provider
    if _identity_provider:
        return _identity_provider

    settings = get_settings()
    if (
        settings.use_in_memory_backends
        or not settings.identity_url
        or not settings.identity_service_key
    ):
        _identity_provider = InMemoryIdentityProvider()
    else:
        _identity_provider = SupabaseIdentityProvider(
            base_url=settings.identity_url,
            service_key=settings.identity_service_key,
            timeout=settings.auth_timeout_seconds,
        )
    return _identity_provider


def get_classifier_client() -> Optional[ClassifierClient]:
    """
    Return the classifier client, or None when no access token is configured.

    A missing token only disables /analyze; the rest of the API keeps serving.
    """
    settings = get_settings()
    if not settings.classifier_token:
        return None
    return GradioClassifierClient(
        base_url=settings.classifier_url,
        token=settings.classifier_token,
        timeout=settings.classifier_timeout_seconds,
    )


def get_scan_repository(store: KvStore = Depends(get_kv_store)) -> ScanRepository:
    return ScanRepository(store)


def get_analysis_pipeline(
    repository: ScanRepository = Depends(get_scan_repository),
    storage: StorageClient = Depends(get_storage_client),
    classifier: Optional[ClassifierClient] = Depends(get_classifier_client),
) -> AnalysisPipeline:
    return AnalysisPipeline(repository, storage, classifier)


def reset_clients() -> None:
    """Drop cached backend clients so the next call rebuilds them from settings."""
    global _kv_store, _storage_client, _identity_provider
    _kv_store = None
    _storage_client = None
    _identity_provider = None
