"""
One-time startup tasks: make sure the storage bucket and the demo account
exist. Every task is idempotent and treats "already exists" as success.
"""

from __future__ import annotations

import logging

from skinscan.config import Settings, get_settings
from skinscan.errors import Conflict, IdentityProviderError
from skinscan.identity import Identity, IdentityProvider
from skinscan.repository import ScanRepository
from skinscan.storage import StorageClient

logger = logging.getLogger(__name__)


def ensure_storage_bucket(storage: StorageClient) -> bool:
    created = storage.ensure_bucket()
    if created:
        logger.info("Storage bucket created")
    else:
        logger.info("Storage bucket already exists")
    return created


def ensure_demo_account(
    identity: IdentityProvider, repository: ScanRepository, settings: Settings
) -> Identity:
    """
    Create the demo login if it is missing and make sure it has a profile.

    Another instance may create the account between our lookup and our create;
    the provider then rejects the create and we re-read the existing account.
    """
    user = identity.find_user_by_email(settings.demo_email)
    if user is None:
        try:
            user = identity.create_user(
                settings.demo_email, settings.demo_password, settings.demo_name
            )
            logger.info("Demo account created: %s", settings.demo_email)
        except IdentityProviderError:
            user = identity.find_user_by_email(settings.demo_email)
            if user is None:
                raise
    else:
        logger.info("Demo account already exists")

    try:
        repository.create_profile(
            user.id, user.email or settings.demo_email, settings.demo_name
        )
    except Conflict:
        pass
    return user


def run_startup_tasks(
    storage: StorageClient,
    identity: IdentityProvider,
    repository: ScanRepository,
    settings: Settings | None = None,
) -> None:
    """Best effort: failures are logged and startup continues."""
    settings = settings or get_settings()
    try:
        ensure_storage_bucket(storage)
    except Exception:
        logger.exception("Error initializing storage")
    try:
        ensure_demo_account(identity, repository, settings)
    except Exception:
        logger.exception("Error initializing demo account")
