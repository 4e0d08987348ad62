"""
HTTP routes for the SkinScan API.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from skinscan.auth import get_current_user, require_owner
from skinscan.config import Settings, get_settings
from skinscan.dependencies import (
    get_analysis_pipeline,
    get_identity_provider,
    get_scan_repository,
    get_storage_client,
)
from skinscan.errors import ValidationError
from skinscan.identity import Identity, IdentityProvider
from skinscan.pipeline import AnalysisPipeline
from skinscan.repository import ScanRepository
from skinscan.schemas import (
    AnalyzeRequest,
    AnalyzeResponse,
    DeleteScanResponse,
    HealthResponse,
    ListScansResponse,
    ProfileResponse,
    ProfileUpdateRequest,
    ScanSummaryResponse,
    SignupRequest,
    SignupResponse,
    SignupUser,
    UploadImageResponse,
)
from skinscan.storage import StorageClient

logger = logging.getLogger(__name__)

router = APIRouter()

_CONTENT_TYPE_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/heic": "heic",
}


def _upload_extension(filename: str | None, content_type: str) -> str:
    if filename and "." in filename:
        ext = filename.rsplit(".", 1)[-1].lower()
        if ext.isalnum() and len(ext) <= 5:
            return ext
    return _CONTENT_TYPE_EXTENSIONS.get(content_type, "bin")


@router.get("/health", response_model=HealthResponse)
def health():
    return HealthResponse(
        status="healthy", timestamp=datetime.now(timezone.utc).isoformat()
    )


@router.post("/signup", response_model=SignupResponse)
def signup(
    payload: SignupRequest,
    identity: IdentityProvider = Depends(get_identity_provider),
    repository: ScanRepository = Depends(get_scan_repository),
):
    """
    Create the account with the identity provider, then mirror its profile.
    """
    name = payload.name.strip()
    if not name:
        raise ValidationError("Email, password, and name are required")
    user = identity.create_user(payload.email, payload.password, name)
    profile = repository.create_profile(user.id, user.email, name)
    logger.info("Signed up user %s", user.id)
    return SignupResponse(
        success=True,
        user=SignupUser(id=profile.id, email=profile.email, name=profile.name),
    )


@router.get("/user/{user_id}", response_model=ProfileResponse)
def get_profile(
    user_id: str,
    caller: Identity = Depends(get_current_user),
    repository: ScanRepository = Depends(get_scan_repository),
):
    require_owner(caller, user_id, "access")
    return ProfileResponse(**repository.get_profile(user_id).as_dict())


@router.put("/user/{user_id}", response_model=ProfileResponse)
def update_profile(
    user_id: str,
    payload: ProfileUpdateRequest,
    caller: Identity = Depends(get_current_user),
    repository: ScanRepository = Depends(get_scan_repository),
):
    require_owner(caller, user_id, "update")
    profile = repository.update_profile(user_id, payload.name)
    return ProfileResponse(**profile.as_dict())


@router.post("/upload-image", response_model=UploadImageResponse)
def upload_image(
    user_id: str = Form(..., alias="userId"),
    file: Optional[UploadFile] = File(None),
    caller: Identity = Depends(get_current_user),
    storage: StorageClient = Depends(get_storage_client),
    settings: Settings = Depends(get_settings),
):
    require_owner(caller, user_id, "upload for")
    if file is None or not file.filename:
        raise ValidationError("No file provided")

    content_type = (file.content_type or "").lower()
    if not content_type.startswith("image/"):
        raise ValidationError("File must be an image")

    data = file.file.read(settings.max_upload_bytes + 1)
    if not data:
        raise ValidationError("No file provided")
    if len(data) > settings.max_upload_bytes:
        raise ValidationError(
            f"File exceeds the {settings.max_upload_bytes // (1024 * 1024)} MB limit"
        )

    millis = int(time.time() * 1000)
    storage_path = f"{user_id}/{millis}.{_upload_extension(file.filename, content_type)}"
    storage.upload_bytes(storage_path, data, content_type)
    url = storage.presign_get(storage_path, expires_in=settings.signed_url_ttl_seconds)
    logger.info("Stored upload %s (%d bytes)", storage_path, len(data))
    return UploadImageResponse(imageUrl=url)


@router.post("/analyze", response_model=AnalyzeResponse)
def analyze(
    payload: AnalyzeRequest,
    caller: Identity = Depends(get_current_user),
    pipeline: AnalysisPipeline = Depends(get_analysis_pipeline),
):
    scan = pipeline.analyze(caller, payload.userId, payload.imageUrl)
    return AnalyzeResponse(scanId=scan.id, **scan.as_dict())


@router.get("/scans/{user_id}", response_model=ListScansResponse)
def list_scans(
    user_id: str,
    search: Optional[str] = Query(None, max_length=200),
    severity: Optional[str] = Query(None, max_length=20),
    caller: Identity = Depends(get_current_user),
    repository: ScanRepository = Depends(get_scan_repository),
):
    require_owner(caller, user_id, "access")
    scans = repository.list_scans(user_id, search=search, severity=severity)
    return ListScansResponse(scans=[scan.as_dict() for scan in scans])


@router.get("/scans/{user_id}/summary", response_model=ScanSummaryResponse)
def scan_summary(
    user_id: str,
    caller: Identity = Depends(get_current_user),
    repository: ScanRepository = Depends(get_scan_repository),
):
    require_owner(caller, user_id, "access")
    return ScanSummaryResponse(**repository.scan_summary(user_id).as_dict())


@router.delete("/scans/{scan_id}", response_model=DeleteScanResponse)
def delete_scan(
    scan_id: str,
    caller: Identity = Depends(get_current_user),
    repository: ScanRepository = Depends(get_scan_repository),
):
    repository.delete_scan(scan_id, caller.id)
    logger.info("User %s deleted scan %s", caller.id, scan_id)
    return DeleteScanResponse(success=True, message="Scan deleted successfully")
