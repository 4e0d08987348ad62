"""
Profile and scan records built on top of the key-value store.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from skinscan.errors import Conflict, Forbidden, NotFound
from skinscan.kv_store import KvStore
from skinscan.taxonomy import DiseaseInfo

PROFILE_KEY_PREFIX = "user:"
SCAN_KEY_PREFIX = "scan_"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _isoformat(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat()


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class Profile:
    id: str
    email: str
    name: str
    created_at: str
    updated_at: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Profile":
        return cls(
            id=data["id"],
            email=data["email"],
            name=data["name"],
            created_at=data["createdAt"],
            updated_at=data.get("updatedAt"),
        )


@dataclass
class Scan:
    id: str
    owner_id: str
    image_url: str
    disease_code: str
    disease_name: str
    severity: str
    description: str
    recommendations: list[str]
    confidence: float
    created_at: str
    probability_distribution: dict[str, float] = field(default_factory=dict)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "ownerId": self.owner_id,
            "imageUrl": self.image_url,
            "diseaseCode": self.disease_code,
            "diseaseName": self.disease_name,
            "severity": self.severity,
            "description": self.description,
            "recommendations": list(self.recommendations),
            "confidence": self.confidence,
            "probabilityDistribution": dict(self.probability_distribution),
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Scan":
        return cls(
            id=data["id"],
            owner_id=data["ownerId"],
            image_url=data["imageUrl"],
            disease_code=data["diseaseCode"],
            disease_name=data["diseaseName"],
            severity=data["severity"],
            description=data["description"],
            recommendations=list(data.get("recommendations") or []),
            confidence=data["confidence"],
            probability_distribution=dict(data.get("probabilityDistribution") or {}),
            created_at=data["createdAt"],
        )


@dataclass
class ScanSummary:
    total_scans: int
    this_month: int
    average_confidence: float
    by_severity: dict[str, int]

    def as_dict(self) -> dict:
        return {
            "totalScans": self.total_scans,
            "thisMonth": self.this_month,
            "averageConfidence": self.average_confidence,
            "bySeverity": dict(self.by_severity),
        }


def profile_key(user_id: str) -> str:
    return f"{PROFILE_KEY_PREFIX}{user_id}"


def owner_scan_prefix(owner_id: str) -> str:
    return f"{SCAN_KEY_PREFIX}{owner_id}_"


class ScanRepository:
    """
    Owns the semantics of Profile and Scan records; the store only sees
    opaque keys and JSON values.
    """

    def __init__(self, store: KvStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.clock = clock

    # Profiles

    def create_profile(self, user_id: str, email: str, name: str) -> Profile:
        key = profile_key(user_id)
        if self.store.get(key) is not None:
            raise Conflict("User profile already exists")
        profile = Profile(
            id=user_id,
            email=email,
            name=name,
            created_at=_isoformat(self.clock()),
        )
        self.store.set(key, profile.as_dict())
        return profile

    def get_profile(self, user_id: str) -> Profile:
        data = self.store.get(profile_key(user_id))
        if data is None:
            raise NotFound("User profile not found")
        return Profile.from_dict(data)

    def update_profile(self, user_id: str, name: str | None) -> Profile:
        profile = self.get_profile(user_id)
        if name and name.strip():
            profile.name = name.strip()
        profile.updated_at = _isoformat(self.clock())
        self.store.set(profile_key(user_id), profile.as_dict())
        return profile

    # Scans

    def new_scan_id(self, owner_id: str) -> str:
        millis = int(time.time() * 1000)
        return f"{owner_scan_prefix(owner_id)}{millis}_{uuid.uuid4().hex[:8]}"

    def create_scan(
        self,
        *,
        owner_id: str,
        image_url: str,
        disease_code: str,
        info: DiseaseInfo,
        confidence: float,
        probability_distribution: dict[str, float] | None = None,
    ) -> Scan:
        scan = Scan(
            id=self.new_scan_id(owner_id),
            owner_id=owner_id,
            image_url=image_url,
            disease_code=disease_code,
            disease_name=info.full_name,
            severity=info.severity.value,
            description=info.description,
            recommendations=list(info.recommendations),
            confidence=confidence,
            probability_distribution=dict(probability_distribution or {}),
            created_at=_isoformat(self.clock()),
        )
        self.store.set(scan.id, scan.as_dict())
        return scan

    def get_scan(self, scan_id: str) -> Scan:
        if not scan_id.startswith(SCAN_KEY_PREFIX):
            raise NotFound("Scan not found")
        data = self.store.get(scan_id)
        if data is None:
            raise NotFound("Scan not found")
        return Scan.from_dict(data)

    def list_scans(
        self,
        owner_id: str,
        *,
        search: str | None = None,
        severity: str | None = None,
    ) -> list[Scan]:
        """
        Return the owner's scans newest first.

        Ties on ``createdAt`` are broken by id so repeated calls return the
        same order. ``search`` matches the disease name case-insensitively;
        ``severity`` must match exactly, ignoring case.
        """
        scans = [
            Scan.from_dict(data)
            for data in self.store.scan_prefix(owner_scan_prefix(owner_id))
            if data.get("ownerId") == owner_id
        ]
        if search and search.strip():
            needle = search.strip().lower()
            scans = [s for s in scans if needle in s.disease_name.lower()]
        if severity and severity.strip().lower() != "all":
            wanted = severity.strip().lower()
            scans = [s for s in scans if s.severity.lower() == wanted]
        return sorted(
            scans,
            key=lambda s: (_parse_timestamp(s.created_at), s.id),
            reverse=True,
        )

    def scan_summary(self, owner_id: str) -> ScanSummary:
        scans = self.list_scans(owner_id)
        now = self.clock().astimezone(timezone.utc)
        this_month = 0
        by_severity: dict[str, int] = {}
        for scan in scans:
            created = _parse_timestamp(scan.created_at)
            if (created.year, created.month) == (now.year, now.month):
                this_month += 1
            by_severity[scan.severity] = by_severity.get(scan.severity, 0) + 1
        average = (
            round(sum(s.confidence for s in scans) / len(scans), 2) if scans else 0.0
        )
        return ScanSummary(
            total_scans=len(scans),
            this_month=this_month,
            average_confidence=average,
            by_severity=by_severity,
        )

    def delete_scan(self, scan_id: str, caller_id: str) -> None:
        scan = self.get_scan(scan_id)
        if scan.owner_id != caller_id:
            raise Forbidden("Forbidden: Cannot delete other user scans")
        self.store.delete(scan_id)
