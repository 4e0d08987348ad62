"""
Pydantic schemas for the SkinScan API.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: Literal["healthy"]
    timestamp: str


class SignupRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(..., min_length=6, max_length=256)
    name: str = Field(..., min_length=1, max_length=120)


class SignupUser(BaseModel):
    id: str
    email: str
    name: str


class SignupResponse(BaseModel):
    success: bool
    user: SignupUser


class ProfileResponse(BaseModel):
    id: str
    email: str
    name: str
    createdAt: str
    updatedAt: Optional[str] = None


class ProfileUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, max_length=120)


class UploadImageResponse(BaseModel):
    imageUrl: str


class AnalyzeRequest(BaseModel):
    userId: str = Field(..., min_length=1)
    imageUrl: str = Field(..., min_length=1, max_length=4096)


class ScanResponse(BaseModel):
    id: str
    ownerId: str
    imageUrl: str
    diseaseCode: str
    diseaseName: str
    severity: str
    description: str
    recommendations: list[str]
    confidence: float
    probabilityDistribution: dict[str, float]
    createdAt: str


class AnalyzeResponse(ScanResponse):
    scanId: str


class ListScansResponse(BaseModel):
    scans: list[ScanResponse]


class ScanSummaryResponse(BaseModel):
    totalScans: int
    thisMonth: int
    averageConfidence: float
    bySeverity: dict[str, int]


class DeleteScanResponse(BaseModel):
    success: bool
    message: str
