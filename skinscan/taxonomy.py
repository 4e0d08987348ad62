"""
Static mapping from classifier label codes to condition details.

The table is built once at import and never mutated; ``classify`` is total and
returns the same ``DiseaseInfo`` for the same input.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional


class DiseaseCode(str, Enum):
    """Label codes emitted by the HAM10000-style classifier."""

    NV = "nv"
    MEL = "mel"
    BKL = "bkl"
    BCC = "bcc"
    AKIEC = "akiec"
    VASC = "vasc"
    DF = "df"

    @classmethod
    def parse(cls, value: str | None) -> Optional["DiseaseCode"]:
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class Severity(str, Enum):
    LOW = "Low"
    MODERATE = "Moderate"
    HIGH = "High"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class DiseaseInfo:
    full_name: str
    severity: Severity
    description: str
    recommendations: tuple[str, ...]

    def as_dict(self) -> dict:
        data = asdict(self)
        data["severity"] = self.severity.value
        data["recommendations"] = list(self.recommendations)
        return data


_TAXONOMY: Mapping[DiseaseCode, DiseaseInfo] = MappingProxyType(
    {
        DiseaseCode.NV: DiseaseInfo(
            full_name="Melanocytic nevi: benign mole",
            severity=Severity.LOW,
            description=(
                "A benign (non-cancerous) mole formed by melanocytes. Generally "
                "harmless but should be monitored for changes."
            ),
            recommendations=(
                "Monitor the mole for any changes in size, shape, or color",
                "Use sunscreen to protect your skin",
                "Schedule regular skin checks with a dermatologist",
                "Take photos to track any changes over time",
            ),
        ),
        DiseaseCode.MEL: DiseaseInfo(
            full_name="Melanoma: dangerous skin cancer",
            severity=Severity.HIGH,
            description=(
                "A type of skin cancer that develops in melanocytes. Early "
                "detection is crucial for successful treatment."
            ),
            recommendations=(
                "Consult a dermatologist immediately for professional evaluation",
                "Avoid sun exposure and use SPF 50+ sunscreen",
                "Monitor the area for any changes in size, shape, or color",
                "Do not attempt self-treatment",
            ),
        ),
        DiseaseCode.BKL: DiseaseInfo(
            full_name="Benign keratosis: non-cancerous growth",
            severity=Severity.LOW,
            description=(
                "A non-cancerous skin growth that is usually harmless. Common in "
                "older adults."
            ),
            recommendations=(
                "Consult with a dermatologist if it changes or becomes irritated",
                "Protect skin from excessive sun exposure",
                "Regular skin monitoring is recommended",
                "Treatment is usually not necessary unless for cosmetic reasons",
            ),
        ),
        DiseaseCode.BCC: DiseaseInfo(
            full_name="Basal cell carcinoma: type of skin cancer",
            severity=Severity.MODERATE,
            description=(
                "The most common form of skin cancer, usually caused by sun "
                "exposure. Generally slow-growing and treatable."
            ),
            recommendations=(
                "Schedule an appointment with a dermatologist",
                "Protect the area from sun exposure",
                "Use broad-spectrum sunscreen daily",
                "Avoid picking or scratching the area",
            ),
        ),
        DiseaseCode.AKIEC: DiseaseInfo(
            full_name="Actinic keratoses: precancerous lesions",
            severity=Severity.MODERATE,
            description=(
                "Rough, scaly patches on skin caused by years of sun exposure. "
                "Considered precancerous and should be treated."
            ),
            recommendations=(
                "Consult with a dermatologist for treatment options",
                "Use daily sunscreen (SPF 30+)",
                "Wear protective clothing when outdoors",
                "Regular skin checks to monitor progression",
            ),
        ),
        DiseaseCode.VASC: DiseaseInfo(
            full_name="Vascular lesions: abnormal blood vessels",
            severity=Severity.LOW,
            description=(
                "Abnormalities in blood vessels that appear on the skin. Usually "
                "benign but may require medical evaluation."
            ),
            recommendations=(
                "Consult a dermatologist for proper diagnosis",
                "Avoid trauma to the affected area",
                "Monitor for any changes in size or appearance",
                "Treatment options are available if desired",
            ),
        ),
        DiseaseCode.DF: DiseaseInfo(
            full_name="Dermatofibroma: benign skin nodule",
            severity=Severity.LOW,
            description=(
                "A common benign skin growth, usually firm to the touch. "
                "Generally harmless and does not require treatment."
            ),
            recommendations=(
                "No treatment necessary unless it becomes bothersome",
                "Avoid scratching or irritating the area",
                "Consult a dermatologist if it changes or causes discomfort",
                "Removal is possible if desired for cosmetic reasons",
            ),
        ),
    }
)

FALLBACK_NAME = "Unknown"
FALLBACK_DESCRIPTION = (
    "Unable to determine specific condition. Please consult a dermatologist."
)
FALLBACK_RECOMMENDATIONS = (
    "Consult a dermatologist for proper diagnosis and treatment",
)


def known_codes() -> list[str]:
    return [code.value for code in DiseaseCode]


def classify(code: str | None, raw_name: str | None = None) -> DiseaseInfo:
    """
    Look up the condition details for a classifier label.

    Args:
        code: Label code returned by the classifier (e.g. ``"mel"``).
        raw_name: Optional display name supplied by the classifier, used only
            when the code is not part of the taxonomy.

    Returns:
        DiseaseInfo: The known entry, or the fallback entry for unknown codes.
    """
    parsed = DiseaseCode.parse(code)
    if parsed is not None:
        return _TAXONOMY[parsed]
    return DiseaseInfo(
        full_name=raw_name or FALLBACK_NAME,
        severity=Severity.UNKNOWN,
        description=FALLBACK_DESCRIPTION,
        recommendations=FALLBACK_RECOMMENDATIONS,
    )
