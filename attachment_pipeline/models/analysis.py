from datetime import datetime, timezone
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, Field


class IssueSeverity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AnalysisQuality(StrEnum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class DetectedObject(BaseModel):
    """Object recognised in the image"""

    name: str
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    description: str = ""


class DetectedIssue(BaseModel):
    """Potential equipment problem visible in the image"""

    issue_type: str
    description: str
    severity: IssueSeverity = IssueSeverity.LOW
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    location: Optional[str] = None
    evidence: str = ""


class ExtractedText(BaseModel):
    """Text read from the image (error codes, serial numbers, labels)"""

    text: str
    text_type: str = Field(
        default="label", description="error_code, serial_number, warning or label"
    )
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class AnalysisResult(BaseModel):
    """
    Outcome of analyzing one attachment.

    Produced by an analyzer and handed to the result sink. The queue
    itself only cares whether one was produced.
    """

    attachment_id: str = Field(description="Analyzed attachment (UUID)")
    ticket_id: Optional[str] = Field(default=None, description="Owning ticket")

    # Provider info
    ai_provider: str = Field(default="google", description="Analysis provider")
    ai_model: str = Field(default="", description="Model used for the analysis")

    # Findings
    overall_assessment: str = Field(default="", description="Summary of the image")
    detected_objects: list[DetectedObject] = Field(default_factory=list)
    detected_issues: list[DetectedIssue] = Field(default_factory=list)
    text_extraction: list[ExtractedText] = Field(default_factory=list)
    equipment_condition: str = Field(default="", description="Condition assessment")
    suggested_focus_areas: list[str] = Field(default_factory=list)
    safety_concerns: list[str] = Field(default_factory=list)

    # Quality metrics
    analysis_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    image_quality_score: float = Field(default=0.0, ge=0.0, le=1.0)
    analysis_quality: AnalysisQuality = Field(default=AnalysisQuality.FAIR)

    # Processing info
    processing_duration_ms: int = Field(default=0, ge=0)
    analyzed_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the analysis finished",
    )
