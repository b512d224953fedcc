"""
Vision Analyzer Agent

Analyzes equipment photos attached to service tickets: what is shown,
visible issues and damage, readable text (error codes, serial numbers) and
an overall condition assessment.
"""

import asyncio
import json
import logging
import time
from pathlib import Path

from google.adk.agents.llm_agent import Agent
from google.adk.runners import InMemoryRunner
from google.genai.types import Blob, Content, Part
from pydantic import BaseModel, Field

from attachment_pipeline.config import DEFAULT_MODEL
from attachment_pipeline.exceptions import UnsupportedAttachmentError
from attachment_pipeline.models.analysis import (
    AnalysisQuality,
    AnalysisResult,
    DetectedIssue,
    DetectedObject,
    ExtractedText,
)
from attachment_pipeline.models.attachment import Attachment, AttachmentCategory
from attachment_pipeline.worker.interfaces import Analyzer

logger = logging.getLogger(__name__)


class VisionAnalysisOutput(BaseModel):
    """Output schema for the vision analyzer"""

    overall_assessment: str = Field(description="General description of the image")
    detected_objects: list[DetectedObject] = Field(default_factory=list)
    detected_issues: list[DetectedIssue] = Field(default_factory=list)
    text_extraction: list[ExtractedText] = Field(default_factory=list)
    equipment_condition: str = Field(
        default="", description="Overall condition: good, fair, poor or critical"
    )
    suggested_focus_areas: list[str] = Field(default_factory=list)
    safety_concerns: list[str] = Field(default_factory=list)
    analysis_confidence: float = Field(
        ge=0.0, le=1.0, description="Confidence in the analysis"
    )
    image_quality_score: float = Field(
        default=0.8, ge=0.0, le=1.0, description="How usable the image is"
    )
    analysis_quality: AnalysisQuality = Field(default=AnalysisQuality.GOOD)


vision_analyzer_agent = Agent(
    name="vision_analyzer",
    description="Analyzes medical equipment photos for service diagnostics",
    instruction="""You are an expert medical equipment service engineer analyzing images for diagnostic purposes.

For each image:
1. Describe what you see (overall_assessment)
2. List the equipment and components you recognize (detected_objects)
3. Identify visible problems: damage, corrosion, cracks, wear, burns, leaks,
   loose connections, error indicators (detected_issues), with severity
   low|medium|high|critical and the visual evidence for each
4. Read any visible text: error codes, serial numbers, warnings, labels
   (text_extraction)
5. Assess the overall equipment condition (good|fair|poor|critical)
6. Suggest what the field engineer should focus on (suggested_focus_areas)
7. Call out anything unsafe (safety_concerns)

Rate your confidence (analysis_confidence) and how usable the image is
(image_quality_score, analysis_quality excellent|good|fair|poor).
Only report what is visible. Low light, blur or odd angles lower the
confidence rather than inviting guesses.""",
    model=DEFAULT_MODEL,
    output_schema=VisionAnalysisOutput,
)

_PURPOSES = {
    AttachmentCategory.ISSUE_PHOTO: "issue evidence",
    AttachmentCategory.REPAIR_PHOTO: "after repair",
    AttachmentCategory.EQUIPMENT_PHOTO: "before repair",
}


def detect_image_mime_type(image_bytes: bytes) -> str:
    """
    Detect MIME type from image bytes.

    Args:
        image_bytes: Image data as bytes

    Returns:
        MIME type string, 'application/octet-stream' if unrecognized
    """
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    elif image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    elif image_bytes.startswith(b"GIF87a") or image_bytes.startswith(b"GIF89a"):
        return "image/gif"
    elif image_bytes.startswith(b"RIFF") and b"WEBP" in image_bytes[:20]:
        return "image/webp"
    elif image_bytes.startswith(b"BM"):
        return "image/bmp"
    else:
        return "application/octet-stream"


def build_prompt(attachment: Attachment) -> str:
    purpose = _PURPOSES.get(attachment.category, "issue evidence")
    ticket = attachment.ticket_id or "unknown"
    return f"""Analyze this photo attached to service ticket {ticket}.

Image purpose: {purpose}
Filename: {attachment.original_filename or attachment.filename}

Return the structured analysis."""


class VisionAnalyzer(Analyzer):
    """
    Analyzer backed by the Gemini vision agent.

    Only image attachments are supported; anything else raises
    UnsupportedAttachmentError and is recorded as a failed entry.
    """

    def __init__(self, agent: Agent = vision_analyzer_agent, model: str = DEFAULT_MODEL):
        self.model = model
        self.runner = InMemoryRunner(agent=agent, app_name="attachment-vision-analyzer")

    async def process(self, attachment: Attachment) -> AnalysisResult:
        if not attachment.is_image():
            raise UnsupportedAttachmentError(
                f"Cannot analyze {attachment.file_type} attachment {attachment.id}"
            )

        started = time.monotonic()
        image_bytes = await asyncio.to_thread(Path(attachment.storage_path).read_bytes)

        mime_type = detect_image_mime_type(image_bytes)
        if mime_type == "application/octet-stream":
            mime_type = attachment.file_type

        content = Content(
            parts=[
                Part(text=build_prompt(attachment)),
                Part(inline_data=Blob(data=image_bytes, mime_type=mime_type)),
            ]
        )

        # One session per attachment so analyses never share history
        user_id = attachment.uploaded_by_id or "attachment-pipeline"
        session = await self.runner.session_service.create_session(
            app_name=self.runner.app_name,
            user_id=user_id,
        )

        result_text = ""
        async for event in self.runner.run_async(
            user_id=user_id,
            session_id=session.id,
            new_message=content,
        ):
            if event.content and event.content.parts:
                for part in event.content.parts:
                    if part.text:
                        result_text = part.text

        if not result_text:
            raise ValueError("No result from vision analyzer agent")

        output = VisionAnalysisOutput.model_validate(json.loads(result_text))
        duration_ms = int((time.monotonic() - started) * 1000)

        logger.info(
            "Analyzed attachment %s",
            attachment.id,
            extra={
                "json_fields": {
                    "attachment_id": attachment.id,
                    "confidence": output.analysis_confidence,
                    "quality": output.analysis_quality.value,
                    "detected_objects": len(output.detected_objects),
                    "detected_issues": len(output.detected_issues),
                }
            },
        )

        return AnalysisResult(
            attachment_id=attachment.id,
            ticket_id=attachment.ticket_id,
            ai_model=self.model,
            processing_duration_ms=duration_ms,
            **output.model_dump(),
        )
