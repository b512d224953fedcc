"""
Attachment pipeline agents.

- vision_analyzer: Gemini vision analysis of equipment photos
"""

from attachment_pipeline.agents.vision_analyzer import (
    VisionAnalysisOutput,
    VisionAnalyzer,
    vision_analyzer_agent,
)

__all__ = [
    "vision_analyzer_agent",
    "VisionAnalysisOutput",
    "VisionAnalyzer",
]
