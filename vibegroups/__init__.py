"""
vibe-groups: group a playlist into vibes from Last.FM tags.
"""
from .errors import (
    AnalysisCancelled,
    AnalysisError,
    AuthExpiredError,
    FetchError,
    InsufficientDataError,
    VibeGroupsError,
)
from .pipeline import PipelineResult, VibePipeline

__version__ = "0.1.0"

__all__ = [
    "AnalysisCancelled",
    "AnalysisError",
    "AuthExpiredError",
    "FetchError",
    "InsufficientDataError",
    "PipelineResult",
    "VibeGroupsError",
    "VibePipeline",
]
