"""
Error taxonomy for the vibe-groups pipeline.

Every error that can reach a caller carries a short user-facing ``title`` so a
consuming UI can show one terminal message per failed run.
"""
from typing import Optional


class VibeGroupsError(Exception):
    """Base class for all pipeline errors"""

    title = "Error"

    def user_message(self) -> str:
        return f"{self.title}: {self}"


class FetchError(VibeGroupsError):
    """Raised when an upstream endpoint returns a non-success response"""

    title = "Playlist Error"

    def __init__(self, message: str, status: Optional[int] = None, url: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.url = url


class AuthExpiredError(VibeGroupsError):
    """Raised when the access token was rejected and could not be refreshed"""

    title = "Session Expired"


class InsufficientDataError(VibeGroupsError):
    """Raised when there are fewer tracks than the requested cluster count"""

    title = "Insufficient Data"

    def __init__(self, required: int, available: int):
        super().__init__(
            f"Need at least {required} tracks to build {required} groups, got {available}"
        )
        self.required = required
        self.available = available
        # Set by the pipeline so callers can still show the unclustered tracks
        self.analysis = None


class MalformedResponseError(VibeGroupsError):
    """Raised while parsing a tag response with an unexpected shape"""

    title = "Analysis Error"


class AnalysisError(VibeGroupsError):
    """Raised when feature extraction or clustering fails unexpectedly"""

    title = "Analysis Error"


class AnalysisCancelled(VibeGroupsError):
    """Raised when a run is aborted through its cancellation token"""

    title = "Cancelled"
