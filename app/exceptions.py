"""Exception taxonomy for the transcription pipeline.

Every class carries the HTTP status it maps to and the message shown to the
caller, so the web layer never has to inspect the failure itself.
"""

from typing import Optional


class TranscribeServiceError(Exception):
    """Base class for classified pipeline failures."""

    status_code = 500
    user_message = "Failed to transcribe audio. Please try again."

    def __init__(self, message: str, cause: Optional[Exception] = None):
        self.cause = cause
        super().__init__(message)


class InvalidInputError(TranscribeServiceError):
    """Raised when a request is rejected before any processing."""

    status_code = 400

    def __init__(self, user_message: str):
        super().__init__(user_message)
        self.user_message = user_message


class MetadataError(TranscribeServiceError):
    """Raised when the duration of an audio file cannot be determined."""

    user_message = "Failed to split audio file. Please try using compression instead."

    def __init__(self, file_path: str, cause: Optional[Exception] = None):
        self.file_path = file_path
        super().__init__(f"Could not determine duration of '{file_path}'", cause)


class SegmentExtractionError(TranscribeServiceError):
    """Raised when one part of a split fails to extract."""

    user_message = "Failed to split audio file. Please try using compression instead."

    def __init__(self, file_path: str, part: int, cause: Optional[Exception] = None):
        self.file_path = file_path
        self.part = part
        super().__init__(f"Failed to extract part {part} of '{file_path}'", cause)


class CompressionError(TranscribeServiceError):
    """Raised when re-encoding an audio file fails."""

    user_message = "Failed to compress audio file. Please try splitting the file instead."

    def __init__(self, file_path: str, cause: Optional[Exception] = None):
        self.file_path = file_path
        super().__init__(f"Failed to compress '{file_path}'", cause)


class TranscriptionFailed(TranscribeServiceError):
    """Raised when the remote service does not return a transcript."""

    def __init__(
        self,
        file_path: str,
        status_code: Optional[int] = None,
        detail: str = "",
        cause: Optional[Exception] = None
    ):
        self.file_path = file_path
        self.remote_status = status_code
        self.detail = detail
        message = f"Failed to transcribe '{file_path}'"
        if status_code is not None:
            message += f": API error {status_code}"
        if detail:
            message += f" - {detail}"
        super().__init__(message, cause)


class TranscriptionAuthError(TranscriptionFailed):
    """Raised when the remote service rejects the API key."""

    status_code = 401
    user_message = "Invalid OpenAI API key"


class TranscriptionRateLimited(TranscriptionFailed):
    """Raised when the remote service reports a rate limit."""

    status_code = 429
    user_message = "Rate limit exceeded. Please try again later."


class TranscriptionNetworkError(TranscriptionFailed):
    """Raised when the remote service stays unreachable after all retries."""

    status_code = 503
    user_message = (
        "Connection error while uploading to OpenAI. The file may be too large or "
        "your network connection is unstable. Try splitting the file or checking "
        "your internet connection."
    )


class MediaToolError(Exception):
    """Raised when an ffmpeg invocation exits with a non-zero status."""

    def __init__(self, command: list, returncode: int, stderr: str = ""):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        tail = stderr.strip().splitlines()[-1] if stderr.strip() else "no output"
        super().__init__(f"{command[0]} exited with status {returncode}: {tail}")
