"""
OpenAI Whisper API integration for audio transcription
Handles API calls, retries, and error handling
"""

import os
from typing import Optional

import httpx
import structlog

from ..config import Settings, get_settings
from ..exceptions import (
    TranscriptionAuthError,
    TranscriptionFailed,
    TranscriptionNetworkError,
    TranscriptionRateLimited,
)
from ..utils.helpers import RetryPolicy

logger = structlog.get_logger("transcribe.audio.transcriber")

# Connection-level failures worth another attempt
RETRYABLE_ERRORS = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)

MIME_TYPES = {
    ".mp3": "audio/mpeg",
    ".m4a": "audio/mp4",
}


class WhisperTranscriber:
    """OpenAI Whisper API client for transcription"""

    def __init__(self, settings: Optional[Settings] = None, retry_policy: Optional[RetryPolicy] = None):
        self.settings = settings or get_settings()
        self.api_url = self.settings.openai_api_url
        self.model = self.settings.openai_model
        self.retry_policy = retry_policy or RetryPolicy(
            max_retries=self.settings.transcription_max_retries,
            delay=self.settings.transcription_retry_delay_seconds,
            backoff_factor=self.settings.transcription_backoff_factor
        )

    async def transcribe_file(self, file_path: str, api_key: str) -> str:
        """Transcribe one audio file.

        Connection errors are retried with exponential backoff. HTTP error
        responses are raised straight away.
        """
        logger.info(
            "Starting transcription",
            file=os.path.basename(file_path),
            max_attempts=self.retry_policy.max_attempts
        )

        try:
            text = await self.retry_policy.run(
                lambda: self._make_transcription_request(file_path, api_key),
                retry_on=RETRYABLE_ERRORS
            )
        except RETRYABLE_ERRORS as e:
            logger.error(
                f"Failed to transcribe {os.path.basename(file_path)}: connection error",
                error=str(e) or type(e).__name__
            )
            raise TranscriptionNetworkError(file_path, detail=type(e).__name__, cause=e) from e
        except httpx.TransportError as e:
            logger.error(
                f"Failed to transcribe {os.path.basename(file_path)}: transport error",
                error=str(e) or type(e).__name__
            )
            raise TranscriptionNetworkError(file_path, detail=type(e).__name__, cause=e) from e
        except httpx.HTTPError as e:
            logger.error(
                f"Failed to transcribe {os.path.basename(file_path)}: {type(e).__name__}",
                error=str(e)
            )
            raise TranscriptionFailed(file_path, detail=type(e).__name__, cause=e) from e

        logger.info(f"Successfully transcribed {os.path.basename(file_path)}", length=len(text))
        return text

    async def _make_transcription_request(self, file_path: str, api_key: str) -> str:
        """Make actual API request to Whisper"""

        headers = {
            "Authorization": f"Bearer {api_key}"
        }
        file_name = os.path.basename(file_path)
        mime_type = MIME_TYPES.get(os.path.splitext(file_name)[1].lower(), "application/octet-stream")

        with open(file_path, "rb") as audio_file:
            files = {
                "file": (file_name, audio_file, mime_type),
            }
            data = {
                "model": self.model,
            }

            async with httpx.AsyncClient(timeout=self.settings.openai_request_timeout_seconds) as client:
                response = await client.post(
                    self.api_url,
                    headers=headers,
                    data=data,
                    files=files
                )

        logger.info(
            "Whisper API request completed",
            file=file_name,
            status_code=response.status_code
        )

        if response.status_code == 401:
            raise TranscriptionAuthError(file_path, status_code=401, detail=response.text)
        if response.status_code == 429:
            raise TranscriptionRateLimited(file_path, status_code=429, detail=response.text)
        if response.status_code >= 400:
            logger.error(f"HTTP error {response.status_code}: {response.text}")
            raise TranscriptionFailed(file_path, status_code=response.status_code, detail=response.text)

        try:
            body = response.json()
        except ValueError as e:
            raise TranscriptionFailed(file_path, detail="Response body is not JSON", cause=e) from e

        text = body.get("text") if isinstance(body, dict) else None
        if not isinstance(text, str):
            raise TranscriptionFailed(file_path, detail="Response has no text field")
        return text
