"""
Transcribe Router - upload endpoint for audio transcription
"""

import os
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
import structlog

from ...config import Settings, get_settings
from ...exceptions import InvalidInputError
from ...services.transcription import TranscriptionPipeline
from ...utils.files import AUDIO_EXTENSIONS, remove_file, upload_filename
from ...utils.helpers import ensure_directory_exists, format_file_size

logger = structlog.get_logger("transcribe.web.transcribe")

router = APIRouter(tags=["transcription"])

AUDIO_MIME_TYPES = ("audio/mpeg", "audio/mp4")
CHUNK_SIZE = 1024 * 1024


def get_pipeline(settings: Settings = Depends(get_settings)) -> TranscriptionPipeline:
    return TranscriptionPipeline(settings=settings)


def is_audio_upload(file: UploadFile) -> bool:
    """MP3 and M4A by content type or file extension"""
    if file.content_type in AUDIO_MIME_TYPES:
        return True
    return (file.filename or "").lower().endswith(AUDIO_EXTENSIONS)


async def stage_upload(file: UploadFile, settings: Settings) -> str:
    """Write the upload into the upload directory, enforcing the size limit"""
    ensure_directory_exists(settings.upload_dir)
    path = os.path.join(settings.upload_dir, upload_filename(file.filename, file.content_type))
    max_mb = settings.max_upload_size_bytes // (1024 * 1024)

    written = 0
    try:
        with open(path, "wb") as out:
            while True:
                chunk = await file.read(CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if written > settings.max_upload_size_bytes:
                    raise InvalidInputError(
                        f"File is too large. Maximum size is {max_mb}MB. Please upload a smaller file."
                    )
                out.write(chunk)
    except BaseException:
        remove_file(path)
        raise
    finally:
        await file.close()

    logger.info("Upload staged", path=path, size=format_file_size(written))
    return path


@router.post("/transcribe")
async def transcribe(
    file: Optional[UploadFile] = File(None),
    api_key: Optional[str] = Form(None, alias="apiKey"),
    should_split: Optional[str] = Form(None, alias="shouldSplit"),
    settings: Settings = Depends(get_settings),
    pipeline: TranscriptionPipeline = Depends(get_pipeline)
):
    """Transcribe an uploaded MP3/M4A file"""
    if file is None or not file.filename:
        raise InvalidInputError("No file uploaded")

    if not is_audio_upload(file):
        await file.close()
        raise InvalidInputError(
            "Invalid file type. Only MP3 and M4A files are allowed. Please upload a valid audio file."
        )

    if not api_key:
        await file.close()
        raise InvalidInputError("OpenAI API key is required")

    upload_path = await stage_upload(file, settings)

    outcome = await pipeline.run(upload_path, api_key, should_split=should_split == "true")

    return {"text": outcome.text}
