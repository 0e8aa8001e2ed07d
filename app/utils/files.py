"""
File naming and ownership for uploaded and derived audio
"""

import os
import time
from typing import List, Optional

import structlog

logger = structlog.get_logger("transcribe.files")

AUDIO_EXTENSIONS = (".mp3", ".m4a")

EXTENSIONS_BY_MIME_TYPE = {
    "audio/mpeg": ".mp3",
    "audio/mp4": ".m4a",
}


def upload_filename(
    original_name: str,
    content_type: Optional[str] = None,
    now: Optional[float] = None
) -> str:
    """Timestamp-qualified name for a staged upload.

    Names without an audio extension get one from the content type, since
    ffmpeg picks the output container from the extension.
    """
    timestamp = int((time.time() if now is None else now) * 1000)
    name = os.path.basename(original_name or "audio")
    if not name.lower().endswith(AUDIO_EXTENSIONS) and content_type in EXTENSIONS_BY_MIME_TYPE:
        name += EXTENSIONS_BY_MIME_TYPE[content_type]
    return f"{timestamp}-{name}"


def compressed_path(source_path: str) -> str:
    stem, ext = os.path.splitext(source_path)
    return f"{stem}_compressed{ext}"


def part_path(source_path: str, index: int) -> str:
    """Path of split part ``index`` (1-based), always MP3"""
    stem, _ = os.path.splitext(source_path)
    return f"{stem}_part{index}.mp3"


def transcript_path(source_path: str) -> str:
    stem, _ = os.path.splitext(source_path)
    return f"{stem}.txt"


def remove_file(path: str) -> bool:
    """Delete a file if present. Errors are logged, never raised."""
    try:
        os.remove(path)
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.error("Failed to remove file", path=path, error=str(e))
        return False


class ScratchFiles:
    """Owns every audio file created while handling one request.

    Paths are registered when they are created and deleted on exit from the
    ``with`` block, whatever the outcome. ``discard`` deletes a file early
    once its content has been consumed.
    """

    def __init__(self):
        self._paths: List[str] = []

    @property
    def paths(self) -> List[str]:
        return list(self._paths)

    def track(self, path: str) -> str:
        if path not in self._paths:
            self._paths.append(path)
        return path

    def discard(self, path: str) -> None:
        if path in self._paths:
            self._paths.remove(path)
        remove_file(path)

    def cleanup(self) -> None:
        while self._paths:
            remove_file(self._paths.pop())

    def __enter__(self) -> "ScratchFiles":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.cleanup()
        return False


def sweep_stale_files(directory: str, max_age_seconds: float, now: Optional[float] = None) -> List[str]:
    """Remove leftovers of requests interrupted by a crash.

    Audio (uploads, parts, compressed copies) and transcripts are removed
    once older than ``max_age_seconds``. Younger files may belong to a
    request still running in another worker process.
    """
    if not os.path.isdir(directory):
        return []

    now = time.time() if now is None else now
    removed = []

    for name in sorted(os.listdir(directory)):
        path = os.path.join(directory, name)
        if not os.path.isfile(path) or not name.lower().endswith(AUDIO_EXTENSIONS + (".txt",)):
            continue

        try:
            stale = now - os.path.getmtime(path) > max_age_seconds
        except OSError:
            continue

        if stale and remove_file(path):
            removed.append(path)

    if removed:
        logger.info("Swept stale files", directory=directory, count=len(removed))
    return removed
