"""
ffmpeg/ffprobe wrapper used by the audio processor
Duration probing, bitrate re-encoding and time-bounded extraction
"""

import asyncio
from typing import Optional

import structlog
from pydub.utils import get_encoder_name, get_prober_name, mediainfo_json, which

from ..exceptions import MediaToolError

logger = structlog.get_logger("transcribe.audio.media")


class MediaTool:
    """Runs the media engine as non-blocking subprocesses"""

    def __init__(self, encoder: Optional[str] = None):
        self.encoder = encoder or get_encoder_name()
        # Same lookup mediainfo_json performs on every probe
        self.prober = get_prober_name()

    def is_available(self) -> dict:
        return {
            "ffmpeg": which(self.encoder) is not None,
            "ffprobe": which(self.prober) is not None,
        }

    async def probe_duration(self, path: str) -> float:
        """Duration in seconds as reported by ffprobe.

        Raises ValueError when no positive duration is reported.
        """
        info = await asyncio.to_thread(mediainfo_json, path)
        duration = (info or {}).get("format", {}).get("duration")
        try:
            seconds = float(duration)
        except (TypeError, ValueError):
            raise ValueError(f"No duration reported for {path}")
        if seconds <= 0:
            raise ValueError(f"Non-positive duration {seconds} reported for {path}")
        return seconds

    async def encode(
        self,
        source: str,
        destination: str,
        bitrate: str,
        start: Optional[float] = None,
        duration: Optional[float] = None,
        codec: Optional[str] = None
    ) -> str:
        """Re-encode ``source`` into ``destination``.

        ``start``/``duration`` restrict the output to a time range. The
        output container follows the destination extension.
        """
        command = [self.encoder, "-hide_banner", "-loglevel", "error", "-y"]
        if start is not None:
            command += ["-ss", str(start)]
        command += ["-i", source]
        if duration is not None:
            command += ["-t", str(duration)]
        command += ["-vn"]
        if codec:
            command += ["-acodec", codec]
        command += ["-b:a", bitrate, destination]

        logger.info("Spawning ffmpeg", command=" ".join(command))

        process = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE
        )
        _, stderr = await process.communicate()

        if process.returncode != 0:
            raise MediaToolError(command, process.returncode, stderr.decode(errors="replace"))

        return destination
