"""
Audio processing utilities
Compression and time-based splitting for the Whisper size limit
"""

import os
from typing import Callable, List, Optional

import structlog

from ..config import Settings, get_settings
from ..exceptions import CompressionError, MetadataError, SegmentExtractionError
from ..utils.files import compressed_path, part_path
from ..utils.helpers import format_duration, format_file_size
from .media import MediaTool
from .planner import segment_ranges

logger = structlog.get_logger("transcribe.audio.processor")


class AudioProcessor:
    """Shrink audio files with ffmpeg"""

    def __init__(self, media: Optional[MediaTool] = None, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.media = media or MediaTool()
        self.bitrate = self.settings.reduced_bitrate

    async def compress(
        self,
        input_path: str,
        on_created: Optional[Callable[[str], object]] = None
    ) -> str:
        """Re-encode to the same container at the reduced bitrate"""
        output_path = compressed_path(input_path)
        if on_created:
            on_created(output_path)

        logger.info("Compressing audio", path=input_path, bitrate=self.bitrate)

        try:
            await self.media.encode(input_path, output_path, self.bitrate)
        except Exception as e:
            logger.error(f"Audio compression failed: {e}", path=input_path)
            raise CompressionError(input_path, e) from e

        logger.info(
            "Audio compressed",
            original_size=format_file_size(os.path.getsize(input_path)),
            compressed_size=format_file_size(os.path.getsize(output_path))
        )
        return output_path

    async def split(
        self,
        input_path: str,
        parts: int,
        on_created: Optional[Callable[[str], object]] = None
    ) -> List[str]:
        """Split into ``parts`` consecutive MP3 segments.

        Parts are extracted one at a time. Every output path is passed to
        ``on_created`` before ffmpeg writes it, so a caller can own partial
        output when a later part fails.

        Returns:
            Part paths in chronological order.

        Raises:
            MetadataError: If the duration cannot be read.
            SegmentExtractionError: If any part fails to extract.
        """
        try:
            duration = await self.media.probe_duration(input_path)
        except Exception as e:
            logger.error(f"FFprobe error: {e}", path=input_path)
            raise MetadataError(input_path, e) from e

        ranges = segment_ranges(duration, parts)
        logger.info(
            f"Audio duration: {format_duration(duration)}, splitting into {len(ranges)} parts",
            path=input_path,
            segment_seconds=ranges[0][1]
        )

        output_paths = []
        for index, (start, length) in enumerate(ranges, start=1):
            output_path = part_path(input_path, index)
            if on_created:
                on_created(output_path)

            try:
                await self.media.encode(
                    input_path,
                    output_path,
                    self.bitrate,
                    start=start,
                    duration=length,
                    codec="libmp3lame"
                )
            except Exception as e:
                logger.error(f"Error processing part {index}: {e}", path=input_path)
                raise SegmentExtractionError(input_path, index, e) from e

            logger.info(f"Part {index}/{len(ranges)} completed", path=output_path)
            output_paths.append(output_path)

        return output_paths
