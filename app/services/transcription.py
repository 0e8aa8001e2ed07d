"""
Transcription pipeline for uploaded audio files
Sizes the upload, shrinks it if needed, transcribes and joins the parts
"""

import asyncio
import os
from dataclasses import dataclass
from typing import List, Optional

import structlog

from ..audio.planner import ReductionStrategy, plan_reduction
from ..audio.processor import AudioProcessor
from ..audio.transcriber import WhisperTranscriber
from ..config import Settings, get_settings
from ..utils.files import ScratchFiles, transcript_path
from ..utils.helpers import format_file_size

logger = structlog.get_logger("transcribe.pipeline")


@dataclass
class TranscriptionOutcome:
    text: str
    strategy: ReductionStrategy
    parts: int
    transcript_path: Optional[str] = None


class TranscriptionPipeline:
    """Turns one staged upload into one transcript"""

    def __init__(
        self,
        processor: Optional[AudioProcessor] = None,
        transcriber: Optional[WhisperTranscriber] = None,
        settings: Optional[Settings] = None
    ):
        self.settings = settings or get_settings()
        self.processor = processor or AudioProcessor(settings=self.settings)
        self.transcriber = transcriber or WhisperTranscriber(settings=self.settings)

    async def run(self, upload_path: str, api_key: str, should_split: bool = False) -> TranscriptionOutcome:
        """Transcribe ``upload_path`` and delete it along with everything derived from it.

        Raises:
            TranscribeServiceError: Any classified failure. Cleanup has
                already happened when it propagates.
        """
        with ScratchFiles() as scratch:
            scratch.track(upload_path)

            file_size = os.path.getsize(upload_path)
            plan = plan_reduction(
                file_size,
                should_split,
                ceiling=self.settings.max_openai_file_size_bytes,
                max_parts=self.settings.max_split_parts
            )
            logger.info(
                "Planned transcription",
                file=os.path.basename(upload_path),
                size=format_file_size(file_size),
                strategy=plan.strategy.value,
                parts=plan.parts
            )

            if plan.strategy is ReductionStrategy.SPLIT:
                units = await self.processor.split(upload_path, plan.parts, on_created=scratch.track)
                scratch.discard(upload_path)
            elif plan.strategy is ReductionStrategy.COMPRESS:
                units = [await self.processor.compress(upload_path, on_created=scratch.track)]
                scratch.discard(upload_path)
            else:
                units = [upload_path]

            transcripts = await self._transcribe_units(units, api_key, scratch)
            text = " ".join(transcripts)

            saved_path = None
            if self.settings.persist_transcripts:
                saved_path = transcript_path(upload_path)
                with open(saved_path, "w", encoding="utf-8") as f:
                    f.write(text)

        logger.info(
            "Transcription pipeline completed",
            strategy=plan.strategy.value,
            units=len(units),
            length=len(text)
        )
        return TranscriptionOutcome(
            text=text,
            strategy=plan.strategy,
            parts=len(units),
            transcript_path=saved_path
        )

    async def _transcribe_units(self, units: List[str], api_key: str, scratch: ScratchFiles) -> List[str]:
        """Transcripts in ordinal order. Each unit is deleted once transcribed."""
        total = len(units)

        async def transcribe_unit(index: int, path: str) -> str:
            logger.info(f"Processing chunk {index}/{total}", file=os.path.basename(path))
            try:
                text = await self.transcriber.transcribe_file(path, api_key)
            except Exception as e:
                logger.error(f"Failed to transcribe chunk {index}/{total}", error=str(e))
                raise
            scratch.discard(path)
            return text

        concurrency = min(self.settings.transcription_concurrency, total)
        if concurrency <= 1:
            return [await transcribe_unit(index, path) for index, path in enumerate(units, start=1)]

        semaphore = asyncio.Semaphore(concurrency)

        async def bounded(index: int, path: str) -> str:
            async with semaphore:
                return await transcribe_unit(index, path)

        tasks = [asyncio.ensure_future(bounded(index, path)) for index, path in enumerate(units, start=1)]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
