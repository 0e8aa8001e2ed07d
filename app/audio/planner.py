"""
Reduction planning for audio that exceeds the Whisper payload ceiling
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Tuple

import structlog

logger = structlog.get_logger("transcribe.audio.planner")

MAX_OPENAI_FILE_SIZE = 25 * 1024 * 1024  # 25MB in bytes
MAX_SPLIT_PARTS = 4


class ReductionStrategy(str, Enum):
    DIRECT = "direct"
    COMPRESS = "compress"
    SPLIT = "split"


@dataclass(frozen=True)
class ReductionPlan:
    strategy: ReductionStrategy
    parts: int = 1


def plan_reduction(
    file_size: int,
    should_split: bool,
    ceiling: int = MAX_OPENAI_FILE_SIZE,
    max_parts: int = MAX_SPLIT_PARTS
) -> ReductionPlan:
    """Decide how to bring a file under ``ceiling``.

    Splitting rounds the part count up so no part is planned above the
    ceiling, then caps it at ``max_parts``.
    """
    if file_size <= ceiling:
        return ReductionPlan(ReductionStrategy.DIRECT)

    if not should_split:
        return ReductionPlan(ReductionStrategy.COMPRESS)

    parts = min(max_parts, math.ceil(file_size / ceiling))
    return ReductionPlan(ReductionStrategy.SPLIT, parts)


def segment_ranges(duration: float, parts: int) -> List[Tuple[int, int]]:
    """(start, length) in whole seconds for each of ``parts`` segments.

    Lengths use ceiling division so the ranges cover the whole duration;
    the last range may run past the end of the audio.
    """
    if parts < 1:
        raise ValueError("parts must be at least 1")

    segment_duration = math.ceil(duration / parts)
    ranges = []
    for i in range(parts):
        start = i * segment_duration
        if start >= duration:
            logger.warning(
                "Dropping empty segment",
                part=i + 1,
                start=start,
                duration=duration
            )
            continue
        ranges.append((start, segment_duration))
    return ranges
