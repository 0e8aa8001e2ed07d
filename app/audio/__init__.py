"""
Audio processing module
Handles audio compression, splitting, and transcription
"""

from .media import MediaTool
from .planner import ReductionPlan, ReductionStrategy, plan_reduction
from .processor import AudioProcessor
from .transcriber import WhisperTranscriber
