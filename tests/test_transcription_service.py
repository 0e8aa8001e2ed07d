"""
Tests for the transcription pipeline
"""

import os

import pytest
from unittest.mock import patch

from app.audio.planner import ReductionStrategy
from app.audio.processor import AudioProcessor
from app.exceptions import (
    CompressionError,
    MetadataError,
    SegmentExtractionError,
    TranscriptionAuthError,
    TranscriptionNetworkError,
)
from app.services.transcription import TranscriptionPipeline

from conftest import MB, FakeMediaTool, FakeTranscriber


def build_pipeline(settings, media=None, transcriber=None):
    media = media or FakeMediaTool()
    transcriber = transcriber or FakeTranscriber()
    pipeline = TranscriptionPipeline(
        processor=AudioProcessor(media=media, settings=settings),
        transcriber=transcriber,
        settings=settings
    )
    return pipeline, media, transcriber


def remaining(upload_dir):
    return sorted(os.listdir(upload_dir))


class TestDirectTranscription:
    """Files under the ceiling"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("should_split", [False, True])
    async def test_small_file_is_sent_as_is(self, settings, make_upload, upload_dir, should_split):
        pipeline, media, transcriber = build_pipeline(settings, transcriber=FakeTranscriber(["just one"]))
        upload = make_upload(5 * MB)

        outcome = await pipeline.run(upload, "sk-test", should_split=should_split)

        assert outcome.text == "just one"
        assert outcome.strategy is ReductionStrategy.DIRECT
        assert media.calls == [] and media.probed == []
        assert transcriber.calls == [(upload, "sk-test")]
        assert remaining(upload_dir) == ["1700000000000-talk.txt"]

    @pytest.mark.asyncio
    async def test_file_exactly_at_ceiling_is_direct(self, settings, make_upload):
        pipeline, media, _ = build_pipeline(settings)

        outcome = await pipeline.run(make_upload(25 * MB), "sk-test")

        assert outcome.strategy is ReductionStrategy.DIRECT
        assert media.calls == []


class TestCompressedTranscription:
    """Oversized files without split"""

    @pytest.mark.asyncio
    async def test_30mb_file_is_compressed(self, settings, make_upload, upload_dir):
        pipeline, media, transcriber = build_pipeline(settings, transcriber=FakeTranscriber(["compressed text"]))
        upload = make_upload(30 * MB)
        compressed = upload.replace(".mp3", "_compressed.mp3")

        outcome = await pipeline.run(upload, "sk-test")

        assert outcome.strategy is ReductionStrategy.COMPRESS
        assert outcome.parts == 1
        assert len(media.calls) == 1
        assert media.probed == []
        assert transcriber.calls == [(compressed, "sk-test")]
        assert transcriber.existed == [True]
        assert remaining(upload_dir) == ["1700000000000-talk.txt"]
        with open(outcome.transcript_path, encoding="utf-8") as f:
            assert f.read() == "compressed text"

    @pytest.mark.asyncio
    async def test_original_deleted_before_transcription(self, settings, make_upload):
        upload = make_upload(30 * MB)

        class CheckingTranscriber(FakeTranscriber):
            async def transcribe_file(self, file_path, api_key):
                assert not os.path.exists(upload)
                return await super().transcribe_file(file_path, api_key)

        pipeline, _, _ = build_pipeline(settings, transcriber=CheckingTranscriber(["ok"]))

        assert (await pipeline.run(upload, "sk-test")).text == "ok"

    @pytest.mark.asyncio
    async def test_compression_failure_cleans_up(self, settings, make_upload, upload_dir):
        pipeline, _, transcriber = build_pipeline(settings, media=FakeMediaTool(fail_on_call=1))

        with pytest.raises(CompressionError):
            await pipeline.run(make_upload(30 * MB), "sk-test")

        assert transcriber.calls == []
        assert remaining(upload_dir) == []


class TestSplitTranscription:
    """Oversized files with split requested"""

    @pytest.mark.asyncio
    async def test_60mb_file_split_into_three(self, settings, make_upload, upload_dir):
        transcriber = FakeTranscriber(["first part.", "second part.", "third part."])
        pipeline, media, _ = build_pipeline(settings, media=FakeMediaTool(duration=3600.0), transcriber=transcriber)
        upload = make_upload(60 * MB)

        outcome = await pipeline.run(upload, "sk-test", should_split=True)

        assert outcome.strategy is ReductionStrategy.SPLIT
        assert outcome.parts == 3
        assert [(c["start"], c["duration"]) for c in media.calls] == [(0, 1200), (1200, 1200), (2400, 1200)]
        assert [path for path, _ in transcriber.calls] == [
            upload.replace(".mp3", f"_part{i}.mp3") for i in (1, 2, 3)
        ]
        assert outcome.text == "first part. second part. third part."
        assert remaining(upload_dir) == ["1700000000000-talk.txt"]

    @pytest.mark.asyncio
    async def test_part_count_capped_at_four(self, settings, make_upload):
        transcriber = FakeTranscriber(["a", "b", "c", "d"])
        pipeline, media, _ = build_pipeline(settings, transcriber=transcriber)

        outcome = await pipeline.run(make_upload(100 * MB), "sk-test", should_split=True)

        assert outcome.parts == 4
        assert len(media.calls) == 4
        assert outcome.text == "a b c d"

    @pytest.mark.asyncio
    async def test_only_split_strategy_runs(self, settings, make_upload):
        transcriber = FakeTranscriber(["a", "b"])
        pipeline, media, _ = build_pipeline(settings, transcriber=transcriber)

        await pipeline.run(make_upload(30 * MB), "sk-test", should_split=True)

        assert all("_part" in c["destination"] for c in media.calls)
        assert not any("_compressed" in c["destination"] for c in media.calls)

    @pytest.mark.asyncio
    async def test_metadata_failure_cleans_up(self, settings, make_upload, upload_dir):
        media = FakeMediaTool(probe_error=ValueError("no duration"))
        pipeline, _, transcriber = build_pipeline(settings, media=media)

        with pytest.raises(MetadataError):
            await pipeline.run(make_upload(60 * MB), "sk-test", should_split=True)

        assert transcriber.calls == []
        assert remaining(upload_dir) == []

    @pytest.mark.asyncio
    async def test_extraction_failure_removes_partial_parts(self, settings, make_upload, upload_dir):
        pipeline, media, transcriber = build_pipeline(settings, media=FakeMediaTool(fail_on_call=3))

        with pytest.raises(SegmentExtractionError) as exc_info:
            await pipeline.run(make_upload(100 * MB), "sk-test", should_split=True)

        assert exc_info.value.part == 3
        assert len(media.calls) == 3
        assert transcriber.calls == []
        assert remaining(upload_dir) == []

    @pytest.mark.asyncio
    async def test_failed_part_aborts_remaining_parts(self, settings, make_upload, upload_dir):
        transcriber = FakeTranscriber([
            "first",
            TranscriptionAuthError("part2", status_code=401),
            "third",
        ])
        pipeline, _, _ = build_pipeline(settings, transcriber=transcriber)

        with pytest.raises(TranscriptionAuthError):
            await pipeline.run(make_upload(60 * MB), "sk-test", should_split=True)

        assert len(transcriber.calls) == 2
        assert remaining(upload_dir) == []

    @pytest.mark.asyncio
    async def test_each_part_removed_once_transcribed(self, settings, make_upload):
        upload = make_upload(60 * MB)
        parts = [upload.replace(".mp3", f"_part{i}.mp3") for i in (1, 2, 3)]
        seen = []

        class CheckingTranscriber(FakeTranscriber):
            async def transcribe_file(self, file_path, api_key):
                seen.append([os.path.exists(p) for p in parts])
                return await super().transcribe_file(file_path, api_key)

        pipeline, _, _ = build_pipeline(settings, transcriber=CheckingTranscriber(["a", "b", "c"]))

        await pipeline.run(upload, "sk-test", should_split=True)

        assert seen == [[True, True, True], [False, True, True], [False, False, True]]


class TestOrdering:
    """Join order follows ordinal position"""

    @pytest.mark.asyncio
    async def test_concurrent_completion_order_does_not_affect_join(self, settings, make_upload, upload_dir):
        settings.transcription_concurrency = 4
        transcriber = FakeTranscriber(["one", "two", "three", "four"], delays=[0.04, 0.03, 0.02, 0.0])
        pipeline, _, _ = build_pipeline(settings, transcriber=transcriber)

        outcome = await pipeline.run(make_upload(100 * MB), "sk-test", should_split=True)

        assert transcriber.completed == [3, 2, 1, 0]
        assert outcome.text == "one two three four"
        assert remaining(upload_dir) == ["1700000000000-talk.txt"]

    @pytest.mark.asyncio
    async def test_concurrent_failure_cleans_up(self, settings, make_upload, upload_dir):
        settings.transcription_concurrency = 2
        transcriber = FakeTranscriber(
            ["one", TranscriptionNetworkError("part2"), "three", "four"],
            delays=[0.05, 0.0, 0.05, 0.05]
        )
        pipeline, _, _ = build_pipeline(settings, transcriber=transcriber)

        with pytest.raises(TranscriptionNetworkError):
            await pipeline.run(make_upload(100 * MB), "sk-test", should_split=True)

        assert remaining(upload_dir) == []

    @pytest.mark.asyncio
    async def test_sequential_by_default(self, settings, make_upload):
        transcriber = FakeTranscriber(["one", "two", "three"], delays=[0.03, 0.02, 0.0])
        pipeline, _, _ = build_pipeline(settings, transcriber=transcriber)

        outcome = await pipeline.run(make_upload(60 * MB), "sk-test", should_split=True)

        assert transcriber.completed == [0, 1, 2]
        assert outcome.text == "one two three"


class TestPersistence:
    """Sidecar transcript and cleanup robustness"""

    @pytest.mark.asyncio
    async def test_persistence_can_be_disabled(self, settings, make_upload, upload_dir):
        settings.persist_transcripts = False
        pipeline, _, _ = build_pipeline(settings)

        outcome = await pipeline.run(make_upload(MB), "sk-test")

        assert outcome.transcript_path is None
        assert remaining(upload_dir) == []

    @pytest.mark.asyncio
    async def test_cleanup_failure_does_not_mask_result(self, settings, make_upload):
        pipeline, _, _ = build_pipeline(settings, transcriber=FakeTranscriber(["kept"]))
        upload = make_upload(30 * MB)

        with patch("app.utils.files.os.remove", side_effect=PermissionError("denied")):
            outcome = await pipeline.run(upload, "sk-test")

        assert outcome.text == "kept"

    @pytest.mark.asyncio
    async def test_cleanup_failure_does_not_mask_error(self, settings, make_upload):
        transcriber = FakeTranscriber([TranscriptionAuthError("x", status_code=401)])
        pipeline, _, _ = build_pipeline(settings, transcriber=transcriber)

        with patch("app.utils.files.os.remove", side_effect=PermissionError("denied")):
            with pytest.raises(TranscriptionAuthError):
                await pipeline.run(make_upload(MB), "sk-test")
