"""
Shared test fixtures
"""

import asyncio
import os

import pytest

from app.config import Settings
from app.exceptions import MediaToolError

MB = 1024 * 1024


class FakeMediaTool:
    """Stands in for ffmpeg: records calls and writes small output files"""

    def __init__(self, duration=300.0, fail_on_call=None, probe_error=None):
        self.duration = duration
        self.fail_on_call = fail_on_call
        self.probe_error = probe_error
        self.probed = []
        self.calls = []

    async def probe_duration(self, path):
        self.probed.append(path)
        if self.probe_error:
            raise self.probe_error
        return self.duration

    async def encode(self, source, destination, bitrate, start=None, duration=None, codec=None):
        self.calls.append({
            "source": source,
            "destination": destination,
            "bitrate": bitrate,
            "start": start,
            "duration": duration,
            "codec": codec,
        })
        # ffmpeg leaves partial output behind when it fails
        with open(destination, "wb") as f:
            f.write(b"\xff\xfb" + b"\x00" * 64)
        if self.fail_on_call == len(self.calls):
            raise MediaToolError(["ffmpeg", "-i", source], 1, "Invalid data found when processing input")
        return destination


class FakeTranscriber:
    """Returns scripted transcripts (or raises scripted errors) per call"""

    def __init__(self, results=None, delays=None):
        self.results = list(results or ["hello world"])
        self.delays = list(delays or [])
        self.calls = []
        self.completed = []
        self.existed = []

    async def transcribe_file(self, file_path, api_key):
        index = len(self.calls)
        self.calls.append((file_path, api_key))
        self.existed.append(os.path.exists(file_path))
        if index < len(self.delays):
            await asyncio.sleep(self.delays[index])
        result = self.results[index]
        if isinstance(result, Exception):
            raise result
        self.completed.append(index)
        return result


@pytest.fixture
def upload_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def settings(upload_dir):
    """Settings pointed at a temporary upload directory"""
    return Settings(upload_dir=str(upload_dir), cleanup_on_startup=False)


@pytest.fixture
def make_upload(upload_dir):
    """Create a sparse staged upload of the given size"""
    def _make(size, name="1700000000000-talk.mp3"):
        path = upload_dir / name
        with open(path, "wb") as f:
            f.truncate(size)
        return str(path)
    return _make


@pytest.fixture
def media():
    return FakeMediaTool()
