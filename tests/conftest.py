"""Shared pytest fixtures for the diagnosis and chat tests."""

import asyncio
import io

import pytest
from PIL import Image

from models.diagnosis_record import DiagnosisRecord
from models.image_resource import ImageResource

DIAGNOSIS_TEXT = "Early blight detected on the lower leaves. Remove infected foliage and apply a copper fungicide."


def make_png_bytes(color=(34, 139, 34)) -> bytes:
    """Return a tiny valid PNG image."""
    buffer = io.BytesIO()
    Image.new("RGB", (4, 4), color).save(buffer, format="PNG")
    return buffer.getvalue()


class FakeCapability:
    """Scripted stand-in for the OpenAI-backed capability.

    `replies` is a list of fragment lists, one per `stream_send` call. An
    `asyncio.Event` inside a fragment list pauses the stream until it is set.
    """

    def __init__(self, analysis_text=DIAGNOSIS_TEXT, replies=None):
        self.analysis_text = analysis_text
        self.analysis_error = None
        self.priming_error = None
        self.priming_gate = None
        self.stream_error = None
        self.replies = list(replies or [])
        self.analyze_calls = []
        self.sessions = []
        self.sent = []
        self.closed_streams = 0

    async def analyze_image(self, instruction, image):
        self.analyze_calls.append((instruction, image))
        if self.analysis_error is not None:
            raise self.analysis_error
        return self.analysis_text

    async def create_session(self, system_instruction, seed_history):
        self.sessions.append((system_instruction, seed_history))
        if self.priming_gate is not None:
            await self.priming_gate.wait()
        if self.priming_error is not None:
            raise self.priming_error
        return {"session": len(self.sessions)}

    async def stream_send(self, handle, text):
        self.sent.append((handle, text))
        fragments = self.replies.pop(0) if self.replies else ["Sure."]
        try:
            for fragment in fragments:
                if isinstance(fragment, asyncio.Event):
                    await fragment.wait()
                    continue
                yield fragment
            if self.stream_error is not None:
                raise self.stream_error
        finally:
            self.closed_streams += 1


async def wait_until(predicate, attempts: int = 200) -> None:
    """Yield to the event loop until `predicate()` holds."""
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("Condition not reached")


def make_record(text: str = DIAGNOSIS_TEXT, filename: str = "X.png") -> DiagnosisRecord:
    image = ImageResource(filename=filename, mime_type="image/png", data=make_png_bytes())
    return DiagnosisRecord(source_image=image, diagnosis_text=text)


@pytest.fixture
def png_bytes():
    return make_png_bytes()


@pytest.fixture
def png_image(png_bytes):
    return ImageResource(filename="X.png", mime_type="image/png", data=png_bytes)


@pytest.fixture
def fake_capability():
    return FakeCapability()
