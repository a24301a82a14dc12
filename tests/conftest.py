import io
from types import SimpleNamespace

import fitz  # PyMuPDF
import pytest
from PIL import Image

from mathocr.config import Config
from mathocr.exceptions import ClassificationError
from mathocr.processors import ProcessingContext

# Native page size of generated PDFs (points); rendered at 3x
PAGE_WIDTH = 200
PAGE_HEIGHT = 300


@pytest.fixture
def config(tmp_path, monkeypatch):
    monkeypatch.setenv("AI_API_KEY", "test-key")
    cfg = Config(output_dir=tmp_path / "output", logs_dir=tmp_path / "logs")
    cfg.retry.max_retries = 0
    return cfg


@pytest.fixture
def context(config):
    return ProcessingContext(config=config)


def build_pdf(pages):
    doc = fitz.open()
    for i in range(1, pages + 1):
        page = doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)
        page.insert_text((20, 40), f"Cau {i}: Giai phuong trinh x^2 = 4")
        page.draw_rect(fitz.Rect(40, 100, 160, 200), color=(0, 0, 0), width=2)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def make_pdf():
    return build_pdf


def build_png(width=200, height=100, color=(255, 255, 255), mode="RGB"):
    buf = io.BytesIO()
    Image.new(mode, (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def make_png():
    return build_png


class FakeClassifier:
    """
    Stands in for BlockClassifier.

    `pages` is a list with one entry per expected call: a list of
    ContentBlock drafts, or an exception to raise.
    """

    def __init__(self, pages):
        self.pages = list(pages)
        self.calls = []

    def classify(self, data, media_type):
        self.calls.append((data, media_type))
        outcome = self.pages[len(self.calls) - 1]
        if isinstance(outcome, Exception):
            raise outcome
        return list(outcome)


@pytest.fixture
def fake_classifier():
    return FakeClassifier


def model_failure(message="Model service unreachable", recoverable=True):
    return ClassificationError(message, ai_provider="Gemini", recoverable=recoverable)


class FakeCompletions:
    def __init__(self, content=None, error=None, usage=None):
        self.content = content
        self.error = error
        self.usage = usage or SimpleNamespace(prompt_tokens=1200, completion_tokens=80, total_tokens=1280)
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=self.usage)


class FakeOpenAIClient:
    def __init__(self, content=None, error=None, usage=None):
        self.completions = FakeCompletions(content=content, error=error, usage=usage)
        self.chat = SimpleNamespace(completions=self.completions)


@pytest.fixture
def fake_client():
    return FakeOpenAIClient
