"""Shared pytest fixtures for Banana Studio tests."""

import base64
import io
import os
import shutil
import tempfile
from pathlib import Path
from typing import Callable, Generator

# Keep the import-time global config from creating data/ and uploads/ in the
# working directory.
_IMPORT_DIR = tempfile.mkdtemp(prefix="bananastudio-import-")
os.environ.setdefault("BANANASTUDIO_DATA_DIR", str(Path(_IMPORT_DIR) / "data"))
os.environ.setdefault("BANANASTUDIO_UPLOADS_DIR", str(Path(_IMPORT_DIR) / "uploads"))

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from PIL import Image  # noqa: E402

from bananastudio.api.main import create_app, get_gemini_client  # noqa: E402
from bananastudio.core.config import StudioConfig  # noqa: E402
from bananastudio.core.gemini_client import GeminiClient  # noqa: E402
from bananastudio.core.storage import ImageStorage  # noqa: E402

TEST_BASE_URL = "http://testserver"


class FakeGemini:
    """Callable handler for ``httpx.MockTransport`` that records requests.

    Set ``response`` to an :class:`httpx.Response` to return, or to an
    exception instance to raise instead.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.response: httpx.Response | Exception = httpx.Response(200, json={})

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response

    @property
    def call_count(self) -> int:
        return len(self.requests)


def make_png(color: str = "red", size: tuple[int, int] = (4, 4)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def image_part(data: bytes, mime_type: str = "image/png") -> dict:
    """An inline image part as Gemini returns it."""
    return {"inlineData": {"mimeType": mime_type, "data": base64.b64encode(data).decode("ascii")}}


def gemini_body(*parts: dict, finish_reason: str | None = "STOP") -> dict:
    """A ``generateContent`` response body with one candidate."""
    candidate: dict = {"content": {"parts": list(parts), "role": "model"}}
    if finish_reason is not None:
        candidate["finishReason"] = finish_reason
    return {"candidates": [candidate]}


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> StudioConfig:
    """Create a test configuration with temporary directories.

    Args:
        temp_dir: Temporary directory from fixture

    Returns:
        StudioConfig instance for testing
    """
    return StudioConfig(
        _env_file=None,
        data_dir=temp_dir / "data",
        uploads_dir=temp_dir / "uploads",
        public_base_url=TEST_BASE_URL,
        gemini_api_base="https://gemini.test/v1beta",
        gemini_model="test-image-model",
        credential_source="either",
    )


@pytest.fixture
def storage(test_config: StudioConfig) -> ImageStorage:
    return ImageStorage(test_config.uploads_dir, test_config.uploads_url_base)


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def make_image() -> Callable[..., bytes]:
    return make_png


@pytest.fixture
def build_part() -> Callable[..., dict]:
    return image_part


@pytest.fixture
def build_body() -> Callable[..., dict]:
    return gemini_body


@pytest.fixture
def fake_gemini() -> FakeGemini:
    return FakeGemini()


@pytest.fixture
def gemini_client(fake_gemini: FakeGemini, test_config: StudioConfig) -> GeminiClient:
    return GeminiClient(
        test_config.gemini_api_base,
        test_config.gemini_model,
        transport=httpx.MockTransport(fake_gemini),
    )


@pytest.fixture
def app_factory(
    test_config: StudioConfig, gemini_client: GeminiClient
) -> Callable[..., TestClient]:
    """Build a TestClient around a fresh app with the fake Gemini upstream.

    Keyword arguments override fields of the test configuration.
    """

    def _factory(raise_server_exceptions: bool = True, **overrides) -> TestClient:
        settings = test_config.model_copy(update=overrides) if overrides else test_config
        app = create_app(settings)
        app.dependency_overrides[get_gemini_client] = lambda: gemini_client
        return TestClient(app, raise_server_exceptions=raise_server_exceptions)

    return _factory


@pytest.fixture
def test_client(app_factory) -> Generator[TestClient, None, None]:
    with app_factory() as client:
        yield client
