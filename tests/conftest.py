import io
import os

# Keep tests offline and quiet before any pipeline module reads the environment
os.environ["LOG_TO_FILE"] = "false"
os.environ["ENABLE_VISION_ANALYSIS"] = "false"
os.environ["REPLICATE_API_TOKEN"] = ""
os.environ["OPENAI_API_KEY"] = ""
os.environ["GEMINI_API_KEY"] = ""
os.environ["STORAGE_BRANCH"] = "main"

import numpy as np
import pytest
from PIL import Image

from media_pipeline.errors import DownloadError, StorageError
from media_pipeline.models import StrategyPlan, EnhancementRequest
from media_pipeline.orchestrator import EnhancementOrchestrator
from media_pipeline.providers import RemoteProvider
from media_pipeline.storage_service import StoragePaths


def encode(img: Image.Image, fmt: str = "PNG") -> bytes:
    buffer = io.BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


def textured(color, size=(320, 240), seed=7) -> Image.Image:
    """Solid colour with mild deterministic noise so filters have something to do"""
    w, h = size
    base = np.zeros((h, w, 3), dtype=np.int16)
    base[:, :] = color
    rng = np.random.default_rng(seed)
    noise = rng.integers(-8, 9, base.shape, dtype=np.int16)
    return Image.fromarray(np.clip(base + noise, 0, 255).astype(np.uint8))


@pytest.fixture
def dim_interior_png() -> bytes:
    """Dark, warm-ish room: brightness well under 80."""
    return encode(textured((45, 40, 35)))


@pytest.fixture
def bright_exterior_png() -> bytes:
    """Bright, blue-dominant frame that reads as sky."""
    return encode(textured((200, 215, 250)))


@pytest.fixture
def mixed_interior_png() -> bytes:
    """Mid-grey frame: mixed lighting, interior."""
    return encode(textured((120, 120, 120)))


@pytest.fixture
def gradient_png() -> bytes:
    """200×100 horizontal gradient; asymmetric so flips and rotations are observable."""
    row = np.linspace(0, 255, 200, dtype=np.uint8)
    arr = np.stack([np.tile(row, (100, 1))] * 3, axis=-1)
    arr[:, :, 2] = 80
    return encode(Image.fromarray(arr))


class FakeStorage:
    """In-memory storage gateway that records every call."""

    BASE = "https://cdn.example.com/"

    def __init__(self, fail: bool = False):
        self.objects = {}
        self.uploads = []
        self.signed = []
        self.fail = fail
        self.paths = StoragePaths("main")

    def put(self, data, key, content_type="image/jpeg"):
        if self.fail:
            raise StorageError("bucket unavailable")
        self.objects[key] = (data, content_type)
        self.uploads.append((key, data))
        return f"{self.BASE}{key}"

    def signed_get(self, key, ttl_seconds=3600):
        self.signed.append(key)
        return f"https://signed.example.com/{key}?ttl={ttl_seconds}"

    def extract_file_key(self, url):
        if url.startswith(self.BASE):
            return url[len(self.BASE):]
        return None


class FakeFetcher:
    """URL → bytes map; unknown URLs and exceptions raise like a real download."""

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []

    def __call__(self, url, *args, **kwargs):
        self.calls.append(url)
        value = self.responses.get(url)
        if isinstance(value, Exception):
            raise value
        if value is None:
            raise DownloadError(f"Failed to download {url}: HTTP 404", url=url, status_code=404)
        return value


class FakeProvider(RemoteProvider):
    """Remote provider returning a canned payload or raising a canned error."""

    def __init__(self, name, output=None, error=None, cost=0.01):
        super().__init__(timeout=5)
        self.name = name
        self.output = output
        self.error = error
        self.cost = cost
        self.calls = []

    def prepare(self, plan: StrategyPlan, image_url: str, request: EnhancementRequest):
        return plan.model_id, plan.build_input(image_url)

    def invoke(self, model_id, input_params):
        self.calls.append((model_id, input_params))
        if self.error is not None:
            raise self.error
        return self.output

    def estimate_cost(self, plan, request):
        return self.cost


@pytest.fixture
def make_png():
    """Factory: (rgb colour, size) → PNG bytes"""
    def _make(color=(128, 128, 128), size=(320, 240), fmt="PNG"):
        return encode(textured(color, size), fmt)
    return _make


@pytest.fixture
def make_fetcher():
    return FakeFetcher


@pytest.fixture
def make_provider():
    return FakeProvider


@pytest.fixture
def fake_storage():
    return FakeStorage()


@pytest.fixture
def failing_storage():
    return FakeStorage(fail=True)


@pytest.fixture
def make_orchestrator(fake_storage):
    def _make(providers=None, responses=None, storage=None, **kwargs):
        fetcher = FakeFetcher(responses)
        orchestrator = EnhancementOrchestrator(
            storage=storage or fake_storage,
            providers=providers or {},
            fetch=fetcher,
            **kwargs,
        )
        return orchestrator, fetcher
    return _make
