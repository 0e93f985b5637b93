"""Root pytest configuration for hyperbuild tests."""
import pytest

from hyperbuild.builder import BuildEngine
from hyperbuild.dockerfile import parse_dockerfile
from hyperbuild.registry_client import RegistryClient
from hyperbuild.settings import Settings
from hyperbuild.storage.blob_store import BlobStore
from hyperbuild.storage.image_store import ImageStore

from .fakes.fake_registry import FakeRegistry

SIMPLE_DOCKERFILE = """\
FROM alpine:3.18
RUN apk add --no-cache curl
ENV APP_HOME=/app
WORKDIR /app
COPY . .
CMD ["python", "main.py"]
"""


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "slow: mark test as slow (may take significant time)"
    )


@pytest.fixture(autouse=True)
def test_env(monkeypatch, tmp_path):
    """Isolate every test from the caller's HYPERBUILD_* environment."""
    for name in (
        "HYPERBUILD_DEFAULT_REGISTRY",
        "HYPERBUILD_HTTP_TIMEOUT",
        "HYPERBUILD_HTTP_RETRY",
        "HYPERBUILD_HTTP_BACKOFF",
        "HYPERBUILD_VERIFY_PULL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HYPERBUILD_STORE_DIR", str(tmp_path / "env-store"))


@pytest.fixture
def store_dir(tmp_path):
    return tmp_path / "store"


@pytest.fixture
def blob_store(store_dir):
    store = BlobStore(store_dir)
    store.init()
    return store


@pytest.fixture
def image_store(store_dir, blob_store):
    store = ImageStore(store_dir, blob_store)
    store.init()
    return store


@pytest.fixture
def engine(blob_store, image_store):
    return BuildEngine(blob_store, image_store)


@pytest.fixture
def built_image(engine):
    """A small image built from SIMPLE_DOCKERFILE (5 layers)."""
    return engine.build(parse_dockerfile(SIMPLE_DOCKERFILE), "localhost:5000/myapp:v1",
                        created="2024-01-01T00:00:00Z")


@pytest.fixture
def settings(store_dir):
    """Standard test settings: no retry backoff delay."""
    return Settings(store_dir=str(store_dir), http_backoff_s=0.0)


@pytest.fixture
def fake_registry():
    return FakeRegistry()


@pytest.fixture
def client(fake_registry):
    """Registry client wired to the fake registry."""
    with RegistryClient("http://localhost:5000", transport=fake_registry.transport,
                        backoff=0.0) as c:
        yield c
