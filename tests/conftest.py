import pytest
from fastapi.testclient import TestClient

from api.deps import get_generation_oracle, get_settings
from backend.main import create_app
from backend.observability.metrics import ProgramBuilderMetrics
from backend.settings import Settings, get_settings as get_cached_settings
from tests.fakes import FakeGenerationOracle, build_settings


@pytest.fixture(autouse=True)
def _reset_caches():
    get_cached_settings.cache_clear()
    get_generation_oracle.cache_clear()
    ProgramBuilderMetrics.reset()
    yield
    get_cached_settings.cache_clear()
    get_generation_oracle.cache_clear()


@pytest.fixture
def settings() -> Settings:
    return build_settings()


@pytest.fixture
def fake_oracle() -> FakeGenerationOracle:
    return FakeGenerationOracle()


@pytest.fixture
def app(settings, fake_oracle):
    application = create_app(settings=settings)
    application.dependency_overrides[get_settings] = lambda: settings
    application.dependency_overrides[get_generation_oracle] = lambda: fake_oracle
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)
