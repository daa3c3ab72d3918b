"""Shared test fixtures for the Chronicle test suite."""

from collections.abc import Callable, Generator
from pathlib import Path

import pytest
import structlog

from chronicle.audit import AuditHistoryService, AuditInterceptor, EntityRegistry
from chronicle.audit.stores import InMemoryEventStore
from chronicle.config.models.audit import AuditConfig
from chronicle.config.settings import set_toml_config
from tests.factories.employees import FakeClock, InMemoryEmployeeService


@pytest.fixture
def test_config_dir(tmp_path: Path) -> Path:
    """Create a temporary config directory for testing."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def mock_toml_files(test_config_dir: Path) -> Callable[[dict[str, str]], None]:
    """Factory fixture to create TOML files in the test config directory.

    Usage:
        def test_something(mock_toml_files):
            mock_toml_files({
                "default.toml": "[audit]\\ndefault_domain = 'HR'",
                "development.toml": "[observability.logging]\\nlevel = 'DEBUG'",
            })
    """

    def _create_toml_files(files: dict[str, str]) -> None:
        for filename, content in files.items():
            (test_config_dir / filename).write_text(content)

    return _create_toml_files


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """Reset cached settings and loaded TOML around each test."""
    from chronicle.config import get_settings

    get_settings.cache_clear()
    set_toml_config({})
    yield
    get_settings.cache_clear()
    set_toml_config({})


@pytest.fixture(autouse=True)
def clear_log_context() -> Generator[None, None, None]:
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()


@pytest.fixture
def event_store() -> InMemoryEventStore:
    """Fresh in-memory event store."""
    return InMemoryEventStore()


@pytest.fixture
def audit_config() -> AuditConfig:
    """Audit config without retry backoff so failure tests stay fast."""
    return AuditConfig(append_retry_backoff_seconds=0.0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def employee_service(clock: FakeClock) -> InMemoryEmployeeService:
    return InMemoryEmployeeService(clock)


@pytest.fixture
def registry(employee_service: InMemoryEmployeeService) -> EntityRegistry:
    registry = EntityRegistry()
    registry.register("EMPLOYEE", "HR", loader=employee_service.get_employee)
    return registry


@pytest.fixture
def interceptor(
    event_store: InMemoryEventStore,
    registry: EntityRegistry,
    audit_config: AuditConfig,
    clock: FakeClock,
) -> AuditInterceptor:
    return AuditInterceptor(event_store, registry, audit_config, clock=clock)


@pytest.fixture
def history(event_store: InMemoryEventStore) -> AuditHistoryService:
    return AuditHistoryService(event_store)
