"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
Every database fixture runs against a throwaway SQLite file under tmp_path.
"""
import sys
from datetime import timedelta
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (require database)")
    config.addinivalue_line("markers", "api: HTTP API tests")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        path = str(item.fspath)
        if "unit" in path:
            item.add_marker(pytest.mark.unit)
        elif "integration" in path:
            item.add_marker(pytest.mark.integration)
        elif "api" in path:
            item.add_marker(pytest.mark.api)
        elif "smoke" in path:
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


# ========================================
# Database
# ========================================


@pytest.fixture
def db_engine(tmp_path):
    """Fresh SQLite database with all tables created."""
    from src.db.database import build_engine, init_db

    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    from src.db.database import build_session_factory

    return build_session_factory(db_engine)


@pytest.fixture
def db_session(session_factory):
    """A plain session for tests that drive repositories directly."""
    session = session_factory()
    yield session
    session.rollback()
    session.close()


# ========================================
# Services
# ========================================


@pytest.fixture
def cycle_engine(session_factory):
    from src.cycle import CycleEngine

    return CycleEngine(session_factory=session_factory)


@pytest.fixture
def workspace_service(session_factory):
    from src.cycle import WorkspaceService

    return WorkspaceService(session_factory=session_factory)


@pytest.fixture
def workspace(workspace_service):
    """A workspace owned by 'alice' with Math, Physics and English subjects."""
    ws = workspace_service.create_workspace("alice", "Finals")
    subjects = {
        name: workspace_service.add_subject(ws.id, name).id
        for name in ("Math", "Physics", "English")
    }
    return {"id": ws.id, "owner": "alice", "subjects": subjects}


@pytest.fixture
def log_minutes(workspace_service, workspace):
    """
    Log a session for a subject by name.

    Sessions default to an hour in the past so a reset performed during the
    test reliably excludes them.
    """
    from src.db.models.base import utcnow

    def _log(subject: str, minutes: int, ago: timedelta | None = timedelta(hours=1)):
        logged_at = utcnow() - ago if ago is not None else None
        return workspace_service.log_session(
            workspace["id"], workspace["subjects"][subject], minutes, logged_at
        )

    return _log


@pytest.fixture
def item_specs(workspace):
    """Build ItemSpecs from (subject name, target) pairs."""
    from src.cycle import ItemSpec

    def _specs(*pairs):
        return [ItemSpec(subject_id=workspace["subjects"][name], target_minutes=t) for name, t in pairs]

    return _specs
