"""
Configuration partagée pour tous les tests.
- Base locale en mémoire (aucun fichier créé) et sonde du scheduler espacée
- Services de l'API remplacés par des mocks via dependency_overrides
"""

import os

os.environ.setdefault("OFFLINE_DB_URL", "sqlite://")
os.environ.setdefault("CONNECTIVITY_CHECK_SECONDS", "3600")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from unittest.mock import MagicMock  # noqa: E402

from churchkidz.dependencies import get_capture_service, get_monitor, get_sync_service  # noqa: E402
from churchkidz.main import app  # noqa: E402
from churchkidz.services.attendance_service import AttendanceCaptureService  # noqa: E402
from churchkidz.services.connectivity import ConnectivityMonitor  # noqa: E402
from churchkidz.services.offline_store import OfflineStore  # noqa: E402
from churchkidz.services.remote_client import SupabaseClient  # noqa: E402
from churchkidz.services.sync_service import SyncService  # noqa: E402


class FakeClock:
    """Horloge ms epoch contrôlable (fraîcheur du cache, created_at)."""

    def __init__(self, now: int = 1_710_000_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    """Vraie base SQLite en mémoire, propre à chaque test."""
    s = OfflineStore("sqlite://", clock=clock)
    yield s
    s.close()


@pytest.fixture
def remote():
    """Backend distant mocké : tous les appels réussissent par défaut."""
    mock = MagicMock(spec=SupabaseClient)
    mock.list_children.return_value = []
    mock.list_attendance.return_value = []
    mock.upsert_attendance.return_value = None
    return mock


@pytest.fixture
def mock_capture():
    return MagicMock(spec=AttendanceCaptureService)


@pytest.fixture
def mock_sync():
    return MagicMock(spec=SyncService)


@pytest.fixture
def mock_monitor():
    mock = MagicMock(spec=ConnectivityMonitor)
    mock.is_online = True
    mock.check_connection.return_value = True
    mock.last_online_at = None
    return mock


@pytest.fixture
def client(mock_capture, mock_sync, mock_monitor):
    """Client HTTP de test avec les services mockés."""
    app.dependency_overrides[get_capture_service] = lambda: mock_capture
    app.dependency_overrides[get_sync_service] = lambda: mock_sync
    app.dependency_overrides[get_monitor] = lambda: mock_monitor
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
