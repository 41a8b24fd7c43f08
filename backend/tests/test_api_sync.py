"""
Tests d'intégration API de la synchronisation et de la connectivité.
Endpoints : POST /api/sync, GET /api/sync/status, /api/connectivity
"""

from datetime import datetime, timezone

from churchkidz.schemas.sync import SyncResult, SyncStatus


# ============================================================
# POST /api/sync
# ============================================================

def test_sync_manuelle(client, mock_sync):
    mock_sync.sync_pending.return_value = SyncResult(synced=5)

    response = client.post("/api/sync")

    assert response.status_code == 200
    data = response.json()
    assert data == {"success": True, "synced": 5, "failed": 0, "errors": [], "skipped": False}
    mock_sync.record_sync_attempt.assert_called_once()


def test_sync_echec_partiel_toujours_200(client, mock_sync):
    """Échec partiel → 200, les erreurs sont dans le corps."""
    mock_sync.sync_pending.return_value = SyncResult(
        success=False,
        synced=1,
        failed=2,
        errors=["Échec de synchronisation du 2024-03-10 : 500 Internal Server Error"],
    )

    response = client.post("/api/sync")

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is False
    assert data["failed"] == 2
    assert "2024-03-10" in data["errors"][0]


# ============================================================
# GET /api/sync/status
# ============================================================

def test_statut(client, mock_sync):
    mock_sync.get_sync_status.return_value = SyncStatus(
        pending_count=3,
        last_sync_attempt=datetime(2024, 3, 10, 9, 30, tzinfo=timezone.utc),
        is_online=False,
    )

    response = client.get("/api/sync/status")

    assert response.status_code == 200
    data = response.json()
    assert data["pending_count"] == 3
    assert data["is_online"] is False
    assert data["last_sync_attempt"].startswith("2024-03-10T09:30")


# ============================================================
# /api/connectivity
# ============================================================

def test_connectivite(client, mock_monitor):
    mock_monitor.check_connection.return_value = False

    response = client.get("/api/connectivity")

    assert response.status_code == 200
    assert response.json() == {"is_online": True, "reachable": False, "last_online_at": None}


def test_evenement_online(client, mock_monitor):
    response = client.post("/api/connectivity/online")

    assert response.status_code == 200
    mock_monitor.set_online.assert_called_once_with(True)


def test_evenement_offline(client, mock_monitor):
    response = client.post("/api/connectivity/offline")

    assert response.status_code == 200
    mock_monitor.set_online.assert_called_once_with(False)


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
