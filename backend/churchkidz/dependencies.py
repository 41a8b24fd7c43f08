"""
Dépendances FastAPI : fournissent les services construits au démarrage (app.state).
Surchargées dans les tests via app.dependency_overrides.
"""

from fastapi import Request

from churchkidz.services.attendance_service import AttendanceCaptureService
from churchkidz.services.connectivity import ConnectivityMonitor
from churchkidz.services.sync_service import SyncService


def get_capture_service(request: Request) -> AttendanceCaptureService:
    return request.app.state.capture_service


def get_sync_service(request: Request) -> SyncService:
    return request.app.state.sync_service


def get_monitor(request: Request) -> ConnectivityMonitor:
    return request.app.state.monitor
