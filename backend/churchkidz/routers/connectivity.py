"""
Router de connectivité.
L'interface y signale les évènements online/offline du navigateur.
"""

from fastapi import APIRouter, Depends

from churchkidz.dependencies import get_monitor
from churchkidz.schemas.connectivity import ConnectivityStatus
from churchkidz.services.connectivity import ConnectivityMonitor

router = APIRouter(prefix="/api/connectivity", tags=["Connectivité"])


def _status(monitor: ConnectivityMonitor) -> ConnectivityStatus:
    return ConnectivityStatus(
        is_online=monitor.is_online,
        reachable=monitor.check_connection(),
        last_online_at=monitor.last_online_at,
    )


@router.get("", response_model=ConnectivityStatus, summary="État de la connexion")
def get_connectivity(monitor: ConnectivityMonitor = Depends(get_monitor)):
    """État rapporté par la plateforme + sonde réelle vers le backend."""
    return _status(monitor)


@router.post("/online", response_model=ConnectivityStatus, summary="Évènement online")
def report_online(monitor: ConnectivityMonitor = Depends(get_monitor)):
    """Le navigateur repasse en ligne : déclenche la synchronisation automatique."""
    monitor.set_online(True)
    return _status(monitor)


@router.post("/offline", response_model=ConnectivityStatus, summary="Évènement offline")
def report_offline(monitor: ConnectivityMonitor = Depends(get_monitor)):
    monitor.set_online(False)
    return _status(monitor)
