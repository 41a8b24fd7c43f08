"""
Router de la synchronisation file locale → backend.
Synchronisation manuelle et données du badge "N en attente".
"""

from fastapi import APIRouter, Depends

from churchkidz.dependencies import get_sync_service
from churchkidz.schemas.sync import SyncResult, SyncStatus
from churchkidz.services.sync_service import SyncService

router = APIRouter(prefix="/api/sync", tags=["Synchronisation offline"])


@router.post("", response_model=SyncResult, summary="Synchroniser maintenant")
def sync_now(service: SyncService = Depends(get_sync_service)):
    """
    Envoie toutes les présences en attente au backend, groupées par date.
    Toujours 200 : les échecs partiels sont rapportés dans `errors`.
    """
    service.record_sync_attempt()
    return service.sync_pending()


@router.get("/status", response_model=SyncStatus, summary="Statut de synchronisation")
def sync_status(service: SyncService = Depends(get_sync_service)):
    """Nombre de présences en attente et dernière tentative de synchronisation."""
    return service.get_sync_status()
