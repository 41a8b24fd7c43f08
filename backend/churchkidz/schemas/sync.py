"""
Schémas Pydantic de la synchronisation file locale → backend.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class SyncResult(BaseModel):
    """Rapport d'une passe de synchronisation (jamais persisté)."""

    success: bool = True
    synced: int = 0
    failed: int = 0
    errors: List[str] = []        # une entrée par groupe de date en échec
    skipped: bool = False         # True si une autre synchronisation était déjà en cours


class SyncStatus(BaseModel):
    """Données du badge persistant de l'indicateur offline."""

    pending_count: int
    last_sync_attempt: Optional[datetime]
    is_online: bool
