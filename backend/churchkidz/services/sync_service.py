"""
Service de synchronisation file locale → backend.

Stratégie :
- Les éditions en attente sont regroupées par service_date : un seul upsert par date
  (cible de conflit (child_id, service_date) → une ligne existante est écrasée, pas dupliquée)
- Un groupe en échec n'interrompt pas les suivants : succès partiel attendu
- Les éditions confirmées sont marquées synced puis purgées à chaque passe, succès ou non
- Les éditions en échec restent en attente et seront retentées à la prochaine passe

sync_pending() ne lève jamais : toute erreur devient un SyncResult en échec.
"""

import logging
import threading
from collections import OrderedDict
from datetime import date, datetime, timezone
from typing import Dict, List, Optional

from churchkidz.exceptions import StorageUnavailable
from churchkidz.schemas.attendance import PendingAttendanceEdit
from churchkidz.schemas.sync import SyncResult, SyncStatus
from churchkidz.services.connectivity import ConnectivityMonitor
from churchkidz.services.offline_store import OfflineStore
from churchkidz.services.remote_client import SupabaseClient

logger = logging.getLogger(__name__)


def group_by_service_date(
    records: List[PendingAttendanceEdit],
) -> Dict[date, List[PendingAttendanceEdit]]:
    """Regroupe les éditions par date, dans l'ordre de première apparition."""
    groups: Dict[date, List[PendingAttendanceEdit]] = OrderedDict()
    for record in records:
        groups.setdefault(record.service_date, []).append(record)
    return groups


class SyncService:
    def __init__(
        self,
        store: OfflineStore,
        remote: SupabaseClient,
        monitor: Optional[ConnectivityMonitor] = None,
    ):
        self._store = store
        self._remote = remote
        self._monitor = monitor
        # Une seule passe à la fois : un 2e appel concurrent est ignoré (skipped)
        self._in_flight = threading.Lock()

    def sync_pending(self) -> SyncResult:
        if not self._in_flight.acquire(blocking=False):
            logger.info("Synchronisation déjà en cours, appel ignoré.")
            return SyncResult(skipped=True)
        try:
            return self._sync_pending()
        finally:
            self._in_flight.release()

    def _sync_pending(self) -> SyncResult:
        result = SyncResult()

        try:
            pending = self._store.list_unsynced()
            if not pending:
                return result

            synced_ids: List[str] = []

            for service_date, records in group_by_service_date(pending).items():
                try:
                    self._remote.upsert_attendance(records)
                except Exception as exc:
                    result.failed += len(records)
                    result.errors.append(f"Échec de synchronisation du {service_date.isoformat()} : {exc}")
                    logger.warning(
                        "Groupe %s non synchronisé (%d présence(s)) : %s",
                        service_date, len(records), exc,
                    )
                    continue

                result.synced += len(records)
                synced_ids.extend(record.id for record in records)

            if synced_ids:
                self._store.mark_synced(synced_ids)

            self._store.prune_synced()

            result.success = result.failed == 0
        except Exception as exc:
            logger.error("Erreur de synchronisation : %s", exc, exc_info=True)
            result.success = False
            result.errors.append(f"Erreur de synchronisation : {exc}")

        logger.info(
            "Sync : %d synchronisée(s), %d en échec",
            result.synced, result.failed,
        )
        return result

    def record_sync_attempt(self) -> None:
        try:
            self._store.set_last_sync_attempt(datetime.now(timezone.utc))
        except StorageUnavailable as exc:
            logger.warning("Horodatage de tentative non enregistré : %s", exc)

    def handle_reconnect(self) -> Optional[SyncResult]:
        """
        Synchronisation automatique au retour du réseau.
        Ne fait rien (None) s'il n'y a aucune édition en attente.
        """
        try:
            pending_count = self._store.count_unsynced()
        except StorageUnavailable as exc:
            logger.warning("File locale illisible, pas de synchronisation automatique : %s", exc)
            return None

        if pending_count == 0:
            return None

        logger.info("Reconnexion : %d présence(s) en attente, synchronisation", pending_count)
        self.record_sync_attempt()
        return self.sync_pending()

    def get_sync_status(self) -> SyncStatus:
        """Compteur du badge + dernière tentative. Stockage indisponible → 0 en attente."""
        try:
            pending_count = self._store.count_unsynced()
            last_attempt = self._store.get_last_sync_attempt()
        except StorageUnavailable as exc:
            logger.warning("Statut de synchronisation indisponible : %s", exc)
            pending_count, last_attempt = 0, None

        return SyncStatus(
            pending_count=pending_count,
            last_sync_attempt=last_attempt,
            is_online=self._monitor.is_online if self._monitor is not None else True,
        )
