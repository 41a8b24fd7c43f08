"""
Service de capture des présences (formulaire de présence d'un jour de service).

Règles :
- Roster : distant si joignable (et remplissage du cache), sinon cache local frais uniquement
- Présences d'une date : état distant, puis surcharge par les éditions locales en attente
  (l'intention locale n'a pas encore été confirmée par le serveur → elle gagne toujours)
- Sauvegarde : upsert distant si en ligne ; en cas d'erreur réseau ou hors ligne → file locale
- Validation des notes et de la date AVANT toute écriture : pas de sauvegarde partielle
- Reconnexion : synchronisation automatique puis rechargement de la date affichée
"""

import logging
from datetime import date, timedelta
from typing import Callable, Dict, List, Optional

from churchkidz.config import settings
from churchkidz.exceptions import (
    AttendanceValidationError,
    NetworkError,
    NoDataAvailable,
    RemoteError,
    StorageUnavailable,
)
from churchkidz.schemas.attendance import (
    AttendanceEditInput,
    AttendanceMark,
    AttendanceRecord,
    AttendanceSheet,
    AttendanceSheetRow,
    RosterChild,
    RosterLoad,
    RosterSource,
    SaveOutcome,
    SaveResult,
)
from churchkidz.services.connectivity import ConnectivityMonitor
from churchkidz.services.offline_store import OfflineStore
from churchkidz.services.remote_client import SupabaseClient
from churchkidz.services.sync_service import SyncService

logger = logging.getLogger(__name__)


class AttendanceCaptureService:
    def __init__(
        self,
        store: OfflineStore,
        remote: SupabaseClient,
        sync_service: SyncService,
        monitor: ConnectivityMonitor,
        notes_max_length: int = settings.NOTES_MAX_LENGTH,
        roster_max_age: timedelta = timedelta(hours=settings.ROSTER_CACHE_MAX_AGE_HOURS),
    ):
        self._store = store
        self._remote = remote
        self._sync = sync_service
        self._monitor = monitor
        self._notes_max_length = notes_max_length
        self._roster_max_age = roster_max_age

        # Date affichée par l'interface et son état fusionné, rechargés après une sync automatique.
        # Le service local sert une seule interface (un appareil) : la dernière date chargée
        # par GET /api/attendance/{date} est la date affichée.
        self.current_date: Optional[date] = None
        self.current_records: Dict[str, AttendanceRecord] = {}
        self._unsubscribe: Optional[Callable[[], None]] = None

    # --- Roster ---

    def load_roster(self, online: bool) -> RosterLoad:
        """
        Lève NoDataAvailable si hors ligne (ou backend en erreur) sans cache frais :
        on ne renvoie jamais un roster vide ou périmé sans le signaler.
        """
        if not online:
            return self._cached_roster(RosterSource.CACHE)

        try:
            children = self._remote.list_children()
        except (NetworkError, RemoteError) as exc:
            logger.warning("Roster distant indisponible, repli sur le cache : %s", exc)
            return self._cached_roster(RosterSource.DEGRADED)

        try:
            self._store.replace_roster(children)
        except StorageUnavailable as exc:
            logger.warning("Cache du roster non mis à jour : %s", exc)

        return RosterLoad(children=children, source=RosterSource.REMOTE)

    def _cached_roster(self, source: RosterSource) -> RosterLoad:
        try:
            if not self._store.is_roster_fresh(self._roster_max_age):
                raise NoDataAvailable("Hors ligne et aucune liste d'enfants récente en cache.")
            entries = self._store.get_roster()
        except StorageUnavailable as exc:
            logger.warning("Cache du roster illisible : %s", exc)
            raise NoDataAvailable("Stockage local indisponible : aucune donnée hors ligne.") from exc

        return RosterLoad(
            children=[RosterChild(id=e.id, full_name=e.full_name) for e in entries],
            source=source,
        )

    # --- Présences d'une date ---

    def load_attendance_for_date(self, service_date: date, online: bool) -> Dict[str, AttendanceRecord]:
        """Carte child_id → présence, état distant surchargé par les éditions locales."""
        try:
            local_edits = self._store.list_by_date(service_date)
        except StorageUnavailable as exc:
            logger.warning("Éditions locales illisibles pour le %s : %s", service_date, exc)
            local_edits = []

        records: Dict[str, AttendanceRecord] = {}

        if online:
            try:
                remote_rows = self._remote.list_attendance(service_date)
            except (NetworkError, RemoteError) as exc:
                logger.warning("Présences distantes du %s indisponibles : %s", service_date, exc)
                remote_rows = []
            for row in remote_rows:
                records[row.child_id] = AttendanceRecord(
                    child_id=row.child_id,
                    present=row.present,
                    notes=row.notes or "",
                )

        for edit in local_edits:
            records[edit.child_id] = AttendanceRecord(
                child_id=edit.child_id,
                present=edit.present,
                notes=edit.notes,
                pending=not edit.synced,
            )

        self.current_date = service_date
        self.current_records = records
        return records

    def build_sheet(self, service_date: date, online: bool) -> AttendanceSheet:
        """
        Feuille complète : chaque enfant du roster a une ligne.
        Sans présence enregistrée, l'enfant est présent par défaut (état initial du formulaire).
        """
        roster = self.load_roster(online)
        records = self.load_attendance_for_date(service_date, online)

        rows = []
        for child in roster.children:
            record = records.get(child.id)
            if record is None:
                rows.append(AttendanceSheetRow(child_id=child.id, full_name=child.full_name))
            else:
                rows.append(
                    AttendanceSheetRow(
                        child_id=child.id,
                        full_name=child.full_name,
                        present=record.present,
                        notes=record.notes,
                        pending=record.pending,
                    )
                )

        return AttendanceSheet(service_date=service_date, roster_source=roster.source, rows=rows)

    # --- Sauvegarde ---

    def _validate(
        self, service_date: date, marks: List[AttendanceMark], recorded_by: str
    ) -> List[AttendanceEditInput]:
        if service_date > date.today():
            raise AttendanceValidationError("La date de service ne peut pas être dans le futur.")
        if not marks:
            raise AttendanceValidationError("Aucune présence à enregistrer.")

        too_long = [m.child_id for m in marks if m.notes and len(m.notes) > self._notes_max_length]
        if too_long:
            raise AttendanceValidationError(
                f"Les notes doivent faire moins de {self._notes_max_length} caractères "
                f"(enfants : {', '.join(too_long)})."
            )

        # Un enfant saisi deux fois : la dernière saisie gagne (une seule ligne par clé d'upsert)
        marks = list({m.child_id: m for m in marks}.values())

        return [
            AttendanceEditInput(
                child_id=m.child_id,
                service_date=service_date,
                present=m.present,
                notes=m.notes or "",
                recorded_by=recorded_by,
            )
            for m in marks
        ]

    def save(
        self,
        service_date: date,
        marks: List[AttendanceMark],
        recorded_by: str,
        online: bool,
    ) -> SaveResult:
        """
        Enregistre les présences d'une date.

        Lève AttendanceValidationError avant toute écriture si la saisie est invalide.
        En ligne et upsert réussi → SAVED_REMOTE (et drainage de la file locale).
        Erreur réseau ou hors ligne → SAVED_OFFLINE (file locale).
        Backend en erreur ou stockage local indisponible → FAILED.
        """
        edits = self._validate(service_date, marks, recorded_by)

        if online:
            try:
                self._remote.upsert_attendance(edits)
            except NetworkError as exc:
                logger.warning("Backend injoignable, enregistrement hors ligne : %s", exc)
            except RemoteError as exc:
                logger.error("Upsert des présences du %s refusé : %s", service_date, exc)
                return SaveResult(
                    outcome=SaveOutcome.FAILED,
                    message=f"Échec de l'enregistrement, réessayez. ({exc})",
                )
            else:
                logger.info("%d présence(s) du %s enregistrée(s) en ligne", len(edits), service_date)
                sync_result = self._sync.sync_pending()
                return SaveResult(
                    outcome=SaveOutcome.SAVED_REMOTE,
                    saved=len(edits),
                    message="Présences enregistrées.",
                    sync=sync_result,
                )

        try:
            self._store.put(edits)
        except StorageUnavailable as exc:
            logger.error("Enregistrement local impossible : %s", exc)
            return SaveResult(
                outcome=SaveOutcome.FAILED,
                message="Échec de l'enregistrement hors ligne, réessayez.",
            )

        logger.info("%d présence(s) du %s mise(s) en file locale", len(edits), service_date)
        return SaveResult(
            outcome=SaveOutcome.SAVED_OFFLINE,
            saved=len(edits),
            message="Enregistrées hors ligne, synchronisation au retour du réseau.",
        )

    # --- Synchronisation automatique ---

    def activate(self) -> None:
        """Abonne la capture au retour du réseau (idempotent)."""
        if self._unsubscribe is None:
            self._unsubscribe = self._monitor.on_transition_to_online(self._on_reconnect)

    def deactivate(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_reconnect(self) -> None:
        result = self._sync.handle_reconnect()
        if result is not None and result.synced > 0 and self.current_date is not None:
            self.load_attendance_for_date(self.current_date, online=True)
