"""
Stockage local durable de l'appareil (mode offline).

Deux familles d'enregistrements :
- pending-attendance : éditions de présence en attente, une par (child_id, service_date)
- cached-children    : snapshot du roster, remplacé en bloc à chaque récupération distante

Toute opération multi-enregistrements s'exécute dans une seule transaction :
un lot à moitié écrit n'est jamais visible.
Toute erreur SQLAlchemy est convertie en StorageUnavailable à cette frontière.
"""

import logging
import threading
import time
from contextlib import contextmanager
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Iterator, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

import churchkidz.models  # noqa: F401  enregistre les tables dans Base.metadata avant create_all
from churchkidz.database import Base, create_local_engine, create_session_factory
from churchkidz.exceptions import StorageUnavailable
from churchkidz.models.cached_child import CachedChild
from churchkidz.models.pending_attendance import PendingAttendance
from churchkidz.models.sync_state import SyncState
from churchkidz.schemas.attendance import (
    AttendanceEditInput,
    CachedRosterEntry,
    PendingAttendanceEdit,
    RosterChild,
)

logger = logging.getLogger(__name__)

DEFAULT_ROSTER_MAX_AGE = timedelta(hours=24)
LAST_SYNC_ATTEMPT_KEY = "last_sync_attempt"


def _now_ms() -> int:
    return int(time.time() * 1000)


def pending_key(child_id: str, service_date: date) -> str:
    """Clé primaire d'une édition en attente : `${child_id}_${service_date}`."""
    return f"{child_id}_{service_date.isoformat()}"


class OfflineStore:
    """
    Handle de la base locale, ouvert paresseusement à la première utilisation.

    Une instance est créée au démarrage de l'application et injectée dans le
    SyncService et l'AttendanceCaptureService. Une fois ouverte, la base n'est
    jamais réinitialisée implicitement.
    """

    def __init__(self, url: str, clock: Callable[[], int] = _now_ms):
        self._url = url
        self._clock = clock
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None
        self._last_created_at = 0
        self._open_lock = threading.Lock()

    # --- Ouverture / transactions ---

    def _sessions(self) -> sessionmaker:
        # Scheduler et requêtes HTTP tournent dans des threads distincts : une seule ouverture
        with self._open_lock:
            if self._session_factory is None:
                try:
                    engine = create_local_engine(self._url)
                    Base.metadata.create_all(engine)
                except SQLAlchemyError as exc:
                    raise StorageUnavailable(f"Ouverture de la base locale impossible : {exc}") from exc
                self._engine = engine
                self._session_factory = create_session_factory(engine)
                logger.info("Base locale ouverte : %s", self._url)
            return self._session_factory

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        """Session dans une transaction unique : commit à la sortie, rollback sur erreur."""
        factory = self._sessions()
        try:
            with factory() as db, db.begin():
                yield db
        except SQLAlchemyError as exc:
            raise StorageUnavailable(f"Transaction locale échouée : {exc}") from exc

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()

    def _next_created_at(self) -> int:
        """Horodatage de capture strictement croissant, même au sein d'un lot."""
        now = self._clock()
        if now <= self._last_created_at:
            now = self._last_created_at + 1
        self._last_created_at = now
        return now

    # --- Éditions en attente ---

    def put(self, edits: List[AttendanceEditInput]) -> None:
        """
        Met en file un lot d'éditions. Une édition existante pour la même clé
        (enfant + date) est remplacée : dernière écriture gagnante.
        """
        if not edits:
            return
        # Une clé répétée dans le lot : seule la dernière édition est conservée
        latest = {pending_key(e.child_id, e.service_date): e for e in edits}
        with self._transaction() as db:
            for key, edit in latest.items():
                db.merge(
                    PendingAttendance(
                        id=key,
                        child_id=edit.child_id,
                        service_date=edit.service_date,
                        present=edit.present,
                        notes=edit.notes,
                        recorded_by=edit.recorded_by,
                        created_at=self._next_created_at(),
                        synced=False,
                    )
                )
        logger.debug("%d édition(s) mise(s) en file locale", len(latest))

    def list_unsynced(self) -> List[PendingAttendanceEdit]:
        """
        Retourne les éditions non synchronisées.
        Si la lecture par l'index `synced` échoue ou ne renvoie rien,
        on refait un parcours complet filtré en mémoire.
        """
        try:
            with self._transaction() as db:
                rows = db.execute(
                    select(PendingAttendance)
                    .where(PendingAttendance.synced.is_(False))
                    .order_by(PendingAttendance.created_at)
                ).scalars().all()
                records = [PendingAttendanceEdit.model_validate(r) for r in rows]
        except StorageUnavailable as exc:
            logger.warning("Lecture par index impossible, parcours complet : %s", exc)
            records = []

        if records:
            return records

        with self._transaction() as db:
            rows = db.execute(
                select(PendingAttendance).order_by(PendingAttendance.created_at)
            ).scalars().all()
            return [PendingAttendanceEdit.model_validate(r) for r in rows if not r.synced]

    def list_by_date(self, service_date: date) -> List[PendingAttendanceEdit]:
        """Toutes les éditions locales (synchronisées ou non) d'une date de service."""
        with self._transaction() as db:
            rows = db.execute(
                select(PendingAttendance)
                .where(PendingAttendance.service_date == service_date)
                .order_by(PendingAttendance.created_at)
            ).scalars().all()
            return [PendingAttendanceEdit.model_validate(r) for r in rows]

    def mark_synced(self, ids: List[str]) -> None:
        """Passe synced=True pour chaque clé trouvée. Les clés inconnues sont ignorées."""
        if not ids:
            return
        with self._transaction() as db:
            for record_id in ids:
                record = db.get(PendingAttendance, record_id)
                if record is not None:
                    record.synced = True

    def prune_synced(self) -> int:
        """Supprime toutes les éditions synchronisées. Retourne le nombre supprimé."""
        with self._transaction() as db:
            result = db.execute(delete(PendingAttendance).where(PendingAttendance.synced.is_(True)))
            removed = result.rowcount or 0
        if removed:
            logger.debug("%d édition(s) synchronisée(s) purgée(s)", removed)
        return removed

    def count_unsynced(self) -> int:
        """Compteur du badge : COUNT indexé, parcours complet en repli."""
        try:
            with self._transaction() as db:
                return db.execute(
                    select(func.count())
                    .select_from(PendingAttendance)
                    .where(PendingAttendance.synced.is_(False))
                ).scalar_one()
        except StorageUnavailable as exc:
            logger.warning("Comptage indexé impossible, parcours complet : %s", exc)
        return len(self.list_unsynced())

    # --- Cache du roster ---

    def replace_roster(self, children: List[RosterChild]) -> None:
        """Vide puis remplit le cache du roster dans une seule transaction."""
        cached_at = self._clock()
        with self._transaction() as db:
            db.execute(delete(CachedChild))
            db.add_all(
                [CachedChild(id=c.id, full_name=c.full_name, cached_at=cached_at) for c in children]
            )
        logger.info("Roster mis en cache : %d enfant(s)", len(children))

    def get_roster(self) -> List[CachedRosterEntry]:
        with self._transaction() as db:
            rows = db.execute(select(CachedChild).order_by(CachedChild.full_name)).scalars().all()
            return [CachedRosterEntry.model_validate(r) for r in rows]

    def is_roster_fresh(self, max_age: timedelta = DEFAULT_ROSTER_MAX_AGE) -> bool:
        """
        Le cache est valide seulement si l'entrée la PLUS ANCIENNE a moins de max_age.
        Un cache vide n'est jamais valide.
        """
        with self._transaction() as db:
            oldest = db.execute(select(func.min(CachedChild.cached_at))).scalar()
        if oldest is None:
            return False
        return self._clock() - oldest < max_age.total_seconds() * 1000

    # --- État de synchronisation ---

    def get_last_sync_attempt(self) -> Optional[datetime]:
        with self._transaction() as db:
            state = db.get(SyncState, LAST_SYNC_ATTEMPT_KEY)
            value = state.value if state is not None else None
        return datetime.fromisoformat(value) if value else None

    def set_last_sync_attempt(self, attempted_at: Optional[datetime] = None) -> None:
        attempted_at = attempted_at or datetime.now(timezone.utc)
        with self._transaction() as db:
            db.merge(SyncState(key=LAST_SYNC_ATTEMPT_KEY, value=attempted_at.isoformat()))
