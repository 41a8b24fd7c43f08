"""
Schémas Pydantic de la capture de présences (roster, éditions locales, sauvegarde).

Toute donnée venant de la base locale ou du backend passe par ces schémas
avant d'être utilisée : aucun dict non typé ne franchit cette frontière.
"""

from datetime import date
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, field_validator

from churchkidz.schemas.sync import SyncResult


class AttendanceEditInput(BaseModel):
    """Une édition de présence à mettre en file d'attente locale."""
    child_id: str
    service_date: date
    present: bool
    notes: str = ""
    recorded_by: str

    @field_validator("notes", mode="before")
    @classmethod
    def notes_none_to_empty(cls, v: Optional[str]) -> str:
        return v or ""


class PendingAttendanceEdit(BaseModel):
    """Édition en attente telle que stockée localement."""
    id: str                  # `${child_id}_${service_date}`
    child_id: str
    service_date: date
    present: bool
    notes: str
    recorded_by: str
    created_at: int          # ms epoch, croissant par insertion
    synced: bool

    model_config = {"from_attributes": True}


class CachedRosterEntry(BaseModel):
    """Enfant du roster mis en cache."""
    id: str
    full_name: str
    cached_at: int           # ms epoch du snapshot

    model_config = {"from_attributes": True}


class RosterChild(BaseModel):
    """Ligne de la table distante `children` (id, full_name)."""
    id: str
    full_name: str


class RemoteAttendanceRow(BaseModel):
    """Ligne de la table distante `attendance` pour une date de service."""
    child_id: str
    present: bool
    notes: Optional[str] = None


class AttendanceRecord(BaseModel):
    """Présence affichée pour un enfant : état distant, surchargé par l'édition locale."""
    child_id: str
    present: bool
    notes: str = ""
    pending: bool = False    # True si l'édition locale n'est pas encore confirmée


class RosterSource(str, Enum):
    REMOTE = "remote"        # récupéré du backend
    CACHE = "cache"          # hors ligne, cache frais
    DEGRADED = "degraded"    # le backend a échoué, repli sur le cache


class RosterLoad(BaseModel):
    children: List[RosterChild]
    source: RosterSource


class AttendanceMark(BaseModel):
    """Une case cochée / note saisie dans le formulaire de présence."""
    child_id: str
    present: bool = True
    notes: Optional[str] = ""

    @field_validator("child_id")
    @classmethod
    def not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("L'identifiant de l'enfant ne peut pas être vide.")
        return v.strip()


class AttendanceSaveRequest(BaseModel):
    """Corps de la requête PUT /api/attendance/{service_date}."""
    recorded_by: str
    records: List[AttendanceMark]

    @field_validator("recorded_by")
    @classmethod
    def recorded_by_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("recorded_by ne peut pas être vide.")
        return v.strip()


class SaveOutcome(str, Enum):
    SAVED_REMOTE = "SAVED_REMOTE"      # "Présences enregistrées"
    SAVED_OFFLINE = "SAVED_OFFLINE"    # "Enregistrées hors ligne, synchronisation plus tard"
    FAILED = "FAILED"                  # "Échec de l'enregistrement, réessayez"


class SaveResult(BaseModel):
    outcome: SaveOutcome
    saved: int = 0
    message: str = ""
    sync: Optional[SyncResult] = None  # drainage de la file après une sauvegarde en ligne


class AttendanceSheetRow(BaseModel):
    child_id: str
    full_name: str
    present: bool = True
    notes: str = ""
    pending: bool = False


class AttendanceSheet(BaseModel):
    """Feuille de présence d'une date : roster complet + état fusionné distant/local."""
    service_date: date
    roster_source: RosterSource
    rows: List[AttendanceSheetRow]
