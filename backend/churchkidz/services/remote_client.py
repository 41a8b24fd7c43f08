"""
Client du backend hébergé (Supabase, API REST PostgREST).

Tables consommées :
- children   : roster (id, full_name), trié par nom
- attendance : présences, upsert avec cible de conflit (child_id, service_date)

Les erreurs requests sont converties ici :
- pas de réponse (timeout, connexion refusée, DNS...) → NetworkError
- réponse HTTP en erreur ou corps invalide             → RemoteError
"""

import logging
from datetime import date
from typing import List, Optional, Sequence

import requests
from pydantic import BaseModel, ValidationError

from churchkidz.exceptions import NetworkError, RemoteError
from churchkidz.schemas.attendance import RemoteAttendanceRow, RosterChild

logger = logging.getLogger(__name__)

UPSERT_FIELDS = {"child_id", "service_date", "present", "notes", "recorded_by"}
ATTENDANCE_CONFLICT_TARGET = "child_id,service_date"


def _error_message(response: requests.Response) -> str:
    """Extrait le message d'erreur PostgREST ({"message": ...}) ou le texte brut."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return f"{response.status_code} {body['message']}"
    return f"{response.status_code} {response.reason or response.text[:200]}"


class SupabaseClient:
    """Accès REST aux tables `children` et `attendance`."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self._rest_url = base_url.rstrip("/") + "/rest/v1"
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({
            "Content-Type": "application/json",
            "Accept": "application/json",
        })
        if api_key:
            self._session.headers["apikey"] = api_key
            self._session.headers["Authorization"] = f"Bearer {api_key}"

    def close(self) -> None:
        self._session.close()

    def _request(self, method: str, table: str, **kwargs) -> requests.Response:
        url = f"{self._rest_url}/{table}"
        try:
            response = self._session.request(method, url, timeout=self._timeout, **kwargs)
        except requests.RequestException as exc:
            raise NetworkError(f"{method} {table} : {exc}") from exc

        if not response.ok:
            message = _error_message(response)
            logger.warning("Backend %s %s → %s", method, table, message)
            raise RemoteError(message, status_code=response.status_code)
        return response

    def _parse_rows(self, response: requests.Response, schema):
        try:
            payload = response.json()
            return [schema.model_validate(row) for row in payload]
        except (ValueError, TypeError, ValidationError) as exc:
            raise RemoteError(f"Réponse invalide du backend : {exc}") from exc

    def list_children(self) -> List[RosterChild]:
        """Roster complet trié par nom."""
        response = self._request(
            "GET",
            "children",
            params={"select": "id,full_name", "order": "full_name.asc"},
        )
        return self._parse_rows(response, RosterChild)

    def list_attendance(self, service_date: date) -> List[RemoteAttendanceRow]:
        """Présences enregistrées côté serveur pour une date de service."""
        response = self._request(
            "GET",
            "attendance",
            params={
                "select": "child_id,present,notes",
                "service_date": f"eq.{service_date.isoformat()}",
            },
        )
        return self._parse_rows(response, RemoteAttendanceRow)

    def upsert_attendance(self, rows: Sequence[BaseModel]) -> None:
        """
        Upsert en un seul appel. Une ligne existante pour (child_id, service_date)
        est écrasée, jamais dupliquée.
        """
        if not rows:
            return
        payload = [row.model_dump(mode="json", include=UPSERT_FIELDS) for row in rows]
        self._request(
            "POST",
            "attendance",
            params={"on_conflict": ATTENDANCE_CONFLICT_TARGET},
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
            json=payload,
        )
        logger.debug("Upsert distant de %d présence(s)", len(payload))
