"""
Moniteur de connectivité.

L'état "en ligne" rapporté par la plateforme ne reflète que la couche lien :
check_connection() confirme par une vraie sonde HEAD, sans cache, vers le backend.

Les évènements online/offline arrivent soit de l'interface (navigateur),
soit du job planifié qui sonde le backend à intervalle régulier (refresh()).
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Callable, List, Optional

import requests

logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {"Cache-Control": "no-cache, no-store", "Pragma": "no-cache"}


class ConnectivityMonitor:
    def __init__(
        self,
        probe_url: str,
        timeout: float = 3.0,
        session: Optional[requests.Session] = None,
        initially_online: bool = True,
    ):
        self._probe_url = probe_url
        self._timeout = timeout
        self._session = session or requests.Session()
        self._online = initially_online
        self.last_online_at: Optional[datetime] = (
            datetime.now(timezone.utc) if initially_online else None
        )
        self._listeners: List[Callable[[], None]] = []
        self._lock = threading.Lock()

    @property
    def is_online(self) -> bool:
        return self._online

    def set_online(self, online: bool) -> None:
        """
        Évènement plateforme online/offline.
        Les listeners ne sont appelés que sur le front hors ligne → en ligne,
        jamais quand on était déjà en ligne.
        """
        with self._lock:
            was_online = self._online
            self._online = online
            reconnected = online and not was_online
            if reconnected:
                self.last_online_at = datetime.now(timezone.utc)
            listeners = list(self._listeners) if reconnected else []

        if reconnected:
            logger.info("Connexion rétablie, %d listener(s) notifié(s)", len(listeners))
        elif was_online and not online:
            logger.warning("Passage hors ligne")

        for callback in listeners:
            try:
                callback()
            except Exception as exc:
                logger.error("Listener de reconnexion en échec : %s", exc, exc_info=True)

    def probe(self) -> bool:
        """Requête HEAD sans cache vers la ressource de sonde. True si réponse 2xx/3xx."""
        try:
            response = self._session.head(
                self._probe_url,
                headers=NO_CACHE_HEADERS,
                timeout=self._timeout,
                allow_redirects=True,
            )
        except requests.RequestException as exc:
            logger.debug("Sonde de connectivité en échec : %s", exc)
            return False
        return response.ok

    def check_connection(self) -> bool:
        """False immédiatement si la plateforme est hors ligne, sinon résultat de la sonde."""
        if not self._online:
            return False
        return self.probe()

    def refresh(self) -> bool:
        """Sonde le backend et rapporte le résultat comme un évènement plateforme."""
        reachable = self.probe()
        self.set_online(reachable)
        return reachable

    def on_transition_to_online(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Enregistre un listener de reconnexion. Retourne la fonction de désinscription."""
        with self._lock:
            self._listeners.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unsubscribe

    def close(self) -> None:
        self._session.close()
