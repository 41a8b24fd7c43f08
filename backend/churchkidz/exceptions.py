"""
Erreurs typées de la capture de présences offline-first.

Les échecs partiels de synchronisation ne sont jamais levés :
ils sont rapportés dans SyncResult.errors.
"""


class StorageUnavailable(Exception):
    """La base locale ne peut pas s'ouvrir ou exécuter une transaction."""


class NoDataAvailable(Exception):
    """Hors ligne sans cache de roster frais : l'utilisateur doit être prévenu."""


class NetworkError(Exception):
    """Échec d'un appel distant compatible avec une perte de connexion (timeout, réseau, hors ligne)."""


class RemoteError(Exception):
    """Le backend a répondu, mais avec un statut d'erreur."""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class AttendanceValidationError(ValueError):
    """Saisie rejetée avant toute écriture (notes trop longues, date future...)."""
