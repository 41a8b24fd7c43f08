"""
Schéma Pydantic de l'état de connectivité.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class ConnectivityStatus(BaseModel):
    is_online: bool                     # état rapporté par la plateforme
    reachable: bool                     # résultat de la sonde réelle vers le backend
    last_online_at: Optional[datetime]
