"""
Paires clé/valeur de l'état de synchronisation (store `sync-state`).
Ex. : last_sync_attempt.
"""

from sqlalchemy import Column, String

from churchkidz.database import Base


class SyncState(Base):
    __tablename__ = "sync_state"

    key = Column(String(100), primary_key=True)
    value = Column(String(500), nullable=True)
