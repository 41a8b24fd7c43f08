"""
Modèle SQLAlchemy du roster mis en cache (store `cached-children`).
Le cache est remplacé en bloc à chaque récupération distante réussie, jamais patché.
"""

from sqlalchemy import BigInteger, Column, String

from churchkidz.database import Base


class CachedChild(Base):
    __tablename__ = "cached_children"

    id = Column(String(100), primary_key=True)
    full_name = Column(String(200), nullable=False)
    cached_at = Column(BigInteger, nullable=False)  # ms epoch du snapshot
