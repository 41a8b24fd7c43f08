"""
Moteur SQLite local de l'appareil.
Une seule base par appareil : elle n'est jamais partagée entre appareils.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()


def create_local_engine(url: str) -> Engine:
    """
    Crée le moteur SQLAlchemy de la base locale.
    Une base en mémoire (tests) doit partager une connexion unique entre sessions.
    """
    if url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(url, connect_args={"check_same_thread": False})


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
