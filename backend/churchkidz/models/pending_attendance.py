"""
Modèle SQLAlchemy des présences en attente de synchronisation (store `pending-attendance`).

Architecture offline-first :
- id          : `${child_id}_${service_date}` → une seule édition en attente par enfant et par date
- created_at  : horodatage local de la capture (ms epoch, croissant par insertion)
- synced      : passe à True uniquement après confirmation du backend, puis supprimé au prune suivant
"""

from sqlalchemy import BigInteger, Boolean, Column, Date, Index, String, Text

from churchkidz.database import Base


class PendingAttendance(Base):
    __tablename__ = "pending_attendance"

    id = Column(String(200), primary_key=True)
    child_id = Column(String(100), nullable=False)
    service_date = Column(Date, nullable=False)
    present = Column(Boolean, nullable=False)
    notes = Column(Text, nullable=False, default="")
    recorded_by = Column(String(100), nullable=False)
    created_at = Column(BigInteger, nullable=False)
    synced = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("ix_pending_attendance_synced", "synced"),
        Index("ix_pending_attendance_service_date", "service_date"),
    )
