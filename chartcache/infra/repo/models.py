"""SQLAlchemy models for persistence layer (birth charts)."""

from __future__ import annotations

from sqlalchemy import JSON, Column, DateTime, Index, Integer, MetaData, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Classe de base pour tous les modèles SQLAlchemy."""

    metadata = MetaData()


class BirthChartORM(Base):
    """Modèle ORM d'un thème calculé, unique par clé d'identité."""

    __tablename__ = "birth_charts"

    id = Column(String(36), primary_key=True)
    input_hash = Column(String(64), nullable=False)
    params = Column(JSON, nullable=False)
    birth = Column(JSON, nullable=True)
    chart_data = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    access_count = Column(Integer, nullable=False, default=1)
    last_accessed_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("input_hash", name="uq_birth_charts_input_hash"),
        Index("ix_birth_charts_access", "access_count", "last_accessed_at"),
        Index("ix_birth_charts_created_at", "created_at"),
    )
