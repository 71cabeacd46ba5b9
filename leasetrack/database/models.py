"""
SQLAlchemy Models for the Lease Tracker

Every user-sortable list is a child table of a project. Display order is
carried by order_key (fractional, string comparison); order_index is the
legacy dense position kept for older rows and the dense reorder path.

Within one project's list, order_key values are distinct and are the only
thing consulted for display order.
"""

import enum
from datetime import datetime
from typing import Any, Dict
from uuid import uuid4

from sqlalchemy import (
    Column, String, Integer, Date, DateTime, Text,
    ForeignKey, Enum, Index, JSON, Uuid,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


# =============================================================================
# ENUMS
# =============================================================================

class RoadmapStatus(enum.Enum):
    """Progress of a roadmap step"""
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class PropertyStatus(enum.Enum):
    """Where a property of interest stands with the client"""
    NEW = "new"
    ACTIVE = "active"
    PENDING = "pending"
    DECLINED = "declined"


# =============================================================================
# CORE TABLES
# =============================================================================

class Project(Base):
    """A client deal tracked by a broker"""
    __tablename__ = "projects"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    title = Column(String(255), nullable=False)
    status = Column(String(50), default="active")
    company_name = Column(String(255), nullable=True)

    # List of {id, type, title, order_key} cards
    dashboard_card_order = Column(JSON, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    roadmap_steps = relationship("RoadmapStep", back_populates="project", cascade="all, delete-orphan")
    properties = relationship("Property", back_populates="project", cascade="all, delete-orphan")
    documents = relationship("ProjectDocument", back_populates="project", cascade="all, delete-orphan")


# =============================================================================
# ORDERED LISTS
# =============================================================================

class RoadmapStep(Base):
    """One step of a project's roadmap"""
    __tablename__ = "project_roadmap"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    project_id = Column(Uuid(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(Enum(RoadmapStatus), default=RoadmapStatus.PENDING)
    expected_date = Column(Date, nullable=True)
    completed_date = Column(Date, nullable=True)

    # Ordering
    order_key = Column(String(255), nullable=False)
    order_index = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    project = relationship("Project", back_populates="roadmap_steps")

    __table_args__ = (
        Index("idx_project_roadmap_order", "project_id", "order_key"),
    )


class Property(Base):
    """A property of interest for a project"""
    __tablename__ = "properties"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    project_id = Column(Uuid(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)

    name = Column(String(255), nullable=False)
    size = Column(String(100), nullable=True)
    rent = Column(String(100), nullable=True)
    availability = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    status = Column(Enum(PropertyStatus), default=PropertyStatus.NEW)
    decline_reason = Column(Text, nullable=True)

    # Ordering
    order_key = Column(String(255), nullable=False)
    order_index = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    project = relationship("Project", back_populates="properties")

    __table_args__ = (
        Index("idx_properties_order", "project_id", "order_key"),
    )


class ProjectDocument(Base):
    """A document attached to a project"""
    __tablename__ = "project_documents"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    project_id = Column(Uuid(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)

    name = Column(String(255), nullable=False)
    file_type = Column(String(50), nullable=False, default="pdf")
    file_url = Column(Text, nullable=True)

    # Ordering
    order_key = Column(String(255), nullable=False)
    order_index = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    project = relationship("Project", back_populates="documents")

    __table_args__ = (
        Index("idx_project_documents_order", "project_id", "order_key"),
    )


# Collection name -> model for every user-sortable list
ORDERED_COLLECTIONS = {
    "project_roadmap": RoadmapStep,
    "properties": Property,
    "project_documents": ProjectDocument,
}

# Columns managed by the ordering layer, never part of an item payload
_NON_PAYLOAD_COLUMNS = {"id", "project_id", "order_key", "order_index", "created_at", "updated_at"}


def payload_columns(model) -> Dict[str, Column]:
    """User-facing columns of an ordered model, by attribute name."""
    return {
        column.key: column
        for column in model.__table__.columns
        if column.key not in _NON_PAYLOAD_COLUMNS
    }


def row_payload(row: Base) -> Dict[str, Any]:
    """Plain dict of a row's user-facing columns (enums as their values)."""
    payload = {}
    for column in payload_columns(type(row)).values():
        value = getattr(row, column.key)
        if isinstance(value, enum.Enum):
            value = value.value
        payload[column.key] = value
    return payload
