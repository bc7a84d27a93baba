"""
Submission record sets.

A submission is written once, atomically, as three related record sets keyed
by the same ``submission_uuid``:

- ``submissions``           one row, identifying metadata
- ``inbound_requirements``  a marker row plus one row per answered question
- ``inbound_data_grid``     one row per data element definition

``group_name`` is NULL when an element has no group. Any non-empty string is
a literal group label, including "ungrouped".
"""
from sqlalchemy import (
    Column, String, Boolean, DateTime, Integer, Text, ForeignKey, Index,
)
from sqlalchemy.orm import relationship
from datetime import datetime

from dataconfirm.core.database import Base
from dataconfirm.core.types import GUID, generate_uuid


class Submission(Base):
    """One completed questionnaire for a system/module/API"""
    __tablename__ = "submissions"

    submission_uuid = Column(GUID, primary_key=True, default=generate_uuid)
    agency = Column(String(255), nullable=True)
    system_name = Column(String(255), nullable=False, index=True)
    module_name = Column(String(255), nullable=False, index=True)
    api_name = Column(String(255), nullable=False)
    created_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    user = relationship("User", back_populates="submissions")
    answers = relationship(
        "RequirementAnswer",
        back_populates="submission",
        cascade="all, delete-orphan",
        order_by="RequirementAnswer.position",
    )
    grid_rows = relationship(
        "GridRow",
        back_populates="submission",
        cascade="all, delete-orphan",
        order_by="GridRow.position",
    )

    def __repr__(self):
        return f"<Submission {self.submission_uuid} {self.system_name}/{self.module_name}>"


class RequirementAnswer(Base):
    """One questionnaire answer, or the marker row for a submission"""
    __tablename__ = "inbound_requirements"

    id = Column(Integer, primary_key=True, autoincrement=True)
    submission_uuid = Column(
        GUID,
        ForeignKey("submissions.submission_uuid", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = Column(Integer, nullable=False, default=0)
    question_id = Column(String(100), nullable=False)
    question_text = Column(Text, nullable=True)
    answer = Column(Text, nullable=True)
    file_path = Column(String(500), nullable=True)
    is_marker = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    submission = relationship("Submission", back_populates="answers")

    def __repr__(self):
        return f"<RequirementAnswer {self.submission_uuid}:{self.question_id}>"


class GridRow(Base):
    """One data element definition attached to a submission"""
    __tablename__ = "inbound_data_grid"
    __table_args__ = (
        Index("ix_inbound_data_grid_element", "submission_uuid", "data_element", "group_name"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    submission_uuid = Column(
        GUID,
        ForeignKey("submissions.submission_uuid", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    requirement_id = Column(
        Integer,
        ForeignKey("inbound_requirements.id", ondelete="CASCADE"),
        nullable=True,
    )
    position = Column(Integer, nullable=False, default=0)
    data_element = Column(String(255), nullable=False)
    group_name = Column(String(255), nullable=True)
    field_name = Column(String(255), nullable=True)  # "nama"
    data_type = Column(String(100), nullable=True)   # "jenis"
    size = Column(String(50), nullable=True)         # "saiz"
    nullable = Column(String(20), nullable=True)
    rules = Column(Text, nullable=True)

    submission = relationship("Submission", back_populates="grid_rows")

    def as_tuple(self):
        """Normalised comparison tuple"""
        return (
            self.data_element,
            self.group_name,
            self.field_name,
            self.data_type,
            self.size,
            self.nullable,
            self.rules,
        )

    def __repr__(self):
        return f"<GridRow {self.data_element} [{self.group_name}]>"


__all__ = ["Submission", "RequirementAnswer", "GridRow"]
