"""SQLAlchemy models for the EUROWATCH sitting store."""
from __future__ import annotations

from datetime import date
from typing import List, Optional

from sqlalchemy import Date, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Declarative SQLAlchemy base class."""


class SittingModel(Base):
    """One plenary day."""

    __tablename__ = "sittings"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    activity_date: Mapped[date] = mapped_column(Date, unique=True, index=True)
    label: Mapped[str] = mapped_column(String(512))
    raw_document: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    source_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    ingested_at: Mapped[int] = mapped_column(Integer)

    speeches: Mapped[List["IndividualSpeechModel"]] = relationship(
        back_populates="sitting", cascade="all, delete-orphan", passive_deletes=True
    )


class IndividualSpeechModel(Base):
    """One contiguous utterance within a sitting."""

    __tablename__ = "individual_speeches"
    __table_args__ = (UniqueConstraint("sitting_id", "speech_order", name="uq_speech_order"),)

    id: Mapped[str] = mapped_column(String(48), primary_key=True)
    sitting_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("sittings.id", ondelete="CASCADE"), index=True
    )
    speech_order: Mapped[int] = mapped_column(Integer)
    speaker_name: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    speaker_role: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    political_group_raw: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    political_group_std: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    political_group_kind: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    language: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    topic: Mapped[Optional[str]] = mapped_column(Text, nullable=True, index=True)
    speech_content: Mapped[str] = mapped_column(Text)
    mep_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("meps.id"), nullable=True)

    macro_topic: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    macro_specific_focus: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    macro_confidence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    macro_classified_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    macro_classified_at: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    macro_classification_cost: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    sitting: Mapped[SittingModel] = relationship(back_populates="speeches")


class TopicClassificationModel(Base):
    """Classification of one distinct trimmed topic string."""

    __tablename__ = "topic_classifications"

    topic_text: Mapped[str] = mapped_column(Text, primary_key=True)
    main_topic: Mapped[str] = mapped_column(String(128))
    specific_focus: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    confidence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    rationale: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    classified_by: Mapped[str] = mapped_column(String(128))
    classified_at: Mapped[int] = mapped_column(Integer)
    cost: Mapped[float] = mapped_column(Float, default=0.0)


class MEPModel(Base):
    """A Member of the European Parliament."""

    __tablename__ = "meps"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    label: Mapped[str] = mapped_column(String(256))
    normalized_name: Mapped[str] = mapped_column(String(256), index=True)
    family_name: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    normalized_family_name: Mapped[Optional[str]] = mapped_column(String(128), nullable=True, index=True)
    political_group: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    country: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)

    terms: Mapped[List["MEPTermModel"]] = relationship(
        back_populates="mep", cascade="all, delete-orphan", order_by="MEPTermModel.start_date"
    )


class MEPTermModel(Base):
    """A date range during which an MEP held a seat."""

    __tablename__ = "mep_terms"
    __table_args__ = (UniqueConstraint("mep_id", "term_number", "start_date", name="uq_mep_term"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    mep_id: Mapped[int] = mapped_column(Integer, ForeignKey("meps.id", ondelete="CASCADE"), index=True)
    term_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    start_date: Mapped[date] = mapped_column(Date)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    mep: Mapped[MEPModel] = relationship(back_populates="terms")


__all__ = [
    "Base",
    "IndividualSpeechModel",
    "MEPModel",
    "MEPTermModel",
    "SittingModel",
    "TopicClassificationModel",
]
