"""SQLAlchemy models for the symptom/condition reference catalog.

The catalog is written only by catalog administration; the inference
pipeline reads it and never mutates it.
"""

from sqlalchemy import Boolean, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from triage.core.database import Base


class Symptom(Base):
    """A single observable complaint."""

    __tablename__ = "symptoms"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
    )
    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
    )

    def __repr__(self) -> str:
        return f"<Symptom(id={self.id}, name='{self.name}')>"


class Condition(Base):
    """A candidate diagnosis with its prevalence prior."""

    __tablename__ = "conditions"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
    )
    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
    )
    # Prior probability absent any symptom evidence, in [0, 1]
    prevalence: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.1,
    )
    is_rare: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    symptom_links = relationship(
        "ConditionSymptom",
        back_populates="condition",
        cascade="all, delete-orphan",
    )
    aliases = relationship(
        "ConditionAlias",
        back_populates="condition",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Condition(id={self.id}, name='{self.name}', prevalence={self.prevalence})>"


class ConditionSymptom(Base):
    """Weighted association between a condition and a symptom.

    Weight is a relative strength of evidence, not a probability.
    """

    __tablename__ = "condition_symptoms"
    __table_args__ = (
        UniqueConstraint("condition_id", "symptom_id", name="uq_condition_symptom"),
    )

    condition_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("conditions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    symptom_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("symptoms.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    weight: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=1.0,
    )

    condition = relationship("Condition", back_populates="symptom_links")
    symptom = relationship("Symptom")

    def __repr__(self) -> str:
        return f"<ConditionSymptom({self.condition_id} <- {self.symptom_id}, weight={self.weight})>"


class ConditionAlias(Base):
    """Free-text synonym for a condition, stored lower-cased."""

    __tablename__ = "condition_aliases"

    condition_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("conditions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    alias: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )

    condition = relationship("Condition", back_populates="aliases")

    def __repr__(self) -> str:
        return f"<ConditionAlias(condition_id={self.condition_id}, alias='{self.alias}')>"


class DrugRecommendation(Base):
    """Catalog drug suggestion for a condition.

    The row with the lowest priority (then earliest created) is the
    condition's primary recommendation.
    """

    __tablename__ = "drug_recommendations"

    condition_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("conditions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    drug_name: Mapped[str] = mapped_column(String(200), nullable=False)
    dosage: Mapped[str] = mapped_column(String(100), nullable=False)
    frequency: Mapped[str | None] = mapped_column(String(100), nullable=True)
    duration: Mapped[str | None] = mapped_column(String(50), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def __repr__(self) -> str:
        return f"<DrugRecommendation(condition_id={self.condition_id}, drug='{self.drug_name}')>"
