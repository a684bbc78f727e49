"""Symptom catalog, normalizer and scorer schemas."""

from pydantic import BaseModel, Field

from triage.schemas.base import RankScore


class SymptomMatch(BaseModel):
    """A catalog symptom matched from free text."""

    symptom_id: str = Field(..., description="Catalog symptom identifier")
    name: str = Field(..., description="Catalog symptom name")
    score: float = Field(..., gt=0.0, le=1.0, description="Match strength")


class NormalizeRequest(BaseModel):
    """Request body for free-text symptom normalization."""

    text: str = Field(..., description="Free-text symptom description")
    locale: str = Field(default="en", description="Locale tag of the text, e.g. en-US")


class NormalizeResponse(BaseModel):
    """Ranked symptom matches (at most 10)."""

    symptoms: list[SymptomMatch] = Field(default_factory=list)


class DrugSuggestion(BaseModel):
    """Primary drug recommendation attached to a scored condition.

    When the catalog has no recommendation for a condition, a placeholder
    asking the patient to consult a clinician is attached instead.
    """

    drug_name: str
    dosage: str
    frequency: str | None = None
    duration: str | None = None
    notes: str | None = None
    warnings: list[str] = Field(default_factory=list)
    is_placeholder: bool = False


class ScoredCondition(BaseModel):
    """One ranked condition from the scorer.

    ``probability`` is a RankScore: a ranking heuristic, not a calibrated
    probability. Do not sum or renormalize it across conditions.
    """

    condition_id: str
    name: str
    description: str = ""
    probability: RankScore = Field(..., ge=0.0, description="Ranking score (not a posterior)")
    prevalence: float = Field(..., ge=0.0, le=1.0)
    is_rare: bool = False
    matched_symptoms: int = Field(default=0, ge=0)
    drug_recommendation: DrugSuggestion | None = None


class ScoreRequest(BaseModel):
    """Request body for condition scoring."""

    symptom_ids: list[str] = Field(..., description="Matched catalog symptom ids")
    age: int | None = Field(None, ge=0, le=150, description="Patient age in years")
    gender: str | None = Field(None, description="Accepted but not used by the current policy")


class ScoringResult(BaseModel):
    """Top ranked conditions plus an explicit empty-result signal."""

    results: list[ScoredCondition] = Field(default_factory=list)
    message: str | None = None

    @property
    def has_matches(self) -> bool:
        return bool(self.results)


# Catalog administration


class SymptomCreate(BaseModel):
    """Schema for adding a catalog symptom."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str = Field(default="", max_length=2000)


class ConditionCreate(BaseModel):
    """Schema for adding a catalog condition."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str = Field(default="", max_length=2000)
    prevalence: float = Field(..., ge=0.0, le=1.0, description="Prior absent any evidence")
    is_rare: bool = False


class ConditionSymptomCreate(BaseModel):
    """Schema for linking a symptom to a condition."""

    symptom_id: str
    weight: float = Field(..., gt=0.0, description="Relative evidentiary strength")


class ConditionAliasCreate(BaseModel):
    """Schema for adding a free-text alias to a condition."""

    alias: str = Field(..., min_length=2, max_length=255)


class DrugRecommendationCreate(BaseModel):
    """Schema for adding a drug recommendation to a condition."""

    drug_name: str = Field(..., min_length=1, max_length=200)
    dosage: str = Field(..., min_length=1, max_length=100)
    frequency: str | None = Field(None, max_length=100)
    duration: str | None = Field(None, max_length=50)
    notes: str | None = Field(None, max_length=500)
    priority: int = Field(default=0, ge=0, description="Lowest priority is the primary recommendation")


class CatalogRecordCreated(BaseModel):
    """Identifier of a newly written catalog record."""

    id: str
