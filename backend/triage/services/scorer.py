"""Condition scoring from matched symptoms.

The score is a ranking heuristic (RankScore), not a Bayesian posterior:

    likelihood  = min(1, total_weight / |input symptom ids|)
    probability = likelihood * prevalence * age_adjustment

Evidence strength is normalized by how many symptoms the patient supplied,
not by how many the condition could explain, so a condition matching 2 of
2 inputs scores the same as one matching 2 of 8. This is a known
approximation. Scores are never renormalized across conditions.
"""

import logging
from dataclasses import dataclass

from triage.core.config import settings
from triage.core.errors import ValidationError
from triage.schemas.base import RankScore
from triage.schemas.catalog import DrugSuggestion, ScoredCondition, ScoringResult
from triage.services.catalog import CatalogReader, ConditionLink

logger = logging.getLogger(__name__)

NO_MATCHES_MESSAGE = "No matching conditions found"

# Age multipliers applied to every condition
PEDIATRIC_AGE = 18
GERIATRIC_AGE = 65
PEDIATRIC_ADJUSTMENT = 0.8
GERIATRIC_ADJUSTMENT = 1.2
MAX_AGE = 150

BASE_DRUG_WARNING = "Consult healthcare provider before use"

# Drug-name keywords -> warnings shown alongside a suggestion
DRUG_WARNING_RULES: list[tuple[tuple[str, ...], list[str]]] = [
    (
        ("acetaminophen", "paracetamol"),
        [
            "Do not exceed recommended dose",
            "Avoid alcohol consumption",
            "Risk of liver damage with overdose",
        ],
    ),
    (
        ("ibuprofen", "naproxen"),
        [
            "Take with food to reduce stomach irritation",
            "May increase risk of cardiovascular events",
            "Avoid if you have kidney problems",
        ],
    ),
    (
        ("aspirin",),
        ["Take with food", "May increase bleeding risk", "Not recommended for children under 16"],
    ),
    (
        ("antibiotic", "amoxicillin", "azithromycin"),
        [
            "Complete the full course as prescribed",
            "May cause digestive upset",
            "Inform doctor of any allergies",
        ],
    ),
    (
        ("steroid", "prednisone"),
        ["Do not stop suddenly", "May suppress immune system", "Monitor blood sugar levels"],
    ),
]


def placeholder_drug() -> DrugSuggestion:
    """Suggestion attached when the catalog has no drug for a condition."""
    return DrugSuggestion(
        drug_name="Consult healthcare provider",
        dosage="As prescribed",
        notes="Follow medical advice",
        warnings=[BASE_DRUG_WARNING],
        is_placeholder=True,
    )


def drug_warnings(drug_name: str) -> list[str]:
    """Infer patient-facing warnings from a drug's name."""
    lowered = drug_name.lower()
    warnings = [BASE_DRUG_WARNING]
    for keywords, rule_warnings in DRUG_WARNING_RULES:
        if any(keyword in lowered for keyword in keywords):
            warnings.extend(rule_warnings)
    return warnings


def age_adjustment(age: int | None) -> float:
    """Return the demographic multiplier for an age in years."""
    if age is None:
        return 1.0
    if age < PEDIATRIC_AGE:
        return PEDIATRIC_ADJUSTMENT
    if age > GERIATRIC_AGE:
        return GERIATRIC_ADJUSTMENT
    return 1.0


@dataclass
class _Evidence:
    link: ConditionLink
    total_weight: float = 0.0
    matched: int = 0


class ConditionScorer:
    """Ranks candidate conditions for a set of matched symptoms.

    ``gender`` is accepted and logged but applies no adjustment; no rule
    for it exists in the current policy.
    """

    def __init__(
        self,
        reader: CatalogReader,
        top_n: int | None = None,
        max_symptom_ids: int | None = None,
    ) -> None:
        self._reader = reader
        self.top_n = top_n or settings.top_conditions
        self.max_symptom_ids = max_symptom_ids or settings.max_symptom_ids

    def _validate(self, symptom_ids: list[str], age: int | None) -> list[str]:
        unique_ids = list(dict.fromkeys(sid for sid in symptom_ids if sid))
        if not unique_ids:
            raise ValidationError("At least one symptom id is required")
        if len(unique_ids) > self.max_symptom_ids:
            raise ValidationError(
                f"At most {self.max_symptom_ids} symptom ids may be scored",
                details={"count": len(unique_ids)},
            )
        if age is not None and not 0 <= age <= MAX_AGE:
            raise ValidationError(f"Age must be between 0 and {MAX_AGE}")
        return unique_ids

    def score_conditions(
        self,
        symptom_ids: list[str],
        age: int | None = None,
        gender: str | None = None,
    ) -> ScoringResult:
        """Score and rank conditions explaining the given symptoms.

        Returns the top conditions with one drug suggestion each, or an
        empty result carrying NO_MATCHES_MESSAGE.

        Raises:
            ValidationError: Empty or oversized id set, or invalid age.
            DependencyError: Catalog lookups failed.
        """
        unique_ids = self._validate(symptom_ids, age)

        evidence: dict[str, _Evidence] = {}
        for link in self._reader.get_condition_links(unique_ids):
            entry = evidence.setdefault(link.condition_id, _Evidence(link=link))
            entry.total_weight += link.weight if link.weight is not None else 1.0
            entry.matched += 1

        if not evidence:
            logger.info(f"No conditions linked to {len(unique_ids)} symptoms")
            return ScoringResult(results=[], message=NO_MATCHES_MESSAGE)

        adjustment = age_adjustment(age)
        if gender:
            logger.debug(f"Gender '{gender}' supplied; no gender adjustment applies")

        scored: list[ScoredCondition] = []
        for condition_id, entry in evidence.items():
            prevalence = entry.link.prevalence if entry.link.prevalence is not None else 0.1
            likelihood = min(1.0, entry.total_weight / len(unique_ids))
            probability = RankScore(round(likelihood * prevalence * adjustment, 3))
            scored.append(
                ScoredCondition(
                    condition_id=condition_id,
                    name=entry.link.condition_name,
                    description=entry.link.description,
                    probability=probability,
                    prevalence=prevalence,
                    is_rare=entry.link.is_rare,
                    matched_symptoms=entry.matched,
                )
            )

        scored.sort(key=lambda c: (-c.probability, c.name))
        top = scored[: self.top_n]
        for condition in top:
            condition.drug_recommendation = self._drug_for(condition.condition_id)

        logger.info(
            f"Scored {len(evidence)} conditions from {len(unique_ids)} symptoms; "
            f"top={top[0].name} ({top[0].probability})"
        )
        return ScoringResult(results=top)

    def _drug_for(self, condition_id: str) -> DrugSuggestion:
        drug = self._reader.get_primary_drug(condition_id)
        if drug is None:
            return placeholder_drug()
        return DrugSuggestion(
            drug_name=drug.drug_name,
            dosage=drug.dosage,
            frequency=drug.frequency,
            duration=drug.duration,
            notes=drug.notes,
            warnings=drug_warnings(drug.drug_name),
        )
