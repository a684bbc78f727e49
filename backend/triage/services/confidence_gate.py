"""Three-tier confidence gate over scored conditions.

Routing on the highest RankScore:

    highest >= high threshold          -> proceed_with_ai_recommendation
    min threshold <= highest < high    -> proceed_with_doctor_review
    highest < min threshold            -> consult_doctor_directly

The middle tier keeps weak but plausible output inside clinician review:
the suggestion is stored but withheld from the patient until a doctor
acts on the session. Emergency detection runs independently of the tier.
"""

import threading
from collections.abc import Iterable

from triage.core.config import settings
from triage.schemas.base import RecommendedAction
from triage.schemas.catalog import ScoredCondition
from triage.schemas.diagnosis import ConfidenceEvaluation, ConfidenceStats
from triage.services.emergency import EmergencyDetector, get_emergency_detector

NO_MATCHES_FLAG = "no_matching_conditions"
RARE_CONDITION_FLAG = "rare_condition_ranked"


class ConfidenceGate:
    """Maps a scored list to a recommended action and emergency flag.

    Stateless: the same input always yields the same evaluation.
    """

    def __init__(
        self,
        high_threshold: float | None = None,
        min_threshold: float | None = None,
        detector: EmergencyDetector | None = None,
    ) -> None:
        self.high_threshold = (
            settings.high_confidence_threshold if high_threshold is None else high_threshold
        )
        self.min_threshold = (
            settings.min_confidence_threshold if min_threshold is None else min_threshold
        )
        if not 0.0 <= self.min_threshold <= self.high_threshold <= 1.0:
            raise ValueError("Thresholds must satisfy 0 <= min <= high <= 1")
        self._detector = detector or get_emergency_detector()

    def with_threshold(self, high_threshold: float | None) -> "ConfidenceGate":
        """Gate for one request with its own high threshold.

        The min threshold drops to the override when the override is lower,
        so a loose request never leaves an empty review tier above it.
        """
        if high_threshold is None or high_threshold == self.high_threshold:
            return self
        return ConfidenceGate(
            high_threshold=high_threshold,
            min_threshold=min(self.min_threshold, high_threshold),
            detector=self._detector,
        )

    def route(self, highest: float) -> RecommendedAction:
        """Pick the tier for a highest score."""
        if highest >= self.high_threshold:
            return RecommendedAction.PROCEED_WITH_AI_RECOMMENDATION
        if highest >= self.min_threshold:
            return RecommendedAction.PROCEED_WITH_DOCTOR_REVIEW
        return RecommendedAction.CONSULT_DOCTOR_DIRECTLY

    def evaluate_confidence(
        self,
        results: list[ScoredCondition],
        presenting_symptoms: Iterable[str] = (),
    ) -> ConfidenceEvaluation:
        """Evaluate scored conditions against the confidence policy.

        Args:
            results: Ranked scorer output; may be empty.
            presenting_symptoms: Raw complaint text and matched symptom
                names, scanned for red flags together with condition names.
        """
        probabilities = [float(r.probability) for r in results]
        highest = round(max(probabilities), 3) if probabilities else 0.0
        average = round(sum(probabilities) / len(probabilities), 3) if probabilities else 0.0

        action = self.route(highest)
        assessment = self._detector.detect([*presenting_symptoms, *(r.name for r in results)])

        flags = list(assessment.flags)
        if not results:
            flags.append(NO_MATCHES_FLAG)
        elif results[0].is_rare:
            flags.append(RARE_CONDITION_FLAG)

        return ConfidenceEvaluation(
            passed=action != RecommendedAction.CONSULT_DOCTOR_DIRECTLY,
            confidence=ConfidenceStats(
                highest=highest,
                average=average,
                threshold=self.high_threshold,
            ),
            recommended_action=action,
            emergency=assessment.is_emergency,
            flags=flags,
        )


# Singleton instance and lock for thread safety
_gate: ConfidenceGate | None = None
_gate_lock = threading.Lock()


def get_confidence_gate() -> ConfidenceGate:
    """Get the singleton confidence gate built from settings."""
    global _gate
    if _gate is None:
        with _gate_lock:
            if _gate is None:
                _gate = ConfidenceGate()
    return _gate


def reset_confidence_gate() -> None:
    """Reset the singleton instance (for testing)."""
    global _gate
    with _gate_lock:
        _gate = None
