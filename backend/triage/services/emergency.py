"""Red-flag detection for emergency presentations.

An emergency short-circuits the whole pipeline: no session is created and
the patient is told to seek immediate care.
"""

import threading
from collections.abc import Iterable
from dataclasses import dataclass, field


@dataclass(frozen=True)
class EmergencyPattern:
    """A combination of complaints that requires immediate care.

    A pattern fires when at least ``min(2, len(symptoms))`` of its
    symptoms appear in the presenting complaints.
    """

    code: str
    symptoms: tuple[str, ...]
    message: str
    severity: int = 5

    @property
    def required_matches(self) -> int:
        return min(2, len(self.symptoms))


EMERGENCY_PATTERNS: list[EmergencyPattern] = [
    EmergencyPattern(
        code="chest_pain_with_dyspnea",
        symptoms=("chest pain", "shortness of breath"),
        message=(
            "EMERGENCY: Chest pain with breathing difficulty requires immediate "
            "medical attention. Call 911 or go to ER immediately."
        ),
    ),
    EmergencyPattern(
        code="possible_meningitis",
        symptoms=("severe headache", "neck stiffness", "fever"),
        message="EMERGENCY: These symptoms may indicate meningitis. Seek immediate emergency care.",
    ),
    EmergencyPattern(
        code="thunderclap_headache_with_vision_changes",
        symptoms=("sudden severe headache", "vision changes"),
        message=(
            "EMERGENCY: Sudden severe headache with vision changes needs immediate "
            "evaluation. Go to ER now."
        ),
    ),
    EmergencyPattern(
        code="severe_respiratory_distress",
        symptoms=("difficulty breathing", "wheezing", "chest tightness"),
        message="URGENT: Severe breathing difficulty requires immediate medical attention.",
        severity=4,
    ),
    EmergencyPattern(
        code="abdominal_pain_with_hematemesis",
        symptoms=("severe abdominal pain", "vomiting blood"),
        message="EMERGENCY: These symptoms require immediate emergency care. Go to ER now.",
    ),
]


@dataclass
class EmergencyAssessment:
    """Outcome of a red-flag scan."""

    flags: list[str] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)
    severity: int = 0

    @property
    def is_emergency(self) -> bool:
        return bool(self.flags)


class EmergencyDetector:
    """Scans presenting complaints for red-flag combinations."""

    def __init__(self, patterns: list[EmergencyPattern] | None = None) -> None:
        self._patterns = patterns if patterns is not None else EMERGENCY_PATTERNS

    @property
    def patterns(self) -> list[EmergencyPattern]:
        return list(self._patterns)

    def detect(self, presenting: Iterable[str]) -> EmergencyAssessment:
        """Check complaints (raw text, symptom or condition names) for red flags.

        Each pattern symptom counts when it is a substring of any
        lower-cased complaint.
        """
        complaints = [c.lower() for c in presenting if c]
        assessment = EmergencyAssessment()

        for pattern in self._patterns:
            match_count = sum(
                1
                for symptom in pattern.symptoms
                if any(symptom in complaint for complaint in complaints)
            )
            if match_count >= pattern.required_matches:
                assessment.flags.append(pattern.code)
                assessment.messages.append(pattern.message)
                assessment.severity = max(assessment.severity, pattern.severity)

        return assessment


# Singleton instance and lock for thread safety
_detector: EmergencyDetector | None = None
_detector_lock = threading.Lock()


def get_emergency_detector() -> EmergencyDetector:
    """Get the singleton emergency detector instance."""
    global _detector
    if _detector is None:
        with _detector_lock:
            if _detector is None:
                _detector = EmergencyDetector()
    return _detector


def reset_emergency_detector() -> None:
    """Reset the singleton instance (for testing)."""
    global _detector
    with _detector_lock:
        _detector = None
