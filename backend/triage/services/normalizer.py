"""Free-text symptom normalization.

Turns a patient's free-text complaint into a ranked list of catalog symptom
ids by literal name matching, token overlap and condition alias expansion.
"""

import logging
import re

from triage.core.config import settings
from triage.core.errors import ValidationError
from triage.schemas.catalog import SymptomMatch
from triage.services.catalog import CatalogReader

logger = logging.getLogger(__name__)

# BCP 47-ish tag: "en", "en-US", "pt_BR", "zh-Hant-TW"
LOCALE_PATTERN = re.compile(r"^[A-Za-z]{2,3}([-_][A-Za-z0-9]{2,8})*$")

# Punctuation is dropped before token overlap, so "fever," still overlaps "fever"
_PUNCTUATION = re.compile(r"[^\w\s]")

# Input tokens this short never count toward an overlap
MIN_OVERLAP_TOKEN_LENGTH = 3


def validate_symptom_text(text: str, locale: str, max_chars: int | None = None) -> str:
    """Validate free-text input and return it stripped.

    Raises:
        ValidationError: If text is empty, oversized, or locale is malformed.
    """
    max_chars = max_chars or settings.max_input_chars
    if not isinstance(text, str) or not text.strip():
        raise ValidationError("Symptom text must not be empty")
    if len(text) > max_chars:
        raise ValidationError(
            f"Symptom text exceeds {max_chars} characters",
            details={"length": len(text), "max_length": max_chars},
        )
    if not isinstance(locale, str) or not LOCALE_PATTERN.match(locale):
        raise ValidationError(f"Invalid locale tag: {locale!r}")
    return text.strip()


def tokenize(text: str) -> list[str]:
    """Lower-case and whitespace-tokenize text, dropping punctuation."""
    return _PUNCTUATION.sub(" ", text.lower()).split()


def overlap_score(input_tokens: list[str], symptom_tokens: list[str]) -> float:
    """Token-level overlap between input text and a symptom name.

    A symptom token counts once if it is a substring of some input token or
    vice versa. The count is divided by the longer of the two token lists.
    """
    if not input_tokens or not symptom_tokens:
        return 0.0

    usable = [t for t in input_tokens if len(t) >= MIN_OVERLAP_TOKEN_LENGTH]
    match_count = 0
    for symptom_token in symptom_tokens:
        if any(symptom_token in token or token in symptom_token for token in usable):
            match_count += 1

    return match_count / max(len(input_tokens), len(symptom_tokens))


class SymptomNormalizer:
    """Maps free text onto catalog symptoms.

    The locale is validated and recorded but matching is currently
    English-only, against catalog names as stored.

    Usage:
        normalizer = SymptomNormalizer(DatabaseCatalogReader(session))
        matches = normalizer.normalize_symptoms("headache and fever", "en")
    """

    def __init__(
        self,
        reader: CatalogReader,
        min_score: float | None = None,
        alias_score: float | None = None,
        alias_boost: float | None = None,
        alias_top_symptoms: int | None = None,
        max_results: int | None = None,
    ) -> None:
        self._reader = reader
        self.min_score = settings.normalizer_min_score if min_score is None else min_score
        self.alias_score = settings.alias_evidence_score if alias_score is None else alias_score
        self.alias_boost = settings.alias_boost if alias_boost is None else alias_boost
        self.alias_top_symptoms = alias_top_symptoms or settings.alias_top_symptoms
        self.max_results = max_results or settings.max_normalized_symptoms

    def normalize_symptoms(self, text: str, locale: str = "en") -> list[SymptomMatch]:
        """Normalize free text into at most ``max_results`` symptom matches.

        Returns an empty list when nothing matches or the catalog is empty.

        Raises:
            ValidationError: Malformed or oversized input.
            DependencyError: Catalog lookups failed.
        """
        text = validate_symptom_text(text, locale)
        normalized = " ".join(text.lower().split())
        input_tokens = tokenize(normalized)

        scores: dict[str, float] = {}
        names: dict[str, str] = {}

        for symptom in self._reader.list_symptoms():
            name = symptom.name.lower().strip()
            if not name:
                continue
            if name in normalized:
                score = 1.0
            else:
                score = overlap_score(input_tokens, tokenize(name))
            if score > self.min_score:
                scores[symptom.id] = score
                names[symptom.id] = symptom.name

        self._apply_aliases(normalized, scores, names)

        ranked = sorted(scores.items(), key=lambda item: (-item[1], names[item[0]]))
        matches = [
            SymptomMatch(symptom_id=symptom_id, name=names[symptom_id], score=round(score, 3))
            for symptom_id, score in ranked[: self.max_results]
        ]

        logger.debug(
            f"Normalized {len(input_tokens)} tokens (locale={locale}) "
            f"to {len(matches)} symptoms"
        )
        return matches

    def _apply_aliases(
        self,
        normalized: str,
        scores: dict[str, float],
        names: dict[str, str],
    ) -> None:
        """Inject or boost the top symptoms of conditions named by alias.

        Symptoms already matched directly are boosted once, however many
        aliases point at them; new ones enter at the fixed alias score.
        """
        direct = set(scores)
        boosted: set[str] = set()

        for condition_id in self._reader.find_conditions_by_alias(normalized):
            for linked in self._reader.get_top_symptoms(condition_id, self.alias_top_symptoms):
                if linked.symptom_id in direct:
                    if linked.symptom_id not in boosted:
                        scores[linked.symptom_id] = min(1.0, scores[linked.symptom_id] + self.alias_boost)
                        boosted.add(linked.symptom_id)
                elif linked.symptom_id not in scores:
                    scores[linked.symptom_id] = self.alias_score
                    names[linked.symptom_id] = linked.name
