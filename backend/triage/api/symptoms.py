"""Stateless triage endpoints: normalize, score, evaluate."""

import logging

from fastapi import APIRouter

from triage.api.deps import Catalog
from triage.api.errors import to_http_exception
from triage.core.errors import TriageError
from triage.core.security import RequireAuth
from triage.schemas.catalog import NormalizeRequest, NormalizeResponse, ScoreRequest, ScoringResult
from triage.schemas.diagnosis import ConfidenceEvaluation, EvaluateRequest
from triage.services.confidence_gate import get_confidence_gate
from triage.services.normalizer import SymptomNormalizer
from triage.services.scorer import ConditionScorer

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Triage"])


@router.post(
    "/symptoms/normalize",
    response_model=NormalizeResponse,
    summary="Normalize free-text symptoms",
    description="Match free text against the symptom catalog, returning at most 10 ranked symptoms.",
)
def normalize_symptoms(
    request: NormalizeRequest,
    reader: Catalog,
    _auth: RequireAuth,
) -> NormalizeResponse:
    try:
        symptoms = SymptomNormalizer(reader).normalize_symptoms(request.text, request.locale)
    except TriageError as e:
        raise to_http_exception(e) from e
    return NormalizeResponse(symptoms=symptoms)


@router.post(
    "/conditions/score",
    response_model=ScoringResult,
    summary="Score conditions",
    description="Rank the top conditions for a set of catalog symptom ids.",
)
def score_conditions(
    request: ScoreRequest,
    reader: Catalog,
    _auth: RequireAuth,
) -> ScoringResult:
    try:
        return ConditionScorer(reader).score_conditions(
            request.symptom_ids,
            age=request.age,
            gender=request.gender,
        )
    except TriageError as e:
        raise to_http_exception(e) from e


@router.post(
    "/confidence/evaluate",
    response_model=ConfidenceEvaluation,
    summary="Evaluate confidence",
    description="Apply the three-tier confidence policy and red-flag scan to scored conditions.",
)
def evaluate_confidence(request: EvaluateRequest, _auth: RequireAuth) -> ConfidenceEvaluation:
    gate = get_confidence_gate().with_threshold(request.confidence_threshold)
    return gate.evaluate_confidence(request.results, request.presenting_symptoms)
