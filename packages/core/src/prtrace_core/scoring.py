"""The fixed seven-dimension scoring rubric and its validator.

prtrace never computes a score itself. The LLM proposes one and this module
decides whether it is acceptable; every rejection names the violated rule.
"""

from __future__ import annotations

import math
from numbers import Real

from prtrace_core.errors import ScoreValidationError
from prtrace_core.models import CONFIDENCE_LEVELS, ScoreBreakdownItem, ScoreEvidence, ScoreResult

SCORE_DIMENSIONS = (
    "Correctness",
    "Maintainability",
    "Reliability",
    "Security",
    "Performance",
    "Test Quality",
    "Traceability",
)


def round_half_up(value: float) -> int:
    # Halves round up (82.5 -> 83), unlike round().
    return math.floor(value + 0.5)


def clamp_score(value: float) -> int:
    return max(0, min(100, round_half_up(value)))


def _is_score(value) -> bool:
    # bool is an int subclass; True must not pass as a score of 1.
    return isinstance(value, Real) and not isinstance(value, bool) and 0 <= value <= 100


def _validate_item(item, seen: set[str], default_weights: dict[str, float]) -> ScoreBreakdownItem:
    if not isinstance(item, dict):
        raise ScoreValidationError(f"Invalid LLM score: breakdown entry must be an object, got {item!r}.")

    dimension = item.get("dimension")
    if dimension not in SCORE_DIMENSIONS:
        raise ScoreValidationError(f"Invalid LLM score dimension: {dimension}")
    if dimension in seen:
        raise ScoreValidationError(f"Duplicated LLM score dimension: {dimension}")
    seen.add(dimension)

    score = item.get("score")
    if not _is_score(score):
        raise ScoreValidationError(f"Invalid LLM score value for {dimension}: {score!r}")

    rationale = item.get("rationale")
    if not isinstance(rationale, str) or not rationale.strip():
        raise ScoreValidationError(f"Invalid LLM rationale for {dimension}")

    weight = item.get("weight")
    if not isinstance(weight, Real) or isinstance(weight, bool):
        weight = default_weights.get(dimension, 0.0)

    return ScoreBreakdownItem(
        dimension=dimension,
        score=round_half_up(score),
        weight=weight,
        rationale=rationale.strip(),
    )


def _normalize_evidence(raw) -> list[ScoreEvidence]:
    if not isinstance(raw, list):
        return []
    evidence = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        file = item.get("file")
        snippet = item.get("snippet")
        evidence.append(
            ScoreEvidence(
                file=file if isinstance(file, str) else None,
                snippet=snippet if isinstance(snippet, str) else None,
            )
        )
    return evidence


def validate_score_payload(payload, default_weights: dict[str, float]) -> ScoreResult:
    """Validate a parsed LLM score payload and normalize it into a ScoreResult.

    Raises ScoreValidationError on the first violated rule.
    """
    if not isinstance(payload, dict):
        raise ScoreValidationError("Invalid LLM score: payload must be a JSON object.")

    overall = payload.get("overallScore")
    if not _is_score(overall):
        raise ScoreValidationError("Invalid LLM score: overallScore must be a number in [0,100].")

    breakdown = payload.get("scoreBreakdown")
    if not isinstance(breakdown, list) or not breakdown:
        raise ScoreValidationError("Invalid LLM score: scoreBreakdown is required.")

    confidence = payload.get("confidence")
    if confidence not in CONFIDENCE_LEVELS:
        raise ScoreValidationError("Invalid LLM score: confidence must be low/medium/high.")

    seen: set[str] = set()
    items = [_validate_item(item, seen, default_weights) for item in breakdown]

    missing = [d for d in SCORE_DIMENSIONS if d not in seen]
    if missing:
        raise ScoreValidationError(
            f"Invalid LLM score: all {len(SCORE_DIMENSIONS)} dimensions must be present; "
            f"missing dimension(s): {', '.join(missing)}"
        )

    return ScoreResult(
        overall_score=round_half_up(overall),
        score_breakdown=items,
        evidence=_normalize_evidence(payload.get("evidence")),
        confidence=confidence,
    )


def weighted_overall_score(items: list[ScoreBreakdownItem]) -> int:
    """Weighted mean of the breakdown, for display next to the LLM's own overall score."""
    weight_sum = sum(item.weight for item in items)
    if not weight_sum:
        return 0
    return clamp_score(sum(item.score * item.weight for item in items) / weight_sum)
