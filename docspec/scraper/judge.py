"""
Docspec Scraper - Specification Judge

Scores a synthesized specification and recommends accept or retry.

The score combines a deterministic structural check with an oracle rubric
score. The deterministic check caps the oracle score, so a lenient oracle
cannot accept a document that is structurally broken or missing endpoints:

    structurally invalid        -> score <= 30
    operations < 80% expected   -> score <= 50
    score < 70 or invalid       -> recommendation "retry"

When the oracle is unavailable the deterministic check alone scores the
document.
"""
from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from typing import Any, List, Optional, Union

from docspec.core.errors import JudgeError, OracleError, ParseError
from docspec.core.metrics import record_judge_score
from docspec.llm.prompts import JUDGE_SYSTEM_PROMPT, JUDGE_USER_PROMPT

from .models import HTTP_METHODS, JudgeResult, Recommendation, Specification
from .repair import parse_json_response

logger = logging.getLogger(__name__)

PREVIEW_CHARS = 5000
JUDGE_TIMEOUT_SECONDS = 30.0
COVERAGE_THRESHOLD = 0.8
INVALID_SCORE_CAP = 30
SHORTFALL_SCORE_CAP = 50
ACCEPT_THRESHOLD = 70

# Deterministic fallback scores
FALLBACK_INVALID = 20
FALLBACK_SHORTFALL = 40
FALLBACK_COMPLETE = 80
FALLBACK_NEUTRAL = 50


@dataclass
class StructuralCheck:
    is_valid: bool
    operation_count: int
    problems: List[str]


def check_structure(specification: Union[Specification, str, None]) -> StructuralCheck:
    """
    Deterministic structural check.

    Valid iff the document parses to an object with openapi, info and a
    non-empty paths mapping. Operations are counted as path + HTTP method
    pairs.
    """
    document: Any = specification
    if isinstance(specification, str):
        try:
            document = json.loads(specification)
        except ValueError:
            return StructuralCheck(False, 0, ["Specification is not valid JSON"])

    if not isinstance(document, dict):
        return StructuralCheck(False, 0, ["Specification is not a JSON object"])

    problems = []
    for key in ("openapi", "info"):
        if key not in document:
            problems.append(f"Missing '{key}' field")

    paths = document.get("paths")
    operations = 0
    if not isinstance(paths, dict) or not paths:
        problems.append("No paths defined")
    else:
        allowed = {m.lower() for m in HTTP_METHODS}
        for item in paths.values():
            if isinstance(item, dict):
                operations += sum(1 for method in item if str(method).lower() in allowed)

    return StructuralCheck(not problems, operations, problems)


def _has_shortfall(operation_count: int, expected_count: int) -> bool:
    return expected_count > 0 and operation_count < COVERAGE_THRESHOLD * expected_count


def _recommend(score: int, is_valid: bool, suggested: Optional[Recommendation] = None) -> Recommendation:
    if score < ACCEPT_THRESHOLD or not is_valid:
        return Recommendation.RETRY
    return suggested or Recommendation.ACCEPT


def combine(
    oracle_score: int,
    check: StructuralCheck,
    expected_count: int,
    oracle_issues: Optional[List[str]] = None,
    oracle_recommendation: Optional[Recommendation] = None,
) -> JudgeResult:
    """Apply the deterministic caps to an oracle score."""
    score = max(0, min(100, int(oracle_score)))
    issues = list(oracle_issues or [])

    if not check.is_valid:
        score = min(score, INVALID_SCORE_CAP)
        issues.extend(check.problems)
    if _has_shortfall(check.operation_count, expected_count):
        score = min(score, SHORTFALL_SCORE_CAP)
        issues.append(f"Missing endpoints: Expected {expected_count}, found {check.operation_count}")

    return JudgeResult(
        score=score,
        is_structurally_valid=check.is_valid,
        issues=issues,
        recommendation=_recommend(score, check.is_valid, oracle_recommendation),
    )


def fallback_result(check: StructuralCheck, expected_count: int) -> JudgeResult:
    """Deterministic scoring used when the oracle check is unavailable."""
    issues = ["Automated evaluation unavailable; scored by structural checks only"]
    if not check.is_valid:
        score = FALLBACK_INVALID
        issues.extend(check.problems)
    elif _has_shortfall(check.operation_count, expected_count):
        score = FALLBACK_SHORTFALL
        issues.append(f"Missing endpoints: Expected {expected_count}, found {check.operation_count}")
    elif check.operation_count >= expected_count:
        score = FALLBACK_COMPLETE
    else:
        score = FALLBACK_NEUTRAL

    return JudgeResult(
        score=score,
        is_structurally_valid=check.is_valid,
        issues=issues,
        recommendation=_recommend(score, check.is_valid),
    )


class SpecificationJudge:
    """
    Oracle-backed specification judge.

    Args:
        oracle: Anything with an async complete(system_prompt, user_prompt, timeout) method
        preview_chars: Leading characters of the serialized document sent for review
        timeout: Oracle timeout for the review call, in seconds
    """

    def __init__(self, oracle, preview_chars: int = PREVIEW_CHARS, timeout: float = JUDGE_TIMEOUT_SECONDS):
        self.oracle = oracle
        self.preview_chars = preview_chars
        self.timeout = timeout

    async def evaluate(
        self,
        specification: Union[Specification, str],
        expected_count: int,
        source_location: Optional[str] = None,
    ) -> JudgeResult:
        check = check_structure(specification)

        try:
            verdict = await self._ask_oracle(specification, expected_count, source_location)
        except JudgeError as e:
            logger.warning("Judge falling back to structural scoring: %s", e)
            result = fallback_result(check, expected_count)
        else:
            result = combine(
                verdict["score"], check, expected_count,
                oracle_issues=verdict["issues"],
                oracle_recommendation=verdict["recommendation"],
            )
            if not verdict["is_valid"] and check.is_valid:
                result.issues.append("Reviewer flagged the specification as invalid")

        record_judge_score(result.score)
        logger.info(
            "Judge score %d (%s, valid=%s, %d operations of %d expected)",
            result.score, result.recommendation.value, result.is_structurally_valid,
            check.operation_count, expected_count,
        )
        return result

    async def _ask_oracle(
        self,
        specification: Union[Specification, str],
        expected_count: int,
        source_location: Optional[str],
    ) -> dict:
        text = specification if isinstance(specification, str) else json.dumps(specification, indent=2)
        if len(text) > self.preview_chars:
            text = text[:self.preview_chars] + "\n... (truncated for evaluation)"

        prompt = JUDGE_USER_PROMPT.format(
            location=source_location or "unknown",
            expected_count=expected_count,
            specification=text,
        )
        try:
            response = await self.oracle.complete(JUDGE_SYSTEM_PROMPT, prompt, timeout=self.timeout)
            payload = parse_json_response(response)
        except (OracleError, ParseError) as e:
            raise JudgeError("DSPC-5002", reason=str(e)) from e

        if not isinstance(payload, dict) or "score" not in payload:
            raise JudgeError("DSPC-5002", reason="review is missing a score")
        try:
            raw_score = float(payload["score"])
        except (TypeError, ValueError) as e:
            raise JudgeError("DSPC-5002", reason=f"unreadable score {payload['score']!r}") from e
        if not math.isfinite(raw_score):
            raise JudgeError("DSPC-5002", reason=f"unreadable score {payload['score']!r}")
        score = int(raw_score)

        issues = payload.get("issues") or []
        if isinstance(issues, str):
            issues = [issues]
        recommendation = str(payload.get("recommendation", "")).strip().lower()

        return {
            "score": score,
            "is_valid": bool(payload.get("isValid", True)),
            "issues": [str(issue) for issue in issues],
            "recommendation": Recommendation.RETRY if recommendation == "retry" else Recommendation.ACCEPT,
        }
