"""
Tests for specification scoring.
"""
import json

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from docspec.core.errors import OracleError
from docspec.scraper.judge import (
    SpecificationJudge,
    check_structure,
    combine,
    fallback_result,
)
from docspec.scraper.models import Recommendation
from fakes import FakeOracle, judge_answer


def spec_with(operations):
    paths = {}
    for n in range(operations):
        paths[f"/items/{n}"] = {"get": {"responses": {"200": {"description": "OK"}}}}
    return {"openapi": "3.0.0", "info": {"title": "t", "version": "1"}, "paths": paths}


class TestCheckStructure:

    def test_valid_document(self):
        check = check_structure(spec_with(3))
        assert check.is_valid
        assert check.operation_count == 3
        assert check.problems == []

    def test_counts_operations_not_paths(self):
        spec = spec_with(1)
        spec["paths"]["/items/0"]["post"] = {}
        spec["paths"]["/items/0"]["parameters"] = []
        assert check_structure(spec).operation_count == 2

    def test_missing_fields(self):
        check = check_structure({"paths": {}})
        assert not check.is_valid
        assert "Missing 'openapi' field" in check.problems
        assert "Missing 'info' field" in check.problems
        assert "No paths defined" in check.problems

    def test_serialized_input(self):
        assert check_structure(json.dumps(spec_with(2))).operation_count == 2

    def test_unparseable_input(self):
        check = check_structure("{not json")
        assert not check.is_valid
        assert check.operation_count == 0

    def test_non_object(self):
        assert not check_structure([1, 2]).is_valid


class TestCombine:

    def test_invalid_structure_caps_score(self):
        result = combine(95, check_structure({"openapi": "3.0.0"}), expected_count=0)
        assert result.score <= 30
        assert result.recommendation == Recommendation.RETRY
        assert not result.is_structurally_valid

    def test_shortfall_caps_score(self):
        result = combine(95, check_structure(spec_with(7)), expected_count=10)
        assert result.score <= 50
        assert result.should_retry
        assert "Missing endpoints: Expected 10, found 7" in result.issues

    def test_at_threshold_is_not_a_shortfall(self):
        result = combine(95, check_structure(spec_with(8)), expected_count=10)
        assert result.score == 95
        assert result.recommendation == Recommendation.ACCEPT

    def test_low_score_means_retry(self):
        result = combine(69, check_structure(spec_with(5)), expected_count=5)
        assert result.recommendation == Recommendation.RETRY

    def test_oracle_retry_recommendation_kept(self):
        result = combine(90, check_structure(spec_with(5)), 5, oracle_recommendation=Recommendation.RETRY)
        assert result.recommendation == Recommendation.RETRY

    def test_score_clamped(self):
        assert combine(250, check_structure(spec_with(1)), 1).score == 100
        assert combine(-5, check_structure(spec_with(1)), 1).score == 0

    @settings(suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(
        oracle_score=st.integers(-50, 200),
        operations=st.integers(0, 12),
        expected=st.integers(0, 12),
    )
    def test_never_accepts_invalid_or_short(self, oracle_score, operations, expected):
        check = check_structure(spec_with(operations))
        result = combine(oracle_score, check, expected)

        assert 0 <= result.score <= 100
        if not check.is_valid:
            assert result.score <= 30
            assert result.should_retry
        if expected and operations < 0.8 * expected:
            assert result.score <= 50
            assert result.should_retry

    @settings(suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(
        oracle_score=st.integers(0, 100),
        ops_a=st.integers(0, 12),
        ops_b=st.integers(0, 12),
        expected=st.integers(0, 12),
    )
    def test_more_operations_never_lower_the_score(self, oracle_score, ops_a, ops_b, expected):
        fewer, more = sorted((ops_a, ops_b))
        low = combine(oracle_score, check_structure(spec_with(fewer)), expected)
        high = combine(oracle_score, check_structure(spec_with(more)), expected)
        assert low.score <= high.score


class TestFallbackResult:

    def test_invalid(self):
        result = fallback_result(check_structure({}), 3)
        assert result.score == 20
        assert result.should_retry
        assert result.issues[0].startswith("Automated evaluation unavailable")

    def test_shortfall(self):
        assert fallback_result(check_structure(spec_with(2)), 10).score == 40

    def test_complete(self):
        result = fallback_result(check_structure(spec_with(10)), 10)
        assert result.score == 80
        assert result.recommendation == Recommendation.ACCEPT

    def test_slightly_short(self):
        result = fallback_result(check_structure(spec_with(9)), 10)
        assert result.score == 50
        assert result.should_retry

    @settings(suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(ops_a=st.integers(0, 12), ops_b=st.integers(0, 12), expected=st.integers(0, 12))
    def test_more_operations_never_lower_the_score(self, ops_a, ops_b, expected):
        fewer, more = sorted((ops_a, ops_b))
        low = fallback_result(check_structure(spec_with(fewer)), expected)
        high = fallback_result(check_structure(spec_with(more)), expected)
        assert low.score <= high.score


class TestSpecificationJudge:

    @pytest.mark.asyncio
    async def test_uses_oracle_score(self):
        oracle = FakeOracle(judge=judge_answer(score=88, issues=["Thin descriptions"]))
        result = await SpecificationJudge(oracle).evaluate(spec_with(4), 4, "https://docs.test")

        assert result.score == 88
        assert result.issues == ["Thin descriptions"]
        assert result.recommendation == Recommendation.ACCEPT
        assert oracle.calls[0].timeout == 30.0

    @pytest.mark.asyncio
    async def test_oracle_cannot_accept_missing_endpoints(self):
        oracle = FakeOracle(judge=judge_answer(score=100))
        result = await SpecificationJudge(oracle).evaluate(spec_with(5), 20, "https://docs.test")

        assert result.score == 50
        assert result.should_retry

    @pytest.mark.asyncio
    async def test_falls_back_when_oracle_fails(self):
        oracle = FakeOracle(judge=OracleError("DSPC-3003", reason="timed out"))
        result = await SpecificationJudge(oracle).evaluate(spec_with(4), 4)

        assert result.score == 80
        assert result.issues[0].startswith("Automated evaluation unavailable")

    @pytest.mark.asyncio
    async def test_falls_back_on_unusable_review(self):
        oracle = FakeOracle(judge='{"verdict": "fine"}')
        result = await SpecificationJudge(oracle).evaluate(spec_with(4), 4)
        assert result.score == 80

    @pytest.mark.asyncio
    async def test_falls_back_on_non_finite_score(self):
        oracle = FakeOracle(judge='{"score": 1e999, "isValid": true, "issues": []}')
        result = await SpecificationJudge(oracle).evaluate(spec_with(1), 1)

        assert result.score == 80
        assert result.issues[0].startswith("Automated evaluation unavailable")

    @pytest.mark.asyncio
    async def test_reviewer_invalid_flag_recorded(self):
        oracle = FakeOracle(judge=json.dumps({"score": 75, "isValid": False, "issues": []}))
        result = await SpecificationJudge(oracle).evaluate(spec_with(4), 4)

        assert result.is_structurally_valid
        assert "Reviewer flagged the specification as invalid" in result.issues

    @pytest.mark.asyncio
    async def test_large_documents_previewed(self):
        oracle = FakeOracle(judge=judge_answer())
        await SpecificationJudge(oracle, preview_chars=200).evaluate(spec_with(30), 30)

        prompt = oracle.calls[0].user_prompt
        assert "... (truncated for evaluation)" in prompt
        assert "/items/29" not in prompt
