"""Unit tests for RerankingService and the LLM answer parser."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from ragline.models.catalog import (
    RerankingStrategyConfig,
    RerankingStrategyCreate,
    RerankingType,
)
from ragline.models.rag import RerankCandidate
from ragline.services.reranking_service import RerankingService, parse_indices
from ragline.utils.errors import LLMError, NotFoundError

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _candidates(n: int) -> list[RerankCandidate]:
    return [
        RerankCandidate(id=f"1_{i}", content=f"candidate text {i}", score=1.0 - i * 0.1)
        for i in range(n)
    ]


def _strategy(type_: RerankingType, **overrides) -> RerankingStrategyConfig:
    return RerankingStrategyConfig(id=1, name=f"{type_.value}-test", type=type_, **overrides)


def _service(llm=None) -> RerankingService:
    factory = (lambda model: llm) if llm is not None else None
    return RerankingService(MagicMock(), llm_provider_factory=factory)


# ---------------------------------------------------------------------------
# Filtering shared by every mode
# ---------------------------------------------------------------------------


class TestNoneStrategy:
    @pytest.mark.asyncio
    async def test_top_k_truncates_in_order(self) -> None:
        result = await _service().rerank("q", _candidates(8), _strategy(RerankingType.NONE, top_k=5))
        assert [c.id for c in result] == ["1_0", "1_1", "1_2", "1_3", "1_4"]

    @pytest.mark.asyncio
    async def test_min_score_filters(self) -> None:
        config = _strategy(RerankingType.NONE, min_score=0.75)
        result = await _service().rerank("q", _candidates(5), config)
        assert [c.id for c in result] == ["1_0", "1_1", "1_2"]

    @pytest.mark.asyncio
    async def test_no_limits_returns_input(self) -> None:
        candidates = _candidates(4)
        result = await _service().rerank("q", candidates, _strategy(RerankingType.NONE))
        assert result == candidates


# ---------------------------------------------------------------------------
# Rule-based
# ---------------------------------------------------------------------------


class TestRuleBased:
    def test_exact_match_and_term_bonus(self) -> None:
        candidates = [
            RerankCandidate(id="b", content="unrelated passage", score=0.6),
            RerankCandidate(id="a", content="All about vector search here", score=0.5),
        ]

        result = RerankingService.rule_based("Vector Search", candidates)

        assert [c.id for c in result] == ["a", "b"]
        # 0.5 exact match + 2 term hits * 0.1
        assert result[0].score == pytest.approx(0.5 * 1.7)
        assert result[0].original_score == 0.5
        assert result[1].score == pytest.approx(0.6)
        assert result[1].original_score == 0.6

    def test_term_bonus_is_capped(self) -> None:
        candidate = RerankCandidate(id="x", content="cat cat cat cat cat cat", score=1.0)
        [result] = RerankingService.rule_based("cat", [candidate])
        # exact match 0.5 + capped term bonus 0.3
        assert result.score == pytest.approx(1.8)

    def test_short_terms_ignored(self) -> None:
        candidate = RerankCandidate(id="x", content="an ox is an ox", score=1.0)
        [result] = RerankingService.rule_based("an go", [candidate])
        assert result.score == pytest.approx(1.0)

    def test_ties_keep_input_order(self) -> None:
        candidates = [
            RerankCandidate(id="first", content="x", score=0.4),
            RerankCandidate(id="second", content="y", score=0.4),
        ]
        result = RerankingService.rule_based("nothing", candidates)
        assert [c.id for c in result] == ["first", "second"]


# ---------------------------------------------------------------------------
# Model-based and hybrid
# ---------------------------------------------------------------------------


class TestModelBased:
    @pytest.mark.asyncio
    async def test_llm_order_applied(self, mock_llm_provider) -> None:
        mock_llm_provider.complete.return_value = "[2, 0]"
        config = _strategy(RerankingType.MODEL_BASED, reranking_model="gpt-4o-mini")

        result = await _service(mock_llm_provider).rerank("q", _candidates(3), config)

        assert [c.id for c in result] == ["1_2", "1_0", "1_1"]
        assert [c.score for c in result] == pytest.approx([1.0, 2 / 3, 0.0])
        assert result[0].original_score == pytest.approx(0.8)

    @pytest.mark.asyncio
    async def test_only_top_k_candidates_sent(self, mock_llm_provider) -> None:
        mock_llm_provider.complete.return_value = "[4, 3, 2, 1, 0]"
        config = _strategy(RerankingType.MODEL_BASED, reranking_model="m", top_k=5)

        result = await _service(mock_llm_provider).rerank("q", _candidates(8), config)

        prompt = mock_llm_provider.complete.await_args.kwargs["user_prompt"]
        assert "[4] candidate text 4" in prompt
        assert "[5]" not in prompt
        assert [c.id for c in result] == ["1_4", "1_3", "1_2", "1_1", "1_0"]

    @pytest.mark.asyncio
    async def test_out_of_range_and_duplicate_indices_ignored(self, mock_llm_provider) -> None:
        mock_llm_provider.complete.return_value = '{"indices": [1, 1, 9, -1]}'
        config = _strategy(RerankingType.MODEL_BASED, reranking_model="m")

        result = await _service(mock_llm_provider).rerank("q", _candidates(3), config)

        assert [c.id for c in result] == ["1_1", "1_0", "1_2"]
        assert [c.score for c in result] == pytest.approx([1.0, 0.0, 0.0])

    @pytest.mark.asyncio
    async def test_llm_failure_returns_input(self, mock_llm_provider) -> None:
        mock_llm_provider.complete.side_effect = LLMError(message="timeout", provider_name="openai")
        config = _strategy(RerankingType.MODEL_BASED, reranking_model="m")
        candidates = _candidates(3)

        result = await _service(mock_llm_provider).rerank("q", candidates, config)

        assert result == candidates

    @pytest.mark.asyncio
    async def test_unparseable_answer_returns_input(self, mock_llm_provider) -> None:
        mock_llm_provider.complete.return_value = "The best one is the first."
        config = _strategy(RerankingType.MODEL_BASED, reranking_model="m")
        candidates = _candidates(3)

        assert await _service(mock_llm_provider).rerank("q", candidates, config) == candidates

    @pytest.mark.asyncio
    async def test_missing_model_returns_input(self, mock_llm_provider) -> None:
        config = _strategy(RerankingType.MODEL_BASED)
        candidates = _candidates(2)

        assert await _service(mock_llm_provider).rerank("q", candidates, config) == candidates
        mock_llm_provider.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_hybrid_keeps_rule_scores_as_original(self, mock_llm_provider) -> None:
        mock_llm_provider.complete.return_value = "[1, 0]"
        config = _strategy(RerankingType.HYBRID, reranking_model="m")
        candidates = [
            RerankCandidate(id="a", content="alpha match", score=0.5),
            RerankCandidate(id="b", content="nothing", score=0.9),
        ]

        result = await _service(mock_llm_provider).rerank("alpha", candidates, config)

        # rule pass: b=0.9, a=0.5*1.6=0.8 -> [b, a]; model picks index 1 (a) first
        assert [c.id for c in result] == ["a", "b"]
        assert result[0].original_score == pytest.approx(0.5)
        assert result[1].original_score == pytest.approx(0.9)


# ---------------------------------------------------------------------------
# Strategy resolution
# ---------------------------------------------------------------------------


class TestRerankWithStrategy:
    @pytest.mark.asyncio
    async def test_none_id_returns_input(self, catalog) -> None:
        candidates = _candidates(3)
        result = await RerankingService(catalog).rerank_with_strategy("q", candidates, None)
        assert result == candidates

    @pytest.mark.asyncio
    async def test_unknown_id_raises(self, catalog) -> None:
        with pytest.raises(NotFoundError):
            await RerankingService(catalog).rerank_with_strategy("q", _candidates(1), 999)

    @pytest.mark.asyncio
    async def test_stored_strategy_applied(self, catalog) -> None:
        strategy = await catalog.create_reranking_strategy(
            RerankingStrategyCreate(name="top2", type=RerankingType.NONE, top_k=2)
        )
        result = await RerankingService(catalog).rerank_with_strategy(
            "q", _candidates(5), strategy.id
        )
        assert len(result) == 2


# ---------------------------------------------------------------------------
# parse_indices
# ---------------------------------------------------------------------------


class TestParseIndices:
    @pytest.mark.parametrize(
        ("answer", "expected"),
        [
            ("[3, 1, 2]", [3, 1, 2]),
            ('{"indices": [0, 2]}', [0, 2]),
            ("```json\n[1, 0]\n```", [1, 0]),
            ("```\n{\"indices\": [4]}\n```", [4]),
            ('[1, "two", 2.5, true, 0]', [1, 0]),
        ],
    )
    def test_accepted_shapes(self, answer: str, expected: list[int]) -> None:
        assert parse_indices(answer) == expected

    @pytest.mark.parametrize("answer", ["not json", '{"order": [1]}', "42"])
    def test_rejected_shapes(self, answer: str) -> None:
        with pytest.raises(ValueError):
            parse_indices(answer)
