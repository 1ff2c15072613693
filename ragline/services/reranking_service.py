"""Reorder and prune search candidates after vector search.

Every mode first truncates the candidates to ``top_k`` (when set and
smaller than the list) and then drops candidates scoring below
``min_score`` (when set).  The strategy type then decides what happens:

- ``none``: the filtered candidates, as they are.
- ``rule_based``: each score is boosted by ``1 + bonus`` where the bonus is
  0.5 for an exact (case-insensitive) query match plus
  ``min(term_hits * 0.1, 0.3)`` for query words longer than two
  characters.  ``original_score`` keeps the incoming score.
- ``model_based``: an LLM returns the candidate indices in relevance order.
  Ranked candidates get ``1.0 - rank / total``; candidates the model left
  out follow with score 0.
- ``hybrid``: ``rule_based`` followed by ``model_based``.

The model pass never raises: a missing model, a provider error or an
unparseable answer logs a warning and returns its input unchanged.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from typing import Any

import structlog

from ragline.interfaces.catalog_provider import ICatalogProvider
from ragline.interfaces.llm_provider import ILLMProvider
from ragline.models.catalog import RerankingStrategyConfig, RerankingType
from ragline.models.rag import RerankCandidate
from ragline.utils.errors import NotFoundError, RaglineError

logger = structlog.get_logger(logger_name=__name__)

_EXACT_MATCH_BONUS = 0.5
_TERM_HIT_BONUS = 0.1
_TERM_BONUS_CAP = 0.3
_MIN_TERM_LENGTH = 3
_MODEL_TEXT_LIMIT = 1000

_SYSTEM_PROMPT = (
    "You are a search result reranking assistant. Analyze the query and documents, "
    "then return a JSON array of document indices ordered by relevance."
)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class RerankingService:
    """Apply a :class:`RerankingStrategyConfig` to a candidate list.

    Parameters
    ----------
    catalog:
        Used by :meth:`rerank_with_strategy` to resolve strategy ids.
    llm_provider_factory:
        Called with ``reranking_model`` to obtain an LLM for the model pass.
    """

    def __init__(
        self,
        catalog: ICatalogProvider,
        llm_provider_factory: Callable[[str], ILLMProvider] | None = None,
    ) -> None:
        self._catalog = catalog
        self._llm_provider_factory = llm_provider_factory

    async def rerank_with_strategy(
        self,
        query: str,
        candidates: list[RerankCandidate],
        strategy_id: int | None,
    ) -> list[RerankCandidate]:
        """Resolve *strategy_id* and rerank; ``None`` means type ``none`` with no limits.

        Raises
        ------
        NotFoundError
            If *strategy_id* does not exist.
        """
        if strategy_id is None:
            return list(candidates)
        strategy = await self._catalog.get_reranking_strategy(strategy_id)
        if strategy is None:
            raise NotFoundError(message=f"Reranking strategy #{strategy_id} not found")
        return await self.rerank(query, candidates, strategy)

    async def rerank(
        self,
        query: str,
        candidates: list[RerankCandidate],
        config: RerankingStrategyConfig,
    ) -> list[RerankCandidate]:
        filtered = list(candidates)
        if config.top_k is not None and config.top_k < len(filtered):
            filtered = filtered[: config.top_k]
        if config.min_score is not None:
            filtered = [c for c in filtered if c.score >= config.min_score]

        if config.type == RerankingType.RULE_BASED:
            result = self.rule_based(query, filtered)
        elif config.type == RerankingType.MODEL_BASED:
            result = await self.model_based(query, filtered, config)
        elif config.type == RerankingType.HYBRID:
            result = await self.model_based(query, self.rule_based(query, filtered), config)
        else:
            result = filtered

        logger.info(
            "rerank_complete",
            strategy=config.name,
            type=config.type.value,
            candidates_in=len(candidates),
            candidates_out=len(result),
        )
        return result

    # ------------------------------------------------------------------
    # Rule-based pass
    # ------------------------------------------------------------------

    @staticmethod
    def rule_based(query: str, candidates: list[RerankCandidate]) -> list[RerankCandidate]:
        query_lower = query.lower()
        terms = [t for t in query_lower.split() if len(t) >= _MIN_TERM_LENGTH]

        scored: list[RerankCandidate] = []
        for candidate in candidates:
            text_lower = candidate.content.lower()
            bonus = 0.0
            if query_lower and query_lower in text_lower:
                bonus += _EXACT_MATCH_BONUS
            hits = sum(text_lower.count(term) for term in terms)
            bonus += min(hits * _TERM_HIT_BONUS, _TERM_BONUS_CAP)
            scored.append(
                candidate.model_copy(
                    update={
                        "score": candidate.score * (1 + bonus),
                        "original_score": candidate.score,
                    }
                )
            )
        # sorted() is stable, so ties keep their input order.
        return sorted(scored, key=lambda c: c.score, reverse=True)

    # ------------------------------------------------------------------
    # Model-based pass
    # ------------------------------------------------------------------

    async def model_based(
        self,
        query: str,
        candidates: list[RerankCandidate],
        config: RerankingStrategyConfig,
    ) -> list[RerankCandidate]:
        if not candidates:
            return candidates
        if not config.reranking_model or self._llm_provider_factory is None:
            logger.warning(
                "model_rerank_skipped",
                strategy=config.name,
                reason="no reranking model configured",
            )
            return candidates

        try:
            llm = self._llm_provider_factory(config.reranking_model)
            response = await llm.complete(
                system_prompt=_SYSTEM_PROMPT,
                user_prompt=self.build_prompt(query, candidates),
                temperature=0.0,
            )
            order = parse_indices(response)
        except (RaglineError, ValueError) as exc:
            logger.warning(
                "model_rerank_failed",
                strategy=config.name,
                model=config.reranking_model,
                error=str(exc),
            )
            return candidates

        total = len(candidates)
        seen: set[int] = set()
        ranked: list[RerankCandidate] = []
        for idx in order:
            if 0 <= idx < total and idx not in seen:
                seen.add(idx)
                ranked.append(
                    candidates[idx].model_copy(
                        update={
                            "score": 1.0 - len(ranked) / total,
                            "original_score": candidates[idx].original_score
                            if candidates[idx].original_score is not None
                            else candidates[idx].score,
                        }
                    )
                )
        for idx, candidate in enumerate(candidates):
            if idx not in seen:
                ranked.append(
                    candidate.model_copy(
                        update={
                            "score": 0.0,
                            "original_score": candidate.original_score
                            if candidate.original_score is not None
                            else candidate.score,
                        }
                    )
                )
        return ranked

    @staticmethod
    def build_prompt(query: str, candidates: list[RerankCandidate]) -> str:
        documents = "\n\n".join(
            f"[{i}] {c.content[:_MODEL_TEXT_LIMIT]}" for i, c in enumerate(candidates)
        )
        return (
            "Given the following query and documents, rerank the documents by relevance "
            "to the query.\n"
            "Return only a JSON array of document indices ordered by relevance "
            "(most relevant first).\n\n"
            f'Query: "{query}"\n\n'
            f"Documents:\n{documents}\n\n"
            "Return format: [index1, index2, index3, ...]"
        )


def parse_indices(response: str) -> list[int]:
    """Extract the index list from an LLM answer.

    Accepts a bare JSON array or an object with an ``indices`` array,
    optionally wrapped in a Markdown code fence.  Non-integer entries are
    dropped.

    Raises
    ------
    ValueError
        If the answer is not JSON of either shape.
    """
    text = _CODE_FENCE.sub("", response.strip()).strip()
    parsed: Any = json.loads(text)
    if isinstance(parsed, dict):
        parsed = parsed.get("indices")
    if not isinstance(parsed, list):
        raise ValueError(f"Expected a JSON array of indices, got: {text[:200]}")
    return [i for i in parsed if isinstance(i, int) and not isinstance(i, bool)]
