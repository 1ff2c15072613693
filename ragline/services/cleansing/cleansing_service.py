"""Cleansing entry point used by the ingestion pipeline.

:class:`CleansingService` runs :class:`TextCleanser` over every chunk and,
when the config names an ``llm_model``, feeds the result through
:class:`LLMCleanser`.  Output is positionally aligned with the input.
"""

from __future__ import annotations

from collections.abc import Callable

import structlog

from ragline.interfaces.llm_provider import ILLMProvider
from ragline.models.catalog import CleansingConfig
from ragline.models.rag import CleansingResult
from ragline.services.cleansing.llm_cleanser import LLMCleanser
from ragline.services.cleansing.text_cleanser import TextCleanser
from ragline.utils.errors import RaglineError

logger = structlog.get_logger(logger_name=__name__)


class CleansingService:
    """Deterministic cleansing plus the optional LLM rewrite.

    Parameters
    ----------
    llm_provider_factory:
        Called with a model name to obtain an :class:`ILLMProvider`.  When
        ``None``, configs that request an LLM pass only get the
        deterministic rules and a warning.
    llm_batch_size:
        Maximum concurrent LLM calls.
    """

    def __init__(
        self,
        llm_provider_factory: Callable[[str], ILLMProvider] | None = None,
        llm_batch_size: int = 5,
    ) -> None:
        self._llm_provider_factory = llm_provider_factory
        self._llm_batch_size = llm_batch_size
        self._text_cleanser = TextCleanser()

    async def cleanse_chunks(self, texts: list[str], config: CleansingConfig) -> CleansingResult:
        cleaned = [self._text_cleanser.cleanse(t, config) for t in texts]
        warnings: list[str] = []

        if config.llm_model and cleaned:
            if self._llm_provider_factory is None:
                warnings.append(
                    f"LLM cleansing requested ({config.llm_model}) but no LLM provider is configured"
                )
                logger.warning("llm_cleansing_unavailable", model=config.llm_model)
            else:
                try:
                    provider = self._llm_provider_factory(config.llm_model)
                except RaglineError as exc:
                    warnings.append(f"LLM cleansing skipped: {exc}")
                    logger.warning("llm_cleansing_unavailable", model=config.llm_model, error=str(exc))
                else:
                    cleanser = LLMCleanser(provider, batch_size=self._llm_batch_size)
                    cleaned, llm_warnings = await cleanser.cleanse(cleaned, config)
                    warnings.extend(llm_warnings)

        logger.debug(
            "cleansing_complete",
            config=config.name,
            chunks=len(cleaned),
            warnings=len(warnings),
        )
        return CleansingResult(cleaned=cleaned, warnings=warnings)
