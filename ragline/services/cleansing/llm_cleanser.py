"""LLM rewrite pass applied on top of the deterministic cleansing rules."""

from __future__ import annotations

import structlog

from ragline.interfaces.llm_provider import ILLMProvider
from ragline.models.catalog import CleansingConfig
from ragline.utils.concurrency import throttled_gather

logger = structlog.get_logger(logger_name=__name__)

_SYSTEM_PROMPT = "You are a text cleaning assistant."

DEFAULT_CLEANSING_PROMPT = """\
Clean and improve the following text while preserving its meaning and important information.

Instructions:
1. Fix any formatting issues
2. Correct obvious spelling and grammar errors
3. Remove redundant information
4. Ensure proper paragraph structure
5. Maintain the original meaning and facts
6. Remove any metadata, headers, footers that don't contribute to the content
7. Keep technical terms and domain-specific language intact

Return only the cleaned text without any explanations or metadata.

Text to clean:
{text}"""

_RETURN_MARKER = "Return only the cleaned text"


class LLMCleanser:
    """Rewrite chunk texts with an LLM, at most *batch_size* calls at once.

    A failed call keeps the input text for that chunk and yields a
    warning; it never fails the whole batch.
    """

    def __init__(self, llm_provider: ILLMProvider, batch_size: int = 5) -> None:
        self._llm = llm_provider
        self._batch_size = batch_size

    def build_prompt(self, text: str, config: CleansingConfig) -> str:
        prompt = config.cleansing_prompt or DEFAULT_CLEANSING_PROMPT
        extra: list[str] = []
        if config.remove_urls:
            extra.append("- Remove all URLs")
        if config.remove_emails:
            extra.append("- Remove all email addresses")
        if extra and _RETURN_MARKER in prompt:
            prompt = prompt.replace(
                _RETURN_MARKER,
                "Additional requirements:\n" + "\n".join(extra) + "\n\n" + _RETURN_MARKER,
                1,
            )
        if "{text}" in prompt:
            return prompt.replace("{text}", text)
        return f"{prompt}\n\n{text}"

    async def cleanse(
        self, texts: list[str], config: CleansingConfig
    ) -> tuple[list[str], list[str]]:
        """Return ``(cleaned_texts, warnings)`` in input order."""

        async def _one(text: str) -> str:
            if not text.strip():
                return text
            result = await self._llm.complete(
                system_prompt=_SYSTEM_PROMPT,
                user_prompt=self.build_prompt(text, config),
            )
            return result.strip() or text

        results = await throttled_gather(
            [_one(t) for t in texts], limit=self._batch_size, return_exceptions=True
        )

        cleaned: list[str] = []
        warnings: list[str] = []
        for index, (original, result) in enumerate(zip(texts, results, strict=True)):
            if isinstance(result, Exception):
                logger.warning(
                    "llm_cleansing_failed",
                    chunk_index=index,
                    model=self._llm.get_model_name(),
                    error=str(result),
                )
                warnings.append(f"LLM cleansing failed for chunk {index}: {result}")
                cleaned.append(original)
            else:
                cleaned.append(result)  # type: ignore[arg-type]
        return cleaned, warnings
