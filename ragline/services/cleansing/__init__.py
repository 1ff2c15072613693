"""Content cleansing: deterministic rules plus an optional LLM rewrite."""

from ragline.services.cleansing.cleansing_service import CleansingService
from ragline.services.cleansing.llm_cleanser import DEFAULT_CLEANSING_PROMPT, LLMCleanser
from ragline.services.cleansing.text_cleanser import TextCleanser

__all__ = ["DEFAULT_CLEANSING_PROMPT", "CleansingService", "LLMCleanser", "TextCleanser"]
