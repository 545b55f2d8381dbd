#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
LLM Interface Protocol
======================

This module defines the LLMInterface protocol consumed by the search engine,
together with the option and analysis value types it exchanges.
"""
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional, Protocol

from .instinct_config import NEUTRAL_SCORE


@dataclass(frozen=True)
class CompletionOptions:
    """Per-request generation options; None means "adapter default"."""
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None

    def with_temperature(self, temperature: float) -> "CompletionOptions":
        return replace(self, temperature=temperature)


@dataclass(frozen=True)
class ContentAnalysis:
    """Instinct analysis of a text, every dimension on a 1-10 scale."""
    confidence: int = NEUTRAL_SCORE
    perseverance: int = NEUTRAL_SCORE
    instinct_vs_analysis: int = NEUTRAL_SCORE
    emotional_state: int = NEUTRAL_SCORE

    @classmethod
    def neutral(cls) -> "ContentAnalysis":
        return cls()

    def as_unit_interval(self) -> Dict[str, float]:
        """The four dimensions divided by 10, keyed by node metric name."""
        return {
            "confidence": self.confidence / 10,
            "perseverance": self.perseverance / 10,
            "instinct_weight": self.instinct_vs_analysis / 10,
            "emotional_state": self.emotional_state / 10,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "confidence": self.confidence,
            "perseverance": self.perseverance,
            "instinct_vs_analysis": self.instinct_vs_analysis,
            "emotional_state": self.emotional_state,
        }


class LLMInterface(Protocol):
    """Defines the interface required for LLM interactions."""

    async def generate_completion(self, prompt: str, options: Optional[CompletionOptions] = None) -> str:
        """Gets a single completion; raises LLMServiceError on failure."""
        ...

    async def generate_multiple_completions(self, prompt: str, count: int,
                                            options: Optional[CompletionOptions] = None) -> List[str]:
        """Gets ``count`` completions concurrently, at successively higher temperatures."""
        ...

    async def generate_streaming_completion(self, prompt: str, options: Optional[CompletionOptions] = None,
                                            on_chunk: Optional[Callable[[str], None]] = None) -> str:
        """Streams a completion, reporting each chunk, and returns the full text."""
        ...

    async def analyze_content(self, text: str) -> ContentAnalysis:
        """Analyses confidence, perseverance, instinct and emotional tone (neutral on failure)."""
        ...

    async def evaluate_text(self, text: str, criteria: str) -> int:
        """Rates text against free-form criteria (1-10, 5 on failure)."""
        ...

    async def analyze_perseverance(self, text: str) -> int:
        """Rates perseverance versus doubt in text (1-10, 5 on failure)."""
        ...
