#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Base LLM Adapter
================

This module defines the BaseLLMAdapter abstract base class and the
LLMServiceError raised by every adapter on transport or service failure.
"""
import abc
import asyncio
import json
import logging
import re
from typing import Any, AsyncGenerator, Callable, Dict, List, Optional

from .instinct_config import NEUTRAL_SCORE
from .llm_interface import CompletionOptions, ContentAnalysis, LLMInterface
from .prompts import (
    CONTENT_ANALYSIS_PROMPT,
    EVALUATE_TEXT_PROMPT,
    PERSEVERANCE_ANALYSIS_PROMPT,
)
from .utils import extract_first_integer, truncate_text


class LLMServiceError(Exception):
    """A completion request failed at the transport or provider level."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider


# Analysis dimensions and the response keys accepted for each of them
_ANALYSIS_KEYS = {
    "confidence": ("confidence",),
    "perseverance": ("perseverance",),
    "instinct_vs_analysis": ("instinctVsAnalysis", "instinct_vs_analysis"),
    "emotional_state": ("emotionalState", "emotional_state"),
}


class BaseLLMAdapter(LLMInterface, abc.ABC):
    """
    Abstract Base Class for LLM adapters.
    Provides common prompt formatting and response processing logic.
    """
    provider_name = "base"
    DEFAULT_MULTI_TEMPERATURE = 0.9

    def __init__(self, api_key: Optional[str] = None, model_name: Optional[str] = None, **kwargs):
        self.logger = logging.getLogger(__name__)
        self.api_key = api_key
        self.model_name = model_name
        # Allow other kwargs to be stored if needed by subclasses
        self._kwargs = kwargs

    @abc.abstractmethod
    async def get_completion(self, model: Optional[str], messages: List[Dict[str, str]], **kwargs) -> str:
        """
        Get a non-streaming completion from the LLM.
        'model' can be None if the adapter is initialized with a specific model.
        Implementations raise LLMServiceError on failure.
        """
        pass

    @abc.abstractmethod
    async def get_streaming_completion(self, model: Optional[str], messages: List[Dict[str, str]], **kwargs) -> AsyncGenerator[str, None]:
        """
        Get a streaming completion from the LLM, one text chunk at a time.
        """
        # Required for async generator structure
        if False:  # pragma: no cover
            yield
        pass

    @staticmethod
    def _request_kwargs(options: Optional[CompletionOptions]) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {}
        if options is None:
            return kwargs
        if options.temperature is not None:
            kwargs["temperature"] = options.temperature
        if options.max_tokens is not None:
            kwargs["max_tokens"] = options.max_tokens
        return kwargs

    async def generate_completion(self, prompt: str, options: Optional[CompletionOptions] = None) -> str:
        messages = [{"role": "user", "content": prompt}]
        model_to_use = (options.model if options else None) or self.model_name
        return await self.get_completion(model=model_to_use, messages=messages, **self._request_kwargs(options))

    async def generate_multiple_completions(self, prompt: str, count: int,
                                            options: Optional[CompletionOptions] = None) -> List[str]:
        """
        Issue ``count`` requests concurrently; request i runs at base + 0.1 * i (capped at 1.0).

        Results are returned in request order regardless of completion order.
        """
        base_options = options or CompletionOptions()
        base_temperature = base_options.temperature
        if base_temperature is None:
            base_temperature = self.DEFAULT_MULTI_TEMPERATURE
        requests = [
            self.generate_completion(prompt, base_options.with_temperature(min(base_temperature + i * 0.1, 1.0)))
            for i in range(count)
        ]
        return list(await asyncio.gather(*requests))

    async def generate_streaming_completion(self, prompt: str, options: Optional[CompletionOptions] = None,
                                            on_chunk: Optional[Callable[[str], None]] = None) -> str:
        messages = [{"role": "user", "content": prompt}]
        model_to_use = (options.model if options else None) or self.model_name
        chunks: List[str] = []
        async for chunk in self.get_streaming_completion(model_to_use, messages, **self._request_kwargs(options)):
            if not chunk:
                continue
            chunks.append(chunk)
            if on_chunk is not None:
                on_chunk(chunk)
        return "".join(chunks)

    def _parse_rating(self, raw_response: str) -> int:
        """First integer of the response if it lies in 1-10, otherwise the neutral score."""
        score = extract_first_integer(raw_response)
        if score is None:
            self.logger.warning(f"Could not parse rating from LLM response: '{truncate_text(raw_response, 80)}'. Defaulting to {NEUTRAL_SCORE}.")
            return NEUTRAL_SCORE
        if not 1 <= score <= 10:
            self.logger.warning(f"LLM rating {score} out of range (1-10). Defaulting to {NEUTRAL_SCORE}.")
            return NEUTRAL_SCORE
        return score

    async def evaluate_text(self, text: str, criteria: str) -> int:
        prompt = EVALUATE_TEXT_PROMPT.format(text=text, criteria=criteria)
        try:
            raw_response = await self.generate_completion(prompt, CompletionOptions(temperature=0.3, max_tokens=10))
        except LLMServiceError as e:
            self.logger.error(f"Error evaluating text: {e}")
            return NEUTRAL_SCORE
        return self._parse_rating(raw_response)

    async def analyze_perseverance(self, text: str) -> int:
        prompt = PERSEVERANCE_ANALYSIS_PROMPT.format(text=text)
        try:
            raw_response = await self.generate_completion(prompt, CompletionOptions(temperature=0.3, max_tokens=10))
        except LLMServiceError as e:
            self.logger.error(f"Error analyzing perseverance: {e}")
            return NEUTRAL_SCORE
        return self._parse_rating(raw_response)

    @staticmethod
    def parse_content_analysis(raw_response: str) -> Optional[ContentAnalysis]:
        """
        Parse the first JSON object of a content-analysis response.

        Returns:
            The analysis, or None when no JSON object can be decoded.
            Missing or non-numeric dimensions fall back to the neutral score;
            values are clamped to 1-10.
        """
        match = re.search(r"\{.*\}", raw_response or "", flags=re.DOTALL)
        if not match:
            return None
        try:
            payload = json.loads(match.group(0))
        except json.JSONDecodeError:
            return None
        if not isinstance(payload, dict):
            return None

        values: Dict[str, int] = {}
        for field_name, keys in _ANALYSIS_KEYS.items():
            raw_value = next((payload[key] for key in keys if key in payload), NEUTRAL_SCORE)
            try:
                number = int(round(float(raw_value)))
            except (TypeError, ValueError):
                number = NEUTRAL_SCORE
            values[field_name] = max(1, min(10, number))
        return ContentAnalysis(**values)

    async def analyze_content(self, text: str) -> ContentAnalysis:
        prompt = CONTENT_ANALYSIS_PROMPT.format(text=text)
        try:
            raw_response = await self.generate_completion(prompt, CompletionOptions(temperature=0.3, max_tokens=100))
        except LLMServiceError as e:
            self.logger.error(f"Error analyzing content: {e}")
            return ContentAnalysis.neutral()

        analysis = self.parse_content_analysis(raw_response)
        if analysis is None:
            self.logger.warning(f"Could not extract JSON from analysis: '{truncate_text(raw_response, 80)}'")
            return ContentAnalysis.neutral()
        return analysis
