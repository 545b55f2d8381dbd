#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Anthropic LLM Adapter
=====================

This module defines the AnthropicAdapter class for interacting with Anthropic models.
"""
import logging
import os
from typing import Any, AsyncGenerator, Dict, List, Optional, Tuple

import anthropic  # type: ignore

from .base_llm_adapter import BaseLLMAdapter, LLMServiceError
from .instinct_config import PROVIDER_DEFAULT_MODELS


class AnthropicAdapter(BaseLLMAdapter):
    """
    LLM Adapter for Anthropic models.
    """
    provider_name = "anthropic"
    DEFAULT_MODEL = PROVIDER_DEFAULT_MODELS["anthropic"]
    DEFAULT_MAX_TOKENS = 1024

    def __init__(self,
                 api_key: Optional[str] = None,
                 model_name: Optional[str] = None,
                 timeout: float = 60.0,
                 max_retries: int = 2,
                 **kwargs):
        super().__init__(api_key=api_key, model_name=model_name, **kwargs)

        self.api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if not self.api_key:
            raise ValueError("Anthropic API key not provided via argument or ANTHROPIC_API_KEY environment variable.")

        self.client = anthropic.AsyncAnthropic(api_key=self.api_key, timeout=timeout, max_retries=max_retries)
        self.model_name = model_name or self.DEFAULT_MODEL
        self.logger = logging.getLogger(__name__)
        self.logger.info(f"Initialized AnthropicAdapter with model: {self.model_name}")

    def _split_system_prompt(self, messages: List[Dict[str, str]]) -> Tuple[Optional[str], List[Dict[str, Any]]]:
        """
        Separates a leading system message, as the Anthropic API takes it as a parameter.
        Only user/assistant messages are passed on.
        """
        if not messages:
            return None, []

        system_prompt: Optional[str] = None
        remaining = messages
        if messages[0].get("role") == "system":
            system_prompt = messages[0].get("content", "")
            remaining = messages[1:]

        processed: List[Dict[str, Any]] = []
        for msg in remaining:
            role = msg.get("role")
            if role in ("user", "assistant"):
                processed.append({"role": role, "content": str(msg.get("content", ""))})
            else:
                self.logger.warning(f"Unsupported role '{role}' in Anthropic messages, skipping.")
        return system_prompt, processed

    def _request_params(self, model: Optional[str], messages: List[Dict[str, str]], kwargs: Dict[str, Any]) -> Dict[str, Any]:
        system_prompt, processed = self._split_system_prompt(messages)
        if not processed:
            raise LLMServiceError(self.provider_name, "no user/assistant messages to send")
        params: Dict[str, Any] = {
            "model": model if model is not None else self.model_name,
            "max_tokens": kwargs.get("max_tokens") or self.DEFAULT_MAX_TOKENS,
            "messages": processed,
        }
        if system_prompt:
            params["system"] = system_prompt
        if kwargs.get("temperature") is not None:
            params["temperature"] = kwargs["temperature"]
        return params

    async def get_completion(self, model: Optional[str], messages: List[Dict[str, str]], **kwargs) -> str:
        """
        Gets a non-streaming completion from the Anthropic LLM.
        """
        params = self._request_params(model, messages, kwargs)
        self.logger.debug(f"Anthropic get_completion using model: {params['model']}, max_tokens: {params['max_tokens']}")
        try:
            response = await self.client.messages.create(**params)
        except anthropic.APIError as e:
            self.logger.error(f"Anthropic API error in get_completion: {e}")
            raise LLMServiceError(self.provider_name, f"API request failed - {type(e).__name__}: {e}") from e

        text_blocks = [block.text for block in response.content if getattr(block, "type", None) == "text"]
        if not text_blocks:
            self.logger.warning(f"Anthropic response held no text blocks: {response}")
            return ""
        return "".join(text_blocks)

    async def get_streaming_completion(self, model: Optional[str], messages: List[Dict[str, str]], **kwargs) -> AsyncGenerator[str, None]:
        """
        Gets a streaming completion from the Anthropic LLM.
        """
        params = self._request_params(model, messages, kwargs)
        self.logger.debug(f"Anthropic get_streaming_completion using model: {params['model']}")
        try:
            async with self.client.messages.stream(**params) as stream:
                async for text_chunk in stream.text_stream:
                    yield text_chunk
        except anthropic.APIError as e:
            self.logger.error(f"Anthropic API error in get_streaming_completion: {e}")
            raise LLMServiceError(self.provider_name, f"streaming request failed - {type(e).__name__}: {e}") from e
