#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
OpenRouter LLM Adapter
======================

This module defines the OpenRouterAdapter class, which talks to the
OpenRouter chat-completions API through the OpenAI-compatible client.
"""
import logging
import os
from typing import Any, AsyncGenerator, Dict, List, Optional

import httpx
import openai  # type: ignore

from .base_llm_adapter import BaseLLMAdapter, LLMServiceError
from .instinct_config import OPENROUTER_BASE_URL, PROVIDER_DEFAULT_MODELS


class OpenRouterAdapter(BaseLLMAdapter):
    """
    LLM Adapter for models served through OpenRouter.
    """
    provider_name = "openrouter"
    DEFAULT_MODEL = PROVIDER_DEFAULT_MODELS["openrouter"]
    DEFAULT_TEMPERATURE = 0.7
    DEFAULT_MAX_TOKENS = 500
    APP_TITLE = "LLM Instinct Framework"

    def __init__(self,
                 api_key: Optional[str] = None,
                 model_name: Optional[str] = None,
                 base_url: str = OPENROUTER_BASE_URL,
                 timeout: float = 60.0,
                 max_retries: int = 2,
                 referer: Optional[str] = None,
                 **kwargs):
        super().__init__(api_key=api_key, model_name=model_name, **kwargs)

        self.api_key = api_key or os.getenv("OPENROUTER_API_KEY")
        if not self.api_key:
            raise ValueError("OpenRouter API key not provided via argument or OPENROUTER_API_KEY environment variable.")

        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = {
            # OpenRouter uses these to attribute traffic to an application
            "HTTP-Referer": referer or os.getenv("OPENROUTER_REFERER", "http://localhost"),
            "X-Title": self.APP_TITLE,
        }
        self.client = openai.AsyncOpenAI(
            api_key=self.api_key,
            base_url=self.base_url,
            timeout=timeout,
            max_retries=max_retries,
            default_headers=self.headers,
        )
        self.model_name = model_name or self.DEFAULT_MODEL
        self.logger = logging.getLogger(__name__)
        self.logger.info(f"Initialized OpenRouterAdapter with model: {self.model_name}")

    def _completion_kwargs(self, kwargs: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "temperature": kwargs.get("temperature", self.DEFAULT_TEMPERATURE),
            "max_tokens": kwargs.get("max_tokens", self.DEFAULT_MAX_TOKENS),
        }

    async def get_completion(self, model: Optional[str], messages: List[Dict[str, str]], **kwargs) -> str:
        """
        Gets a non-streaming completion from OpenRouter.
        """
        target_model = model if model is not None else self.model_name
        self.logger.debug(f"OpenRouter get_completion using model: {target_model}, kwargs: {kwargs}")
        try:
            response = await self.client.chat.completions.create(
                model=target_model,
                messages=messages,  # type: ignore
                stream=False,
                **self._completion_kwargs(kwargs)
            )
        except openai.APIError as e:
            self.logger.error(f"OpenRouter API error in get_completion: {e}")
            raise LLMServiceError(self.provider_name, f"API request failed - {type(e).__name__}: {e}") from e

        if not response.choices:
            raise LLMServiceError(self.provider_name, "response contained no choices")
        content = response.choices[0].message.content
        if content is None:
            self.logger.warning("OpenRouter response content was None.")
            return ""
        return content

    async def get_streaming_completion(self, model: Optional[str], messages: List[Dict[str, str]], **kwargs) -> AsyncGenerator[str, None]:
        """
        Gets a streaming completion from OpenRouter.
        """
        target_model = model if model is not None else self.model_name
        self.logger.debug(f"OpenRouter get_streaming_completion using model: {target_model}, kwargs: {kwargs}")
        try:
            stream = await self.client.chat.completions.create(
                model=target_model,
                messages=messages,  # type: ignore
                stream=True,
                **self._completion_kwargs(kwargs)
            )
            async for chunk in stream:
                if chunk.choices and chunk.choices[0].delta and chunk.choices[0].delta.content is not None:
                    yield chunk.choices[0].delta.content
        except openai.APIError as e:
            self.logger.error(f"OpenRouter API error in get_streaming_completion: {e}")
            raise LLMServiceError(self.provider_name, f"streaming request failed - {type(e).__name__}: {e}") from e

    async def list_models(self) -> List[Dict[str, Any]]:
        """
        Fetch the model catalogue from OpenRouter.

        Returns:
            The ``data`` list of the /models endpoint
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(
                    f"{self.base_url}/models",
                    headers={"Authorization": f"Bearer {self.api_key}", **self.headers},
                )
                response.raise_for_status()
                return response.json().get("data", [])
        except httpx.HTTPStatusError as e:
            self.logger.error(f"Failed to fetch models: {e.response.status_code} {e.response.text}")
            raise LLMServiceError(self.provider_name, f"model listing failed - {e.response.status_code}") from e
        except httpx.HTTPError as e:
            self.logger.error(f"Failed to fetch models: {e}")
            raise LLMServiceError(self.provider_name, f"model listing failed - {type(e).__name__}: {e}") from e
