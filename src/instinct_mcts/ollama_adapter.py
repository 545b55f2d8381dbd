#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Ollama LLM Adapter
==================

This module defines the OllamaAdapter class for interacting with local Ollama models.
"""
import logging
import os
from typing import Any, AsyncGenerator, Dict, List, Optional

import ollama  # type: ignore

from .base_llm_adapter import BaseLLMAdapter, LLMServiceError
from .instinct_config import PROVIDER_DEFAULT_MODELS


class OllamaAdapter(BaseLLMAdapter):
    """
    LLM Adapter for local Ollama models.
    """
    provider_name = "ollama"
    DEFAULT_MODEL = PROVIDER_DEFAULT_MODELS["ollama"]

    def __init__(self, model_name: Optional[str] = None, host: Optional[str] = None, timeout: float = 60.0, **kwargs):
        super().__init__(model_name=model_name, **kwargs)  # api_key is accepted but unused

        self.model_name = model_name or self.DEFAULT_MODEL
        self.host = host or os.getenv("OLLAMA_HOST", "http://localhost:11434")
        self.timeout = timeout
        self.client = ollama.AsyncClient(host=self.host, timeout=timeout)
        self.logger = logging.getLogger(__name__)
        self.logger.info(f"Initialized OllamaAdapter with model: {self.model_name} via host: {self.host}")

    @staticmethod
    def _options(kwargs: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Map generic request kwargs onto Ollama model options."""
        options: Dict[str, Any] = dict(kwargs.get("options") or {})
        if kwargs.get("temperature") is not None:
            options["temperature"] = kwargs["temperature"]
        if kwargs.get("max_tokens") is not None:
            options["num_predict"] = kwargs["max_tokens"]
        return options or None

    async def get_completion(self, model: Optional[str], messages: List[Dict[str, str]], **kwargs) -> str:
        target_model = model if model is not None else self.model_name
        self.logger.debug(f"Ollama get_completion using model: {target_model}, kwargs: {kwargs}")
        try:
            response = await self.client.chat(
                model=target_model,
                messages=messages,  # type: ignore
                options=self._options(kwargs),
            )
        except (ollama.ResponseError, ConnectionError) as e:
            self.logger.error(f"Ollama API error in get_completion: {e}")
            raise LLMServiceError(self.provider_name, f"request failed - {type(e).__name__}: {e}") from e
        return response["message"]["content"] or ""

    async def get_streaming_completion(self, model: Optional[str], messages: List[Dict[str, str]], **kwargs) -> AsyncGenerator[str, None]:
        target_model = model if model is not None else self.model_name
        self.logger.debug(f"Ollama get_streaming_completion using model: {target_model}, kwargs: {kwargs}")
        try:
            async for part in await self.client.chat(
                model=target_model,
                messages=messages,  # type: ignore
                stream=True,
                options=self._options(kwargs),
            ):
                content = part["message"]["content"]
                if content:
                    yield content
        except (ollama.ResponseError, ConnectionError) as e:
            self.logger.error(f"Ollama API error in get_streaming_completion: {e}")
            raise LLMServiceError(self.provider_name, f"streaming request failed - {type(e).__name__}: {e}") from e

    async def list_models(self) -> List[str]:
        """Names of the models installed on the Ollama host."""
        try:
            response = await self.client.list()
        except (ollama.ResponseError, ConnectionError) as e:
            self.logger.error(f"Failed to list Ollama models: {e}")
            raise LLMServiceError(self.provider_name, f"model listing failed - {type(e).__name__}: {e}") from e
        return [entry.model for entry in response.models if entry.model]
