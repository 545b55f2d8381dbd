"""Shared fixtures: a deterministic in-process LLM adapter."""
import asyncio
import json
from typing import Any, AsyncGenerator, Callable, Dict, List, Optional

import pytest

from instinct_mcts.base_llm_adapter import BaseLLMAdapter, LLMServiceError

DEFAULT_ANALYSIS = {"confidence": 7, "perseverance": 6, "instinctVsAnalysis": 8, "emotionalState": 6}


class StubLLM(BaseLLMAdapter):
    """
    Answers each prompt template with fixed text.

    Generated thoughts are numbered in request order ("Approach 1", ...).
    """
    provider_name = "stub"

    def __init__(self,
                 score: str = "7",
                 initial: str = "Initial approach: gather the facts first",
                 analysis: Optional[Callable[[str], Dict[str, Any]]] = None,
                 fail: bool = False,
                 delays: Optional[List[float]] = None):
        super().__init__(model_name="stub-model")
        self.score = score
        self.initial = initial
        self.analysis = analysis or (lambda text: DEFAULT_ANALYSIS)
        self.fail = fail
        self.delays = list(delays or [])
        self.thought_count = 0
        self.calls: List[Dict[str, Any]] = []

    def _respond(self, prompt: str) -> str:
        if "Rate this approach" in prompt:
            return self.score
        if "provide scores for these dimensions" in prompt:
            text = prompt.split('"""')[1].strip()
            return "Here you go: " + json.dumps(self.analysis(text))
        if "Generate a next step" in prompt:
            self.thought_count += 1
            return f"Approach {self.thought_count}: continue despite the challenge"
        if "Provide an initial approach" in prompt:
            return self.initial
        if "explore a branch" in prompt:
            return "Branch approach: try again with a smaller pilot"
        if "synthesize a final recommendation" in prompt:
            return "Final recommendation: run the pilot"
        return "5"

    async def get_completion(self, model: Optional[str], messages: List[Dict[str, str]], **kwargs) -> str:
        prompt = messages[-1]["content"]
        self.calls.append({"prompt": prompt, "model": model, **kwargs})
        if self.fail:
            raise LLMServiceError(self.provider_name, "service unavailable")
        response = self._respond(prompt)
        if self.delays:
            await asyncio.sleep(self.delays.pop(0))
        return response

    async def get_streaming_completion(self, model: Optional[str], messages: List[Dict[str, str]], **kwargs) -> AsyncGenerator[str, None]:
        if self.fail:
            raise LLMServiceError(self.provider_name, "service unavailable")
        for word in ["stay ", "the ", "course"]:
            yield word

    def prompts_containing(self, marker: str) -> List[Dict[str, Any]]:
        return [call for call in self.calls if marker in call["prompt"]]


@pytest.fixture
def stub_llm() -> StubLLM:
    return StubLLM()
