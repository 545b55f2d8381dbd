#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Instinct MCTS Configuration
===========================

This module stores default configurations, indicator vocabularies and
provider defaults for the Instinct MCTS package.
"""
from typing import Dict, Any, List, Optional

DEFAULT_CONFIG: Dict[str, Any] = {
    "exploration_weight": 1.4,       # UCT exploration coefficient
    "instinct_ratio": 0.6,           # Probability of stochastic (instinct) selection
    "confidence_bias": 0.2,          # Amplifies exploration by emotional state
    "perseverance_factor": 0.7,      # Flat selection bonus and evaluation multiplier
    "iterations": 3,
    "simulations_per_iteration": 5,
    "num_children": 2,               # Children generated per expansion
    "seed": None,                    # Seed for selection and node ids
    "model_name": None,              # None -> adapter default
    "initial_temperature": 0.7,
    "expansion_temperature": 0.9,
    "evaluation_temperature": 0.3,
    "evaluation_max_tokens": 10,
    "synthesis_temperature": 0.7,
    "request_timeout": 60.0,         # Seconds, passed to every provider client
    "max_retries": 2,                # OpenRouter and Anthropic clients; Ollama has no retry option
    "debug_logging": False,
}

PERSEVERANCE_INDICATORS: List[str] = [
    "continue", "persist", "keep going", "don't give up",
    "try again", "despite", "nevertheless", "however",
    "still worth", "potential", "opportunity", "challenge",
]

DOUBT_INDICATORS: List[str] = [
    "stop", "quit", "abandon", "too difficult", "impossible",
    "not worth", "failure", "unlikely", "risky", "doubt",
]

# Default score used whenever an LLM rating cannot be obtained or parsed
NEUTRAL_SCORE = 5

PROVIDER_DEFAULT_MODELS: Dict[str, str] = {
    "openrouter": "anthropic/claude-3-sonnet",
    "anthropic": "claude-3-haiku-20240307",
    "ollama": "qwen3:latest",
}

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise ValueError(message)


def validate_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge a partial configuration with the defaults and validate it.

    Args:
        config: Partial configuration; unknown keys are kept untouched

    Returns:
        A new dictionary holding the complete configuration

    Raises:
        ValueError: If any search parameter is out of range
    """
    cfg = {**DEFAULT_CONFIG, **(config or {})}

    _require(isinstance(cfg["exploration_weight"], (int, float)) and cfg["exploration_weight"] > 0,
             f"exploration_weight must be > 0, got {cfg['exploration_weight']!r}")
    _require(isinstance(cfg["instinct_ratio"], (int, float)) and 0.0 <= cfg["instinct_ratio"] <= 1.0,
             f"instinct_ratio must be within [0, 1], got {cfg['instinct_ratio']!r}")
    for key in ("confidence_bias", "perseverance_factor"):
        _require(isinstance(cfg[key], (int, float)) and cfg[key] >= 0,
                 f"{key} must be >= 0, got {cfg[key]!r}")
    for key in ("iterations", "simulations_per_iteration", "num_children"):
        value = cfg[key]
        _require(isinstance(value, int) and not isinstance(value, bool) and value > 0,
                 f"{key} must be a positive integer, got {value!r}")
    seed: Optional[Any] = cfg["seed"]
    _require(seed is None or isinstance(seed, int), f"seed must be an integer or None, got {seed!r}")
    return cfg
