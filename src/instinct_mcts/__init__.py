"""
Instinct MCTS Package
=====================

An instinct-driven Monte Carlo Tree Search engine for decision support,
exposed as a Model Context Protocol (MCP) server.
"""

# Import key components to make them available at package level
from .instinct_config import DEFAULT_CONFIG, validate_config
from .utils import setup_logger, truncate_text, extract_tree_statistics
from .node import DecisionNode, DecisionTree, InstinctMetrics, MetricsUpdate, SearchCoefficients
from .snapshots import SnapshotChannel, SnapshotEvent, TreeSnapshot
from .instinct_core import InstinctMCTS, SearchPhase, SearchResult, shows_perseverance

# LLM Adapters and Interface
from .llm_interface import CompletionOptions, ContentAnalysis, LLMInterface
from .base_llm_adapter import BaseLLMAdapter, LLMServiceError
from .openrouter_adapter import OpenRouterAdapter
from .anthropic_adapter import AnthropicAdapter
from .ollama_adapter import OllamaAdapter

__all__ = [
    'InstinctMCTS', 'SearchPhase', 'SearchResult', 'shows_perseverance',
    'DecisionNode', 'DecisionTree', 'InstinctMetrics', 'MetricsUpdate', 'SearchCoefficients',
    'SnapshotChannel', 'SnapshotEvent', 'TreeSnapshot',
    'DEFAULT_CONFIG', 'validate_config',
    'setup_logger', 'truncate_text', 'extract_tree_statistics',
    'LLMInterface', 'CompletionOptions', 'ContentAnalysis',
    'BaseLLMAdapter', 'LLMServiceError', 'OpenRouterAdapter', 'AnthropicAdapter', 'OllamaAdapter',
]

__version__ = "0.1.0"
