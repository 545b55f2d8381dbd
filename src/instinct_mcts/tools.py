#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
MCP Tools for Instinct MCTS
===========================

This module defines the MCP tools that expose the Instinct MCTS engine.
"""
import logging
import os
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from mcp.server.fastmcp import FastMCP

from .base_llm_adapter import BaseLLMAdapter
from .instinct_config import DEFAULT_CONFIG, PROVIDER_DEFAULT_MODELS
from .instinct_core import InstinctMCTS, SearchPhase
from .snapshots import SnapshotEvent
from .utils import truncate_text

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = list(PROVIDER_DEFAULT_MODELS)

# Global state to maintain between tool calls
_global_state: Dict[str, Any] = {
    "engine": None,
    "config": None,
    "active_llm_provider": None,
    "active_model_name": None,
    "last_result": None,
    "events": [],
}


def get_llm_adapter(provider_name: str,
                    model_name: Optional[str] = None,
                    config: Optional[Dict[str, Any]] = None) -> BaseLLMAdapter:
    """
    Instantiate the adapter for ``provider_name``.

    Raises:
        ValueError: For an unsupported provider or a missing API key
    """
    cfg = config or DEFAULT_CONFIG
    provider = provider_name.lower()
    if provider == "openrouter":
        from .openrouter_adapter import OpenRouterAdapter
        return OpenRouterAdapter(
            api_key=os.getenv("OPENROUTER_API_KEY"),
            model_name=model_name,
            timeout=cfg["request_timeout"],
            max_retries=cfg["max_retries"],
        )
    if provider == "anthropic":
        from .anthropic_adapter import AnthropicAdapter
        return AnthropicAdapter(
            api_key=os.getenv("ANTHROPIC_API_KEY"),
            model_name=model_name,
            timeout=cfg["request_timeout"],
            max_retries=cfg["max_retries"],
        )
    if provider == "ollama":
        from .ollama_adapter import OllamaAdapter
        return OllamaAdapter(model_name=model_name, host=os.getenv("OLLAMA_HOST"), timeout=cfg["request_timeout"])
    raise ValueError(f"Unsupported LLM provider: {provider_name}. Supported: {', '.join(SUPPORTED_PROVIDERS)}.")


def _record_event(event: SnapshotEvent) -> None:
    """Keep a compact trace of the engine's snapshot events."""
    _global_state["events"].append({
        "kind": event.kind,
        "selected_node_id": event.snapshot.selected_node_id,
        "timestamp": event.snapshot.timestamp.isoformat(),
    })


def _engine_or_error() -> Optional[Dict[str, Any]]:
    if _global_state.get("engine") is None:
        return {"status": "error", "error": "Search not initialized. Call initialize_search first."}
    return None


def register_instinct_tools(mcp: FastMCP) -> None:
    """
    Register all Instinct MCTS tools with the MCP server.

    Args:
        mcp: The FastMCP instance to register tools with
    """
    # Load environment variables from .env file
    load_dotenv()

    _global_state["config"] = DEFAULT_CONFIG.copy()
    _global_state["active_llm_provider"] = os.getenv("DEFAULT_LLM_PROVIDER", "openrouter").lower()
    _global_state["active_model_name"] = os.getenv("DEFAULT_MODEL_NAME")

    @mcp.tool()
    async def initialize_search(problem: str,
                                context: str = "",
                                provider_name: Optional[str] = None,
                                model_name: Optional[str] = None,
                                config_updates: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Start a new instinct-driven search for a decision problem.

        Args:
            problem: The decision problem to explore
            context: Additional context for every prompt
            provider_name: "openrouter", "anthropic" or "ollama".
                           Defaults to DEFAULT_LLM_PROVIDER from .env or "openrouter".
            model_name: Model for the provider. Defaults to DEFAULT_MODEL_NAME or the provider default.
            config_updates: Optional configuration overrides (exploration_weight, instinct_ratio, ...)

        Returns:
            Dictionary with the initial approach and the root's instinct metrics
        """
        try:
            target_provider = (provider_name or _global_state["active_llm_provider"]).lower()
            target_model = model_name or _global_state["active_model_name"] or PROVIDER_DEFAULT_MODELS.get(target_provider)
            logger.info(f"Initializing search with provider: {target_provider}, model: {target_model}")

            # Overrides apply to this search only; every call starts from the defaults
            cfg = {**_global_state["config"], **(config_updates or {})}
            llm_adapter = get_llm_adapter(target_provider, target_model, cfg)
            engine = InstinctMCTS(llm_adapter, problem, context, cfg)
            _global_state["events"] = []
            engine.subscribe(_record_event)
            root = await engine.initialize()

            _global_state.update({
                "engine": engine,
                "active_llm_provider": target_provider,
                "active_model_name": target_model,
                "last_result": None,
            })
            return {
                "status": "initialized",
                "problem": problem,
                "provider": target_provider,
                "model_used": target_model,
                "root": root.node_to_state_dict(),
                "config": {k: v for k, v in engine.config.items() if not k.startswith("_")},
            }
        except ValueError as ve:
            logger.error(f"Configuration error in initialize_search: {ve}", exc_info=True)
            return {"status": "config_error", "error": f"Configuration error: {ve}"}
        except Exception as e:
            logger.error(f"Error in initialize_search: {e}", exc_info=True)
            return {"status": "error", "error": f"Failed to initialize search: {e}"}

    @mcp.tool()
    async def run_search(iterations: Optional[int] = None,
                         simulations_per_iteration: Optional[int] = None) -> Dict[str, Any]:
        """
        Run the full search loop on the initialized problem.

        Args:
            iterations: Number of rounds (configuration default if omitted)
            simulations_per_iteration: Simulations per round (configuration default if omitted)

        Returns:
            Dictionary with the best approach, its score and tree statistics
        """
        error = _engine_or_error()
        if error:
            return error
        engine: InstinctMCTS = _global_state["engine"]
        try:
            result = await engine.run_full_search(iterations, simulations_per_iteration)
            _global_state["last_result"] = result
            return {
                "status": "completed",
                "best_approach": result.best_approach,
                "best_node_id": result.best_node.id,
                "best_score": result.best_score,
                "history_length": len(result.tree_history),
                "tree_statistics": engine.tree_statistics(),
            }
        except Exception as e:
            logger.error(f"Error in run_search: {e}", exc_info=True)
            return {"status": "error", "error": f"Search failed: {e}"}

    @mcp.tool()
    async def explore_alternative(node_id: str, direction: Optional[str] = None) -> Dict[str, Any]:
        """
        Manually grow the tree from a chosen node.

        Args:
            node_id: Identifier of the node to explore from
            direction: Optional branch direction; without it the node is expanded normally

        Returns:
            Dictionary with the new child and its score
        """
        error = _engine_or_error()
        if error:
            return error
        engine: InstinctMCTS = _global_state["engine"]
        try:
            if direction:
                child, score = await engine.explore_branch(node_id, direction)
            else:
                child, score = await engine.explore_alternative(node_id)
            return {"status": "explored", "child": child.node_to_state_dict(), "score": score}
        except KeyError as ke:
            return {"status": "error", "error": f"Unknown node: {ke}"}
        except Exception as e:
            logger.error(f"Error in explore_alternative: {e}", exc_info=True)
            return {"status": "error", "error": f"Exploration failed: {e}"}

    @mcp.tool()
    async def get_search_status() -> Dict[str, Any]:
        """
        Get the current status of the search.

        Returns:
            Dictionary with phase, selected and best nodes and tree statistics
        """
        engine: Optional[InstinctMCTS] = _global_state.get("engine")
        if engine is None:
            return {"initialized": False, "message": "Search not initialized. Call initialize_search first."}
        try:
            status = engine.status()
            status.update({
                "initialized": engine.phase is not SearchPhase.UNINITIALIZED,
                "active_llm_provider": _global_state.get("active_llm_provider"),
                "active_model_name": _global_state.get("active_model_name"),
                "recent_events": _global_state["events"][-10:],
            })
            return status
        except Exception as e:
            logger.error(f"Error getting search status: {e}")
            return {"initialized": True, "status": "error", "error": f"Error getting search status: {e}"}

    @mcp.tool()
    async def get_tree_snapshot(history_index: Optional[int] = None) -> Dict[str, Any]:
        """
        Get a snapshot of the search tree.

        Args:
            history_index: Index into the snapshot history (negative values count
                from the end); the live tree when omitted

        Returns:
            Dictionary with the nested tree, the selected node id and a timestamp
        """
        error = _engine_or_error()
        if error:
            return error
        engine: InstinctMCTS = _global_state["engine"]
        try:
            if history_index is None:
                snapshot = engine.current_snapshot()
            else:
                snapshot = engine.history[history_index]
            return {"status": "success", "history_length": len(engine.history), "snapshot": snapshot.to_dict()}
        except IndexError:
            return {"status": "error", "error": f"No snapshot at index {history_index} (history length {len(engine.history)})"}
        except Exception as e:
            logger.error(f"Error in get_tree_snapshot: {e}", exc_info=True)
            return {"status": "error", "error": f"Snapshot failed: {e}"}

    @mcp.tool()
    async def get_recommendation(max_approaches: int = 3) -> Dict[str, Any]:
        """
        Synthesize a final recommendation from the most-visited approaches.

        Args:
            max_approaches: Number of leaf approaches to combine

        Returns:
            Dictionary with the recommendation text
        """
        error = _engine_or_error()
        if error:
            return error
        engine: InstinctMCTS = _global_state["engine"]
        try:
            recommendation = await engine.synthesize_recommendation(max_approaches)
            logger.info(f"Generated recommendation: {truncate_text(recommendation, 80)}")
            return {
                "status": "success",
                "recommendation": recommendation,
                "approaches_considered": [leaf.id for leaf in engine.top_leaves(max_approaches)],
            }
        except Exception as e:
            logger.error(f"Error in get_recommendation: {e}", exc_info=True)
            return {"status": "error", "error": f"Recommendation failed: {e}"}

    @mcp.tool()
    async def list_providers(include_models: bool = False) -> Dict[str, Any]:
        """
        List the supported LLM providers and their default models.

        Args:
            include_models: Also query the active provider for its available models
                (OpenRouter and Ollama only)

        Returns:
            Dictionary with providers, defaults and the active selection
        """
        response: Dict[str, Any] = {
            "status": "success",
            "providers": SUPPORTED_PROVIDERS,
            "default_models": PROVIDER_DEFAULT_MODELS,
            "active_llm_provider": _global_state.get("active_llm_provider"),
            "active_model_name": _global_state.get("active_model_name"),
        }
        if not include_models:
            return response
        provider = _global_state.get("active_llm_provider") or "openrouter"
        try:
            adapter = get_llm_adapter(provider, _global_state.get("active_model_name"), _global_state.get("config"))
            list_models = getattr(adapter, "list_models", None)
            if list_models is None:
                response["models"] = []
                response["message"] = f"Provider '{provider}' does not support model listing."
                return response
            models: List[Any] = await list_models()
            response["models"] = [m.get("id") if isinstance(m, dict) else m for m in models]
            return response
        except Exception as e:
            logger.error(f"Error listing models for {provider}: {e}", exc_info=True)
            response.update({"status": "error", "error": f"Model listing failed: {e}"})
            return response
