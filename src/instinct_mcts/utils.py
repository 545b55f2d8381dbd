#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Utility Functions for Instinct MCTS
===================================

This module provides logging setup, text helpers and tree statistics used
across the package.
"""
import logging
import re
from typing import Any, Dict, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .node import DecisionNode

# Setup logger for this module's internal use
logger = logging.getLogger(__name__)


def setup_logger(name: str = "instinct_mcts", level: int = logging.INFO) -> logging.Logger:
    """
    Set up a configurable logger with proper formatting and handlers.

    Args:
        name: The name of the logger instance
        level: The logging level (e.g., logging.INFO, logging.DEBUG)

    Returns:
        Configured logger instance ready for use

    Note:
        Avoids duplicate handlers if logger already configured
    """
    log = logging.getLogger(name)
    log.setLevel(level)
    if not log.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s [%(levelname)s] %(message)s"
        )
        handler.setFormatter(formatter)
        log.addHandler(handler)
        log.propagate = False
    else:
        for handler_item in log.handlers:
            handler_item.setLevel(level)
    return log


def truncate_text(text: Any, max_length: int = 200) -> str:
    """
    Truncate text for display purposes, breaking on a word boundary.

    Args:
        text: Text to truncate (will be converted to string)
        max_length: Maximum length before truncation

    Returns:
        Truncated text with "..." suffix if truncated
    """
    if not text:
        return ""
    text_str = str(text).strip()
    text_str = re.sub(r"^```(json|markdown)?\s*", "", text_str, flags=re.IGNORECASE | re.MULTILINE)
    text_str = re.sub(r"\s*```$", "", text_str, flags=re.MULTILINE).strip()
    if len(text_str) <= max_length:
        return text_str
    last_space = text_str.rfind(" ", 0, max_length)
    return text_str[:last_space] + "..." if last_space != -1 else text_str[:max_length] + "..."


def extract_first_integer(text: Optional[str]) -> Optional[int]:
    """Return the first run of digits in ``text`` as an int, or None."""
    if not text:
        return None
    match = re.search(r"\d+", text)
    return int(match.group(0)) if match else None


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def extract_tree_statistics(root: Optional["DecisionNode"]) -> Dict[str, Any]:
    """
    Compute shape statistics for the subtree rooted at ``root``.

    Returns:
        Dictionary with node_count, max_depth, avg_branching_factor
        (rounded to 2 decimals), leaf_nodes and non_leaf_nodes
    """
    if root is None:
        return {"node_count": 0, "max_depth": 0, "avg_branching_factor": 0.0,
                "leaf_nodes": 0, "non_leaf_nodes": 0}

    node_count = 0
    max_depth = 0
    non_leaf_nodes = 0
    total_children = 0
    for node in root.all_nodes():
        node_count += 1
        max_depth = max(max_depth, node.depth - root.depth)
        if node.children_ids:
            non_leaf_nodes += 1
            total_children += len(node.children_ids)

    avg_branching = total_children / non_leaf_nodes if non_leaf_nodes else 0.0
    return {
        "node_count": node_count,
        "max_depth": max_depth,
        "avg_branching_factor": round(avg_branching, 2),
        "leaf_nodes": node_count - non_leaf_nodes,
        "non_leaf_nodes": non_leaf_nodes,
    }
