#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Core Instinct MCTS Implementation
=================================

This module implements the instinct-driven Monte Carlo Tree Search: a
select -> expand -> evaluate -> backpropagate cycle over free-text
approaches, where selection is biased by each node's emotional state and
perseverance as well as by its UCT statistics.
"""
import enum
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from .instinct_config import (
    DOUBT_INDICATORS,
    NEUTRAL_SCORE,
    PERSEVERANCE_INDICATORS,
    validate_config,
)
from .llm_interface import CompletionOptions, ContentAnalysis, LLMInterface
from .node import DecisionNode, DecisionTree, MetricsUpdate, SearchCoefficients
from .prompts import (
    BRANCH_EXPLORATION_PROMPT,
    EVALUATION_PROMPT,
    FINAL_RECOMMENDATION_PROMPT,
    INITIAL_PROMPT,
    THOUGHT_PROMPT,
    format_approaches,
)
from .snapshots import SnapshotChannel, SnapshotEvent, TreeSnapshot
from .utils import clamp, extract_first_integer, extract_tree_statistics, truncate_text

logger = logging.getLogger(__name__)

# Floor added to the emotional weights of instinct selection
INSTINCT_WEIGHT_FLOOR = 0.001
# Scale of the emotional update applied during backpropagation
EMOTIONAL_LEARNING_RATE = 0.2
# A leaf with fewer children than this is expanded before evaluation
MIN_CHILDREN_BEFORE_EVALUATION = 2


class SearchPhase(enum.Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    SEARCHING = "searching"
    SETTLED = "settled"


@dataclass
class SearchResult:
    """Outcome of ``InstinctMCTS.run_full_search``."""
    best_approach: str
    best_node: DecisionNode
    best_score: float
    tree_history: List[TreeSnapshot] = field(default_factory=list)
    final_tree: Optional[TreeSnapshot] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "best_approach": self.best_approach,
            "best_node_id": self.best_node.id,
            "best_score": self.best_score,
            "history_length": len(self.tree_history),
            "final_tree": self.final_tree.to_dict() if self.final_tree else None,
        }


def count_indicators(text: str, indicators: List[str]) -> int:
    """Number of distinct indicators occurring in ``text`` (case-insensitive substring match)."""
    lowered = text.lower()
    return sum(1 for indicator in indicators if indicator in lowered)


def shows_perseverance(text: str) -> bool:
    """True when more perseverance indicators than doubt indicators occur in ``text``."""
    if not text:
        return False
    return count_indicators(text, PERSEVERANCE_INDICATORS) > count_indicators(text, DOUBT_INDICATORS)


class InstinctMCTS:
    """Instinct-driven Monte Carlo Tree Search over LLM-generated approaches."""

    def __init__(self,
                 llm_interface: LLMInterface,
                 problem: str,
                 context: str = "",
                 config: Optional[Dict[str, Any]] = None):
        """
        Initializes the search engine. No LLM call is made until ``initialize``.

        Args:
            llm_interface: An object implementing the LLMInterface protocol
            problem: The decision problem to explore
            context: Additional free-text context for every prompt
            config: Partial configuration merged over DEFAULT_CONFIG

        Raises:
            ValueError: If the configuration is out of range
        """
        self.llm = llm_interface
        self.problem = problem
        self.context = context
        self.config = validate_config(config or {})
        self.debug_logging = self.config.get("debug_logging", False)
        # Update logger level based on config
        logger.setLevel(logging.DEBUG if self.debug_logging else logging.INFO)

        self.coefficients = SearchCoefficients.from_config(self.config)
        self.rng = random.Random(self.config["seed"])
        self.tree = DecisionTree(rng=self.rng)
        self.selected_node: Optional[DecisionNode] = None
        self.history: List[TreeSnapshot] = []
        self.channel = SnapshotChannel()
        self.phase = SearchPhase.UNINITIALIZED
        self.simulations_completed = 0

    # --- properties ----------------------------------------------------

    @property
    def root(self) -> Optional[DecisionNode]:
        return self.tree.root

    @property
    def exploration_weight(self) -> float:
        return self.coefficients.exploration_weight

    @property
    def instinct_ratio(self) -> float:
        return self.config["instinct_ratio"]

    @property
    def confidence_bias(self) -> float:
        return self.coefficients.confidence_bias

    @property
    def perseverance_factor(self) -> float:
        return self.coefficients.perseverance_factor

    def _options(self, temperature_key: str, max_tokens: Optional[int] = None) -> CompletionOptions:
        return CompletionOptions(
            model=self.config.get("model_name"),
            temperature=self.config[temperature_key],
            max_tokens=max_tokens,
        )

    def _require_root(self) -> DecisionNode:
        root = self.tree.root
        if root is None:
            raise RuntimeError("Search has not been initialized; call initialize() first")
        return root

    # --- observability -------------------------------------------------

    def subscribe(self, callback: Callable[[SnapshotEvent], None]) -> Callable[[], None]:
        """Register a snapshot observer; returns its unsubscribe function."""
        return self.channel.subscribe(callback)

    def current_snapshot(self) -> Optional[TreeSnapshot]:
        root = self.tree.root
        if root is None:
            return None
        return TreeSnapshot.capture(root, self.selected_node)

    def _publish(self, kind: str, record: bool = True) -> TreeSnapshot:
        snapshot = TreeSnapshot.capture(self._require_root(), self.selected_node)
        if record:
            self.history.append(snapshot)
        self.channel.publish(SnapshotEvent(kind=kind, snapshot=snapshot))
        return snapshot

    def _apply_analysis(self, node: DecisionNode, analysis: ContentAnalysis) -> None:
        node.update_metrics(MetricsUpdate.from_mapping(analysis.as_unit_interval()))

    # --- search steps --------------------------------------------------

    async def initialize(self) -> DecisionNode:
        """
        Generate the initial approach and make it the root of a fresh tree.

        Any previous tree is discarded; the snapshot history is kept.
        Collaborator errors propagate.
        """
        prompt = INITIAL_PROMPT.format(problem=self.problem, context=self.context)
        logger.info(f"Initializing search for problem: '{truncate_text(self.problem, 80)}'")
        initial_content = await self.llm.generate_completion(prompt, self._options("initial_temperature"))

        analysis = await self.llm.analyze_content(initial_content)

        # The current tree stays live until the replacement is fully built
        tree = DecisionTree(rng=self.rng)
        root = tree.create_root(initial_content, self.coefficients)
        root.update_metrics(MetricsUpdate(
            emotional_state=analysis.emotional_state / 10,
            instinct_weight=analysis.instinct_vs_analysis / 10,
        ))
        if self.debug_logging:
            logger.debug(f"Root {root.id} analysis: {analysis.to_dict()}")

        self.tree = tree
        self.selected_node = root
        self.phase = SearchPhase.INITIALIZED
        self._publish("initialize")
        logger.info(f"Search initialized. Root node: {root.id}")
        return root

    def _instinct_choice(self, children: List[DecisionNode]) -> DecisionNode:
        """
        Pick a child with probability proportional to its floored emotional state.

        Children whose emotional state is all zero are drawn uniformly.
        """
        weights = [child.emotional_state + INSTINCT_WEIGHT_FLOOR for child in children]
        total = sum(weights)
        draw = self.rng.random()
        cumulative = 0.0
        for child, weight in zip(children, weights):
            cumulative += weight / total
            if draw < cumulative:
                return child
        # Rounding can leave the cumulative sum just below 1
        return children[-1]

    @staticmethod
    def _analytical_choice(children: List[DecisionNode]) -> DecisionNode:
        """Child with the strictly greatest selection score; the first one wins ties."""
        best_child = children[0]
        best_score = best_child.selection_score()
        for child in children[1:]:
            score = child.selection_score()
            if score > best_score:
                best_child, best_score = child, score
        return best_child

    def select(self) -> DecisionNode:
        """
        Descend from the root to a leaf, choosing by instinct or by score at each level.

        Returns:
            The selected leaf, also stored as ``selected_node``
        """
        node = self._require_root()
        path = [node.id]
        while node.children_ids:
            children = node.children
            if self.rng.random() < self.instinct_ratio:
                node = self._instinct_choice(children)
            else:
                node = self._analytical_choice(children)
            path.append(node.id)
        self.selected_node = node
        if self.debug_logging:
            logger.debug(f"Selection path: {' -> '.join(path)}")
        return node

    async def expand(self, node: DecisionNode, num_children: Optional[int] = None) -> DecisionNode:
        """
        Generate ``num_children`` continuations of ``node`` concurrently and attach them.

        Children are attached in request order and analysed one after another.

        Returns:
            The new child with the highest instinct weight (first one on ties)

        Raises:
            LLMServiceError: If generation fails; children attached before an
                analysis failure remain attached
        """
        count = num_children if num_children is not None else self.config["num_children"]
        if count < 1:
            raise ValueError(f"num_children must be positive, got {count}")

        prompt = THOUGHT_PROMPT.format(problem=self.problem, context=self.context, current_approach=node.content)
        if self.debug_logging:
            logger.debug(f"Expanding node {node.id} with {count} children")
        completions = await self.llm.generate_multiple_completions(prompt, count, self._options("expansion_temperature"))

        new_children = [node.add_child(content) for content in completions]
        if not new_children:
            raise RuntimeError(f"Expansion of node {node.id} produced no children")

        for child in new_children:
            analysis = await self.llm.analyze_content(child.content)
            self._apply_analysis(child, analysis)
            if self.debug_logging:
                logger.debug(f"Child {child.id}: '{truncate_text(child.content, 60)}' -> {analysis.to_dict()}")

        ranked = sorted(new_children, key=lambda child: child.instinct_weight, reverse=True)
        self._publish("expand", record=False)
        return ranked[0]

    async def evaluate(self, node: DecisionNode) -> float:
        """
        Score a node's approach on a 1-10 scale, boosted when it shows perseverance.

        Never raises: any failure is logged and the neutral score is returned.
        """
        try:
            prompt = EVALUATION_PROMPT.format(problem=self.problem, context=self.context, approach=node.content)
            response = await self.llm.generate_completion(
                prompt, self._options("evaluation_temperature", self.config["evaluation_max_tokens"])
            )
            raw = extract_first_integer(response)
            if raw is None:
                logger.warning(f"No score in evaluation of node {node.id}: '{truncate_text(response, 40)}'. Using {NEUTRAL_SCORE}.")
                raw = NEUTRAL_SCORE
            score = float(clamp(raw, 1, 10))

            if shows_perseverance(node.content):
                score *= 1 + node.perseverance_factor
                if self.debug_logging:
                    logger.debug(f"Perseverance boost applied to node {node.id}")
            if self.debug_logging:
                logger.debug(f"Node {node.id} evaluation result: {score:.2f}")
            return score
        except Exception as e:
            logger.error(f"Evaluation error for node {node.id}: {e}", exc_info=self.debug_logging)
            return float(NEUTRAL_SCORE)

    def backpropagate(self, node: DecisionNode, score: float) -> None:
        """Add one visit and ``score`` to every node from ``node`` up to the root, nudging emotional state."""
        emotional_delta = (score / 10 - 0.5) * EMOTIONAL_LEARNING_RATE
        current: Optional[DecisionNode] = node
        path_len = 0
        while current is not None:
            current.visits += 1
            current.value += score
            current.update_metrics(MetricsUpdate(emotional_state=current.emotional_state + emotional_delta))
            current = current.parent
            path_len += 1
        if self.debug_logging:
            logger.debug(f"Backpropagated {score:.2f} from node {node.id} (path length: {path_len})")

    async def _run_single_simulation(self) -> None:
        leaf = self.select()
        node_to_evaluate = leaf
        if len(leaf.children_ids) < MIN_CHILDREN_BEFORE_EVALUATION:
            node_to_evaluate = await self.expand(leaf)
            self.selected_node = node_to_evaluate
        score = await self.evaluate(node_to_evaluate)
        self.backpropagate(node_to_evaluate, score)
        self.simulations_completed += 1
        self._publish("simulation")

    async def run_iteration(self, num_simulations: Optional[int] = None) -> DecisionNode:
        """
        Run ``num_simulations`` select/expand/evaluate/backpropagate cycles.

        Returns:
            The best node by visit count after the cycles
        """
        self._require_root()
        count = num_simulations if num_simulations is not None else self.config["simulations_per_iteration"]
        self.phase = SearchPhase.SEARCHING
        for i in range(count):
            if self.debug_logging:
                logger.debug(f"--- Sim {i + 1}/{count} ---")
            await self._run_single_simulation()
        return self.best_node()

    def best_node(self, start: Optional[DecisionNode] = None) -> DecisionNode:
        """Follow the most-visited child (first one on ties) from ``start`` or the root down to a leaf."""
        node = start if start is not None else self._require_root()
        while node.children_ids:
            children = node.children
            best_child = children[0]
            for child in children[1:]:
                if child.visits > best_child.visits:
                    best_child = child
            node = best_child
        return node

    async def run_full_search(self,
                              iterations: Optional[int] = None,
                              simulations_per_iteration: Optional[int] = None) -> SearchResult:
        """
        Initialize if needed, then run ``iterations`` rounds of ``run_iteration``.

        After each round the current best node is evaluated again; that fresh
        score is not backpropagated and only feeds the running maximum.
        """
        num_iterations = iterations if iterations is not None else self.config["iterations"]
        num_simulations = (simulations_per_iteration if simulations_per_iteration is not None
                           else self.config["simulations_per_iteration"])
        if self.tree.root is None:
            await self.initialize()

        logger.info(f"Starting search: {num_iterations} iterations, {num_simulations} simulations/iter.")
        best_score = float("-inf")
        best: Optional[DecisionNode] = None
        for i in range(num_iterations):
            candidate = await self.run_iteration(num_simulations)
            score = await self.evaluate(candidate)
            if score > best_score:
                best_score, best = score, candidate
            logger.info(f"--- Finished Iteration {i + 1}/{num_iterations}. Best score so far: {best_score:.2f} ---")

        if best is None:
            best = self.best_node()
            best_score = await self.evaluate(best)

        self.phase = SearchPhase.SETTLED
        logger.info(f"Search finished. Best node {best.id} scored {best_score:.2f}")
        return SearchResult(
            best_approach=best.content,
            best_node=best,
            best_score=best_score,
            tree_history=list(self.history),
            final_tree=self.current_snapshot(),
        )

    # --- manual exploration --------------------------------------------

    def _find_node(self, node_id: str) -> DecisionNode:
        self._require_root()
        node = self.tree.get(node_id)
        if node is None:
            raise KeyError(f"Node {node_id} not found")
        return node

    async def explore_alternative(self, node_id: str) -> Tuple[DecisionNode, float]:
        """
        Expand a chosen node, then evaluate and backpropagate the returned child.

        Raises:
            RuntimeError: If the search has not been initialized
            KeyError: If ``node_id`` is not in the tree
        """
        node = self._find_node(node_id)
        self.phase = SearchPhase.SEARCHING
        child = await self.expand(node)
        self.selected_node = child
        score = await self.evaluate(child)
        self.backpropagate(child, score)
        self._publish("exploration")
        self.phase = SearchPhase.SETTLED
        logger.info(f"Explored alternative from {node_id}: child {child.id} scored {score:.2f}")
        return child, score

    async def explore_branch(self, node_id: str, direction: str) -> Tuple[DecisionNode, float]:
        """
        Grow a single child of ``node_id`` that follows a given branch direction.

        Raises:
            RuntimeError: If the search has not been initialized
            KeyError: If ``node_id`` is not in the tree
        """
        node = self._find_node(node_id)
        self.phase = SearchPhase.SEARCHING
        current_path = "\n-> ".join(step.content for step in node.path_to_root())
        prompt = BRANCH_EXPLORATION_PROMPT.format(
            problem=self.problem, context=self.context, current_path=current_path, branch=direction
        )
        content = await self.llm.generate_completion(prompt, self._options("expansion_temperature"))
        child = node.add_child(content)
        self._apply_analysis(child, await self.llm.analyze_content(content))
        self.selected_node = child
        score = await self.evaluate(child)
        self.backpropagate(child, score)
        self._publish("exploration")
        self.phase = SearchPhase.SETTLED
        logger.info(f"Explored branch '{truncate_text(direction, 40)}' from {node_id}: child {child.id} scored {score:.2f}")
        return child, score

    def top_leaves(self, max_count: int = 3) -> List[DecisionNode]:
        """Leaves ordered by descending visits (tree order on ties)."""
        leaves = [node for node in self._require_root().all_nodes() if node.is_leaf]
        return sorted(leaves, key=lambda node: node.visits, reverse=True)[:max_count]

    async def synthesize_recommendation(self, max_approaches: int = 3) -> str:
        """Ask the collaborator to combine the most-visited approaches into one recommendation."""
        approaches = [leaf.content for leaf in self.top_leaves(max_approaches)]
        prompt = FINAL_RECOMMENDATION_PROMPT.format(
            problem=self.problem, context=self.context, approaches_text=format_approaches(approaches)
        )
        return await self.llm.generate_completion(prompt, self._options("synthesis_temperature"))

    def tree_statistics(self) -> Dict[str, Any]:
        return extract_tree_statistics(self.tree.root)

    def status(self) -> Dict[str, Any]:
        """Summary of the engine state for status reporting."""
        root = self.tree.root
        best = self.best_node() if root is not None else None
        return {
            "phase": self.phase.value,
            "problem": self.problem,
            "simulations_completed": self.simulations_completed,
            "history_length": len(self.history),
            "selected_node": self.selected_node.node_to_state_dict() if self.selected_node else None,
            "best_node": best.node_to_state_dict() if best else None,
            "tree_statistics": self.tree_statistics(),
        }
