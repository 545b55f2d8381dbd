#!/usr/bin/env python3
"""
Decision Nodes for Instinct MCTS
================================

This module defines the node arena (DecisionTree), the DecisionNode class and
the small value objects that carry instinct metrics and search coefficients.
"""
import logging
import math
import random
import string
from dataclasses import dataclass
from datetime import datetime
from typing import Any, ClassVar, Dict, Iterator, List, Mapping, Optional, Tuple

from .instinct_config import DEFAULT_CONFIG
from .utils import clamp, truncate_text

# Setup logger for this module
logger = logging.getLogger(__name__)

# Guards against division by zero and log(0) in the selection score
EPSILON = 1e-6


@dataclass(frozen=True)
class SearchCoefficients:
    """Tunable coefficients copied from the engine into every node of a tree."""
    exploration_weight: float = DEFAULT_CONFIG["exploration_weight"]
    confidence_bias: float = DEFAULT_CONFIG["confidence_bias"]
    perseverance_factor: float = DEFAULT_CONFIG["perseverance_factor"]

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "SearchCoefficients":
        return cls(
            exploration_weight=float(config["exploration_weight"]),
            confidence_bias=float(config["confidence_bias"]),
            perseverance_factor=float(config["perseverance_factor"]),
        )


@dataclass(frozen=True)
class MetricsUpdate:
    """
    A partial update of a node's instinct metrics.

    Fields left as None are not touched by ``InstinctMetrics.merge``.
    """
    emotional_state: Optional[float] = None
    instinct_weight: Optional[float] = None
    confidence: Optional[float] = None
    perseverance: Optional[float] = None

    # Accepted spellings for each field when building from a loose mapping
    KEY_ALIASES: ClassVar[Dict[str, Tuple[str, ...]]] = {
        "emotional_state": ("emotional_state", "emotionalState"),
        "instinct_weight": ("instinct_weight", "instinctWeight"),
        "confidence": ("confidence",),
        "perseverance": ("perseverance",),
    }

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "MetricsUpdate":
        """
        Build an update from a mapping, ignoring unrecognised keys.

        Values that cannot be converted to float are skipped with a warning.
        """
        picked: Dict[str, float] = {}
        for field_name, aliases in cls.KEY_ALIASES.items():
            for alias in aliases:
                if alias not in values:
                    continue
                try:
                    picked[field_name] = float(values[alias])
                except (TypeError, ValueError):
                    logger.warning(f"Ignoring non-numeric metric {alias}={values[alias]!r}")
                break
        return cls(**picked)


@dataclass(frozen=True)
class InstinctMetrics:
    """Immutable instinct metrics of a node; every field is clamped to [0, 1]."""
    emotional_state: float = 0.5
    instinct_weight: float = 0.5
    confidence: float = 0.5
    perseverance: float = 0.5

    def __post_init__(self) -> None:
        object.__setattr__(self, "emotional_state", clamp(float(self.emotional_state)))
        object.__setattr__(self, "instinct_weight", clamp(float(self.instinct_weight)))
        object.__setattr__(self, "confidence", clamp(float(self.confidence)))
        object.__setattr__(self, "perseverance", clamp(float(self.perseverance)))

    def merge(self, update: MetricsUpdate) -> "InstinctMetrics":
        """Return new metrics with the non-None fields of ``update`` applied (clamped)."""
        return InstinctMetrics(
            emotional_state=self.emotional_state if update.emotional_state is None else update.emotional_state,
            instinct_weight=self.instinct_weight if update.instinct_weight is None else update.instinct_weight,
            confidence=self.confidence if update.confidence is None else update.confidence,
            perseverance=self.perseverance if update.perseverance is None else update.perseverance,
        )


class DecisionTree:
    """
    Arena owning every node of one search tree, addressed by node id.

    Nodes keep their parent's id and an ordered list of child ids; the arena
    resolves those ids back to nodes.
    """
    ID_PREFIX = "node_"
    ID_LENGTH = 6

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self.rng = rng if rng is not None else random.Random()
        self.nodes: Dict[str, "DecisionNode"] = {}
        self.root_id: Optional[str] = None

    @property
    def root(self) -> Optional["DecisionNode"]:
        return self.nodes.get(self.root_id) if self.root_id else None

    def new_id(self) -> str:
        """Draw a fresh identifier from the arena's random source."""
        while True:
            node_id = self.ID_PREFIX + "".join(self.rng.choices(string.ascii_lowercase, k=self.ID_LENGTH))
            if node_id not in self.nodes:
                return node_id

    def create_root(self, content: str, coefficients: Optional[SearchCoefficients] = None) -> "DecisionNode":
        """
        Create the root node of this tree.

        Raises:
            RuntimeError: If the tree already has a root
        """
        if self.root_id is not None:
            raise RuntimeError(f"Tree already has a root ({self.root_id})")
        root = DecisionNode(self, content=content, coefficients=coefficients)
        self.root_id = root.id
        return root

    def get(self, node_id: str) -> Optional["DecisionNode"]:
        return self.nodes.get(node_id)

    def path_to(self, node_id: str) -> List["DecisionNode"]:
        """Nodes from the root down to ``node_id`` (inclusive); empty if unknown."""
        node = self.nodes.get(node_id)
        return node.path_to_root() if node else []

    def _register(self, node: "DecisionNode") -> None:
        self.nodes[node.id] = node

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self) -> Iterator["DecisionNode"]:
        root = self.root
        return iter(root.all_nodes() if root else [])


class DecisionNode:
    """
    A point in the instinct-driven search tree.

    Each node holds one candidate approach, its visit statistics, its
    instinct metrics and the coefficients used by its selection score.
    """
    __slots__ = [
        '_tree',
        'children_ids',
        'coefficients',
        'content',
        'created_at',
        'depth',
        'id',
        'metrics',
        'parent_id',
        'path',
        'updated_at',
        'value',
        'visits'
    ]

    def __init__(self,
                 tree: DecisionTree,
                 content: str = "",
                 parent: Optional["DecisionNode"] = None,
                 coefficients: Optional[SearchCoefficients] = None,
                 node_id: Optional[str] = None) -> None:
        """
        Create a node and register it with ``tree``.

        Args:
            tree: The arena that owns this node
            content: Free-text approach stored in this node
            parent: Parent node (None for the root); the node is appended to its children
            coefficients: Used when there is no parent; children always inherit the parent's
            node_id: Explicit identifier, drawn from the tree's random source if omitted
        """
        self._tree = tree
        self.id = node_id or tree.new_id()
        self.content = content
        self.parent_id = parent.id if parent is not None else None
        self.children_ids: List[str] = []
        self.visits = 0
        self.value = 0.0
        self.metrics = InstinctMetrics()
        if parent is not None:
            self.coefficients = parent.coefficients
        else:
            self.coefficients = coefficients or SearchCoefficients()
        self.created_at = datetime.now()
        self.updated_at = self.created_at
        self.depth = parent.depth + 1 if parent is not None else 0
        self.path: List[str] = [*parent.path, parent.id] if parent is not None else []

        tree._register(self)
        if parent is not None:
            parent.children_ids.append(self.id)

    # --- structure -----------------------------------------------------

    @property
    def tree(self) -> DecisionTree:
        return self._tree

    @property
    def parent(self) -> Optional["DecisionNode"]:
        return self._tree.nodes[self.parent_id] if self.parent_id is not None else None

    @property
    def children(self) -> List["DecisionNode"]:
        return [self._tree.nodes[child_id] for child_id in self.children_ids]

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    @property
    def is_leaf(self) -> bool:
        return not self.children_ids

    def add_child(self, content: str) -> "DecisionNode":
        """
        Create, append and return a new child sharing this node's coefficients.
        """
        child = DecisionNode(self._tree, content=content, parent=self)
        self.updated_at = datetime.now()
        return child

    def find_by_id(self, node_id: str) -> Optional["DecisionNode"]:
        """Depth-first, pre-order search of this subtree."""
        for node in self.all_nodes():
            if node.id == node_id:
                return node
        return None

    def all_nodes(self) -> List["DecisionNode"]:
        """Every node of this subtree in pre-order (self, then children in insertion order)."""
        ordered: List[DecisionNode] = []
        stack: List[DecisionNode] = [self]
        while stack:
            current = stack.pop()
            ordered.append(current)
            stack.extend(reversed(current.children))
        return ordered

    def path_to_root(self) -> List["DecisionNode"]:
        """Nodes from the root down to this node."""
        chain: List[DecisionNode] = []
        current: Optional[DecisionNode] = self
        while current is not None:
            chain.append(current)
            current = current.parent
        return chain[::-1]

    # --- metrics -------------------------------------------------------

    @property
    def emotional_state(self) -> float:
        return self.metrics.emotional_state

    @property
    def instinct_weight(self) -> float:
        return self.metrics.instinct_weight

    @property
    def confidence(self) -> float:
        return self.metrics.confidence

    @property
    def perseverance(self) -> float:
        return self.metrics.perseverance

    @property
    def exploration_weight(self) -> float:
        return self.coefficients.exploration_weight

    @property
    def confidence_bias(self) -> float:
        return self.coefficients.confidence_bias

    @property
    def perseverance_factor(self) -> float:
        return self.coefficients.perseverance_factor

    def update_metrics(self, update: MetricsUpdate) -> None:
        """Merge ``update`` into this node's metrics, clamping every field to [0, 1]."""
        self.metrics = self.metrics.merge(update)
        self.updated_at = datetime.now()

    def update_content(self, content: str) -> None:
        self.content = content
        self.updated_at = datetime.now()

    def selection_score(self) -> float:
        """
        UCT score with instinct adjustments, used by analytical selection.

        Returns:
            0.0 for the root, otherwise
            exploitation + exploration * (1 + confidence_modifier) + perseverance_boost

        Note:
            A parent with no visits yields a negative log term; it is floored
            at 0 so the exploration term stays real.
        """
        parent = self.parent
        if parent is None:
            return 0.0

        exploitation = self.value / (self.visits + EPSILON)
        log_parent_visits = max(0.0, math.log(parent.visits + EPSILON))
        exploration = self.exploration_weight * math.sqrt(log_parent_visits / (self.visits + EPSILON))
        confidence_modifier = self.confidence_bias * self.emotional_state
        perseverance_boost = self.perseverance * self.perseverance_factor
        return exploitation + exploration * (1 + confidence_modifier) + perseverance_boost

    # --- serialisation -------------------------------------------------

    def node_to_state_dict(self) -> Dict[str, Any]:
        """This node's own state, without recursing into children."""
        return {
            "id": self.id,
            "content": self.content,
            "visits": self.visits,
            "value": self.value,
            "emotional_state": self.emotional_state,
            "instinct_weight": self.instinct_weight,
            "confidence": self.confidence,
            "perseverance": self.perseverance,
            "depth": self.depth,
            "path": list(self.path),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "children_count": len(self.children_ids),
        }

    def node_to_json(self) -> Dict[str, Any]:
        """
        Nested plain-dict copy of this subtree, as used by tree snapshots.

        Note:
            Includes full tree structure - use with caution for large trees
        """
        return {
            "id": self.id,
            "content": self.content,
            "visits": self.visits,
            "value": self.value,
            "emotional_state": self.emotional_state,
            "instinct_weight": self.instinct_weight,
            "confidence": self.confidence,
            "perseverance": self.perseverance,
            "depth": self.depth,
            "children": [child.node_to_json() for child in self.children],
        }

    def __repr__(self) -> str:
        return (f"DecisionNode(id={self.id}, depth={self.depth}, visits={self.visits}, "
                f"value={self.value:.2f}, emotional={self.emotional_state:.2f}, "
                f"children={len(self.children_ids)}, content='{truncate_text(self.content, 40)}')")
