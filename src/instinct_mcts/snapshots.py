#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Tree Snapshots
==============

Read-only copies of the search tree and the channel the engine publishes
them on after each mutating step.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Optional

from .node import DecisionNode

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[["SnapshotEvent"], None]


@dataclass(frozen=True)
class TreeSnapshot:
    """A fully materialised copy of the tree's shape and statistics."""
    tree: Dict[str, Any]
    selected_node_id: Optional[str]
    timestamp: datetime = field(default_factory=datetime.now)

    @classmethod
    def capture(cls, root: DecisionNode, selected: Optional[DecisionNode] = None) -> "TreeSnapshot":
        return cls(tree=root.node_to_json(), selected_node_id=selected.id if selected else None)

    def walk(self) -> Iterator[Dict[str, Any]]:
        """Pre-order walk over the node dicts of this snapshot."""
        stack = [self.tree]
        while stack:
            current = stack.pop()
            yield current
            stack.extend(reversed(current.get("children", [])))

    def find(self, node_id: str) -> Optional[Dict[str, Any]]:
        for entry in self.walk():
            if entry["id"] == node_id:
                return entry
        return None

    def node_ids(self) -> List[str]:
        return [entry["id"] for entry in self.walk()]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tree": self.tree,
            "selected_node_id": self.selected_node_id,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class SnapshotEvent:
    """A snapshot tagged with the step that produced it."""
    kind: str  # "initialize", "expand", "simulation" or "exploration"
    snapshot: TreeSnapshot


class SnapshotChannel:
    """
    Fan-out of snapshot events to subscribers.

    Subscribers are either plain callbacks or asyncio queues. A subscriber
    that raises is logged and skipped; publishing never fails.
    """

    def __init__(self) -> None:
        self._callbacks: List[SnapshotCallback] = []
        self._queues: List[asyncio.Queue] = []

    def subscribe(self, callback: SnapshotCallback) -> Callable[[], None]:
        """Register ``callback``; returns a function that unsubscribes it."""
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def open_queue(self, maxsize: int = 0) -> asyncio.Queue:
        """Return a new queue that receives every subsequent event."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._queues.append(queue)
        return queue

    def close_queue(self, queue: asyncio.Queue) -> None:
        if queue in self._queues:
            self._queues.remove(queue)

    @property
    def subscriber_count(self) -> int:
        return len(self._callbacks) + len(self._queues)

    def publish(self, event: SnapshotEvent) -> None:
        for callback in list(self._callbacks):
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Snapshot subscriber {callback!r} failed on '{event.kind}' event: {e}", exc_info=True)
        for queue in list(self._queues):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(f"Snapshot queue full, dropping '{event.kind}' event")
