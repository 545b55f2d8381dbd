import math
import random
import re

import pytest

from instinct_mcts.node import (
    EPSILON,
    DecisionNode,
    DecisionTree,
    InstinctMetrics,
    MetricsUpdate,
    SearchCoefficients,
)


@pytest.fixture
def tree():
    return DecisionTree(rng=random.Random(7))


def test_root_starts_neutral(tree):
    root = tree.create_root("start", SearchCoefficients())
    assert root.is_root and root.is_leaf
    assert root.depth == 0
    assert root.path == []
    assert (root.visits, root.value) == (0, 0.0)
    assert root.metrics == InstinctMetrics(0.5, 0.5, 0.5, 0.5)
    assert tree.root is root


def test_create_root_twice_fails(tree):
    tree.create_root("start")
    with pytest.raises(RuntimeError):
        tree.create_root("again")


def test_depth_and_path_follow_parent(tree):
    root = tree.create_root("start")
    child = root.add_child("a")
    grandchild = child.add_child("b")

    assert child.depth == 1 and child.path == [root.id]
    assert grandchild.depth == 2 and grandchild.path == [root.id, child.id]
    assert grandchild.parent is child
    assert root.children_ids == [child.id]
    assert [n.id for n in tree.path_to(grandchild.id)] == [root.id, child.id, grandchild.id]


def test_children_inherit_coefficients(tree):
    coefficients = SearchCoefficients(exploration_weight=2.0, confidence_bias=0.1, perseverance_factor=0.3)
    root = tree.create_root("start", coefficients)
    child = root.add_child("a")
    assert child.coefficients is coefficients
    assert child.perseverance_factor == 0.3


def test_node_ids_are_prefixed_and_seeded():
    ids_a = [DecisionTree(rng=random.Random(1)).create_root("x").id for _ in range(2)]
    ids_b = [DecisionTree(rng=random.Random(1)).create_root("x").id for _ in range(2)]
    assert ids_a == ids_b
    assert all(re.fullmatch(r"node_[a-z]{6}", node_id) for node_id in ids_a)


def test_update_metrics_clamps_and_keeps_unset_fields(tree):
    root = tree.create_root("start")
    root.update_metrics(MetricsUpdate(emotional_state=1.7, confidence=-0.3))
    assert root.emotional_state == 1.0
    assert root.confidence == 0.0
    assert root.instinct_weight == 0.5
    assert root.perseverance == 0.5


def test_metrics_merge_is_pure():
    before = InstinctMetrics()
    after = before.merge(MetricsUpdate(perseverance=0.9))
    assert before.perseverance == 0.5
    assert after.perseverance == 0.9


def test_metrics_update_from_mapping():
    update = MetricsUpdate.from_mapping({
        "emotionalState": 0.8,
        "confidence": "not a number",
        "mood": 0.1,
    })
    assert update == MetricsUpdate(emotional_state=0.8)


def test_root_selection_score_is_zero(tree):
    root = tree.create_root("start")
    root.visits = 12
    root.value = 80.0
    assert root.selection_score() == 0.0


def test_selection_score_combines_terms(tree):
    root = tree.create_root("start", SearchCoefficients(1.4, 0.2, 0.7))
    child = root.add_child("a")
    root.visits = 10
    child.visits = 2
    child.value = 12.0
    child.update_metrics(MetricsUpdate(emotional_state=0.5, perseverance=0.4))

    exploitation = 12.0 / (2 + EPSILON)
    exploration = 1.4 * math.sqrt(math.log(10 + EPSILON) / (2 + EPSILON))
    expected = exploitation + exploration * (1 + 0.2 * 0.5) + 0.4 * 0.7
    assert child.selection_score() == pytest.approx(expected)


def test_selection_score_is_finite_for_unvisited_parent(tree):
    root = tree.create_root("start")
    child = root.add_child("a")
    score = child.selection_score()
    assert math.isfinite(score)
    assert score == pytest.approx(0.5 * child.perseverance_factor)


def test_all_nodes_is_preorder(tree):
    root = tree.create_root("r")
    a = root.add_child("a")
    b = root.add_child("b")
    a1 = a.add_child("a1")
    b1 = b.add_child("b1")
    assert [n.content for n in root.all_nodes()] == ["r", "a", "a1", "b", "b1"]
    assert [n.content for n in tree] == ["r", "a", "a1", "b", "b1"]
    assert root.find_by_id(b1.id) is b1
    assert a.find_by_id(b1.id) is None
    assert a1.id in tree and len(tree) == 5


def test_node_to_json_nests_children(tree):
    root = tree.create_root("r")
    root.add_child("a")
    data = root.node_to_json()
    assert set(data) >= {"id", "content", "visits", "value", "emotional_state",
                         "instinct_weight", "confidence", "perseverance", "children"}
    assert data["children"][0]["content"] == "a"
    assert root.node_to_state_dict()["children_count"] == 1


def test_update_content_touches_timestamp(tree):
    root = tree.create_root("r")
    before = root.updated_at
    root.update_content("revised")
    assert root.content == "revised"
    assert root.updated_at >= before
    assert isinstance(root, DecisionNode)
