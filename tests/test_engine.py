import pytest

from instinct_mcts.base_llm_adapter import LLMServiceError
from instinct_mcts.instinct_core import InstinctMCTS, SearchPhase, shows_perseverance
from instinct_mcts.llm_interface import ContentAnalysis
from instinct_mcts.node import DecisionNode, MetricsUpdate

from conftest import StubLLM


def make_engine(llm, **config):
    config.setdefault("seed", 42)
    return InstinctMCTS(llm, "Should we launch the product now?", "Small team, tight budget", config)


def manual_root(engine, content="root"):
    return engine.tree.create_root(content, engine.coefficients)


# --- initialize ---------------------------------------------------------

@pytest.mark.asyncio
async def test_initialize_creates_analysed_root(stub_llm):
    engine = make_engine(stub_llm)
    events = []
    engine.subscribe(events.append)

    root = await engine.initialize()

    assert engine.root is root
    assert root.content == stub_llm.initial
    assert root.emotional_state == pytest.approx(0.6)
    assert root.instinct_weight == pytest.approx(0.8)
    assert root.confidence == 0.5  # only emotion and instinct are taken for the root
    assert engine.phase is SearchPhase.INITIALIZED
    assert len(engine.history) == 1
    assert [event.kind for event in events] == ["initialize"]
    assert stub_llm.prompts_containing("Provide an initial approach")[0]["temperature"] == 0.7


@pytest.mark.asyncio
async def test_initialize_propagates_service_errors():
    engine = make_engine(StubLLM(fail=True))
    with pytest.raises(LLMServiceError):
        await engine.initialize()
    assert engine.root is None
    assert engine.phase is SearchPhase.UNINITIALIZED
    assert engine.history == []


@pytest.mark.asyncio
async def test_reinitialize_replaces_tree_and_keeps_history(stub_llm):
    engine = make_engine(stub_llm)
    first = await engine.initialize()
    second = await engine.initialize()
    assert first.id not in engine.tree
    assert engine.root is second
    assert len(engine.history) == 2


@pytest.mark.asyncio
async def test_failed_reinitialize_keeps_committed_tree():
    class AnalysisFailsOnSecondRoot(StubLLM):
        analyses = 0

        async def analyze_content(self, text):
            self.analyses += 1
            if self.analyses == 2:
                raise RuntimeError("analysis crashed")
            return await super().analyze_content(text)

    engine = make_engine(AnalysisFailsOnSecondRoot())
    first = await engine.initialize()

    with pytest.raises(RuntimeError):
        await engine.initialize()

    assert engine.root is first
    assert engine.selected_node is first
    assert first.emotional_state == pytest.approx(0.6)
    assert len(engine.tree) == 1
    assert len(engine.history) == 1
    assert engine.phase is SearchPhase.INITIALIZED


# --- perseverance and evaluation -----------------------------------------

@pytest.mark.parametrize("text, expected", [
    ("I will persist and try again despite doubts", True),
    ("This is impossible, we should quit", False),
    ("Continue, though it is risky", False),
    ("", False),
    ("KEEP GOING no matter what", True),
])
def test_shows_perseverance(text, expected):
    assert shows_perseverance(text) is expected


@pytest.mark.asyncio
async def test_evaluate_boosts_persevering_content():
    engine = make_engine(StubLLM(score="4"), perseverance_factor=0.5)
    node = manual_root(engine, "I will persist and try again despite doubts")
    assert await engine.evaluate(node) == pytest.approx(6.0)


@pytest.mark.asyncio
async def test_evaluate_request_options(stub_llm):
    engine = make_engine(stub_llm)
    await engine.evaluate(manual_root(engine, "plain plan"))
    call = stub_llm.prompts_containing("Rate this approach")[0]
    assert call["temperature"] == 0.3
    assert call["max_tokens"] == 10


@pytest.mark.parametrize("response, expected", [
    ("Score: 8/10", 8.0),
    ("15", 10.0),
    ("0", 1.0),
    ("no idea", 5.0),
])
@pytest.mark.asyncio
async def test_evaluate_parses_and_clamps(response, expected):
    engine = make_engine(StubLLM(score=response))
    assert await engine.evaluate(manual_root(engine, "plain plan")) == expected


@pytest.mark.asyncio
async def test_evaluate_failure_returns_neutral_score():
    engine = make_engine(StubLLM(fail=True))
    assert await engine.evaluate(manual_root(engine, "plain plan")) == 5.0


# --- backpropagation and best node ---------------------------------------

def test_backpropagate_updates_every_ancestor(stub_llm):
    engine = make_engine(stub_llm)
    root = manual_root(engine)
    child = root.add_child("a")
    grandchild = child.add_child("b")
    sibling = root.add_child("c")

    engine.backpropagate(grandchild, 10.0)

    for node in (root, child, grandchild):
        assert node.visits == 1
        assert node.value == 10.0
        assert node.emotional_state == pytest.approx(0.6)
    assert sibling.visits == 0 and sibling.emotional_state == 0.5


def test_backpropagate_clamps_emotional_state(stub_llm):
    engine = make_engine(stub_llm)
    root = manual_root(engine)
    root.update_metrics(MetricsUpdate(emotional_state=0.05))
    engine.backpropagate(root, 0.0)
    assert root.emotional_state == 0.0


def test_best_node_follows_visits_not_value(stub_llm):
    engine = make_engine(stub_llm)
    root = manual_root(engine)
    popular = root.add_child("popular")
    valuable = root.add_child("valuable")
    popular.visits, popular.value = 5, 5.0
    valuable.visits, valuable.value = 3, 100.0
    deep = popular.add_child("deep")
    deep.visits = 1

    assert engine.best_node() is deep
    assert engine.best_node(valuable) is valuable


def test_best_node_ties_go_to_first_child(stub_llm):
    engine = make_engine(stub_llm)
    root = manual_root(engine)
    first = root.add_child("first")
    second = root.add_child("second")
    first.visits = second.visits = 2
    assert engine.best_node() is first


# --- selection ------------------------------------------------------------

def _three_children(engine):
    root = manual_root(engine)
    root.visits = 15
    children = [root.add_child(name) for name in ("a", "b", "c")]
    for child, value in zip(children, (10.0, 40.0, 20.0)):
        child.visits, child.value = 5, value
    return children


@pytest.mark.parametrize("seed", [0, 1, 2, 3])
def test_select_without_instinct_takes_argmax(stub_llm, seed):
    engine = make_engine(stub_llm, instinct_ratio=0.0, seed=seed)
    children = _three_children(engine)
    assert engine.select() is children[1]
    assert engine.selected_node is children[1]


def test_select_with_full_instinct_never_scores(stub_llm, monkeypatch):
    engine = make_engine(stub_llm, instinct_ratio=1.0)
    children = _three_children(engine)
    children[0].update_metrics(MetricsUpdate(emotional_state=0.0))
    children[1].update_metrics(MetricsUpdate(emotional_state=0.0))
    children[2].update_metrics(MetricsUpdate(emotional_state=1.0))

    def fail(self):
        raise AssertionError("selection_score must not be used")

    monkeypatch.setattr(DecisionNode, "selection_score", fail)
    picks = [engine.select() for _ in range(200)]
    # 1.001 / 1.003 of the mass sits on the emotional child
    assert picks.count(children[2]) >= 190


def test_instinct_choice_is_uniform_when_every_emotion_is_zero(stub_llm):
    engine = make_engine(stub_llm, instinct_ratio=1.0, seed=5)
    children = _three_children(engine)
    for child in children:
        child.update_metrics(MetricsUpdate(emotional_state=0.0))

    picks = [engine.select() for _ in range(300)]

    counts = [picks.count(child) for child in children]
    assert sum(counts) == 300
    assert all(60 <= count <= 140 for count in counts), counts


def test_select_on_lone_root_returns_root(stub_llm):
    engine = make_engine(stub_llm)
    root = manual_root(engine)
    assert engine.select() is root


def test_select_requires_initialization(stub_llm):
    with pytest.raises(RuntimeError):
        make_engine(stub_llm).select()


# --- expansion ------------------------------------------------------------

def _instinct_by_approach(text):
    return {"confidence": 5, "perseverance": 4, "emotionalState": 7,
            "instinctVsAnalysis": 9 if text.startswith("Approach 2") else 3}


@pytest.mark.asyncio
async def test_expand_attaches_in_request_order_and_returns_most_instinctive():
    llm = StubLLM(analysis=_instinct_by_approach, delays=[0.05, 0.0, 0.0])
    engine = make_engine(llm)
    root = manual_root(engine)

    chosen = await engine.expand(root, num_children=3)

    assert [child.content.split(":")[0] for child in root.children] == ["Approach 1", "Approach 2", "Approach 3"]
    assert chosen is root.children[1]
    assert chosen.instinct_weight == pytest.approx(0.9)
    assert chosen.confidence == pytest.approx(0.5)
    assert chosen.perseverance == pytest.approx(0.4)
    assert chosen.emotional_state == pytest.approx(0.7)
    temperatures = [call["temperature"] for call in llm.prompts_containing("Generate a next step")]
    assert temperatures == pytest.approx([0.9, 1.0, 1.0])


@pytest.mark.asyncio
async def test_expand_keeps_children_attached_when_analysis_fails():
    class FlakyAnalysis(StubLLM):
        async def analyze_content(self, text):
            if text.startswith("Approach 2"):
                raise RuntimeError("analysis crashed")
            return ContentAnalysis.neutral()

    engine = make_engine(FlakyAnalysis())
    root = manual_root(engine)
    with pytest.raises(RuntimeError):
        await engine.expand(root)
    assert len(root.children) == 2


@pytest.mark.asyncio
async def test_expand_generation_failure_attaches_nothing():
    engine = make_engine(StubLLM(fail=True))
    root = manual_root(engine)
    with pytest.raises(LLMServiceError):
        await engine.expand(root)
    assert root.is_leaf


# --- search loop ----------------------------------------------------------

@pytest.mark.asyncio
async def test_run_iteration_records_one_snapshot_per_simulation(stub_llm):
    engine = make_engine(stub_llm)
    events = []
    engine.subscribe(lambda event: events.append(event.kind))
    await engine.initialize()

    best = await engine.run_iteration(3)

    assert len(engine.history) == 4
    assert events.count("simulation") == 3
    assert "expand" in events
    assert engine.root.visits == 3
    assert best.is_leaf
    assert engine.phase is SearchPhase.SEARCHING


@pytest.mark.asyncio
async def test_run_full_search(stub_llm):
    engine = make_engine(stub_llm)
    result = await engine.run_full_search(iterations=2, simulations_per_iteration=3)

    assert len(result.tree_history) >= 1 + 2 * 3
    assert result.best_approach == result.best_node.content
    # "continue despite the challenge" earns the perseverance boost
    assert result.best_score == pytest.approx(7 * 1.7)
    assert result.final_tree is not None
    assert result.final_tree.find(result.best_node.id) is not None
    assert engine.root.visits == 6
    assert engine.phase is SearchPhase.SETTLED
    assert engine.tree_statistics()["node_count"] == len(engine.tree)


@pytest.mark.asyncio
async def test_run_full_search_reuses_existing_root(stub_llm):
    engine = make_engine(stub_llm)
    root = await engine.initialize()
    await engine.run_full_search(iterations=1, simulations_per_iteration=1)
    assert engine.root is root
    assert len(stub_llm.prompts_containing("Provide an initial approach")) == 1


@pytest.mark.asyncio
async def test_final_rescoring_is_not_backpropagated(stub_llm):
    engine = make_engine(stub_llm)
    await engine.run_full_search(iterations=1, simulations_per_iteration=2)
    assert engine.root.visits == 2
    assert len(stub_llm.prompts_containing("Rate this approach")) == 3


@pytest.mark.asyncio
async def test_same_seed_builds_same_tree():
    first = make_engine(StubLLM(), seed=11)
    second = make_engine(StubLLM(), seed=11)
    await first.run_full_search(iterations=1, simulations_per_iteration=4)
    await second.run_full_search(iterations=1, simulations_per_iteration=4)
    assert [n.id for n in first.tree] == [n.id for n in second.tree]
    assert [n.visits for n in first.tree] == [n.visits for n in second.tree]


# --- manual exploration -----------------------------------------------------

@pytest.mark.asyncio
async def test_explore_alternative(stub_llm):
    engine = make_engine(stub_llm)
    events = []
    engine.subscribe(lambda event: events.append(event.kind))
    root = await engine.initialize()

    child, score = await engine.explore_alternative(root.id)

    assert child.parent is root
    assert len(root.children) == 2
    assert child.visits == 1 and root.visits == 1
    assert score == pytest.approx(7 * 1.7)
    assert events[-1] == "exploration"
    assert len(engine.history) == 2


@pytest.mark.asyncio
async def test_explore_alternative_errors(stub_llm):
    engine = make_engine(stub_llm)
    with pytest.raises(RuntimeError):
        await engine.explore_alternative("node_abcdef")
    await engine.initialize()
    with pytest.raises(KeyError):
        await engine.explore_alternative("node_zzzzzz")


@pytest.mark.asyncio
async def test_explore_branch_adds_single_child(stub_llm):
    engine = make_engine(stub_llm)
    root = await engine.initialize()

    child, score = await engine.explore_branch(root.id, "we wait six months")

    assert root.children == [child]
    assert child.content.startswith("Branch approach")
    assert child.visits == 1
    prompt = stub_llm.prompts_containing("explore a branch")[0]["prompt"]
    assert "we wait six months" in prompt
    assert stub_llm.initial in prompt


@pytest.mark.asyncio
async def test_synthesize_recommendation(stub_llm):
    engine = make_engine(stub_llm)
    await engine.run_full_search(iterations=1, simulations_per_iteration=2)

    recommendation = await engine.synthesize_recommendation(max_approaches=2)

    assert recommendation == "Final recommendation: run the pilot"
    call = stub_llm.prompts_containing("synthesize a final recommendation")[0]
    assert "APPROACH 1:" in call["prompt"]
    assert call["temperature"] == 0.7


@pytest.mark.asyncio
async def test_status_reports_phase_and_statistics(stub_llm):
    engine = make_engine(stub_llm)
    await engine.run_full_search(iterations=1, simulations_per_iteration=1)
    status = engine.status()
    assert status["phase"] == "settled"
    assert status["simulations_completed"] == 1
    assert status["tree_statistics"]["node_count"] == 3
    assert status["best_node"]["visits"] == 1
