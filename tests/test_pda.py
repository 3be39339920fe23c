import pytest

from automatons.execution import ExecutionState, PdaExecutionState
from automatons.fsm import Automaton, State, Transition
from automatons.pda import PDA, apply_stack_effect
from automatons.utils import BOTTOM, EPSILON, PdaExecutionSettings


def balanced_parentheses() -> PDA:
    return PDA(
        [State(0, is_start=True, is_accepting=True)],
        [Transition(0, 0, "(", None, "X"), Transition(0, 0, ")", "X")],
    )


def a_n_b_n() -> PDA:
    return PDA(
        [State(0, is_start=True), State(1, is_accepting=True)],
        [
            Transition(0, 0, "a", None, "X"),
            Transition(0, 1, EPSILON),
            Transition(1, 1, "b", "X"),
        ],
    )


def epsilon_push_loop(settings: PdaExecutionSettings) -> PDA:
    return PDA(
        [State(1, is_start=True)],
        [Transition(1, 1, EPSILON, EPSILON, "A")],
        settings=settings,
    )


@pytest.mark.parametrize("text", ["", "()", "(())", "()()"])
def test_balanced_parentheses_accepted(text):
    assert balanced_parentheses().execute(text)
    assert balanced_parentheses().accepts(text)


@pytest.mark.parametrize("text", ["(", ")", "())", "(()"])
def test_unbalanced_parentheses_rejected(text):
    assert not balanced_parentheses().execute(text)
    assert not balanced_parentheses().accepts(text)


@pytest.mark.parametrize(
    "text, expected",
    [("", True), ("ab", True), ("aabb", True), ("aab", False), ("abb", False), ("ba", False)],
)
def test_epsilon_moves(text, expected):
    assert a_n_b_n().execute(text) is expected
    assert a_n_b_n().accepts(text) is expected


def test_push_string_first_character_on_top():
    assert apply_stack_effect([BOTTOM], Transition(0, 0, "a", None, "XY")) == [BOTTOM, "Y", "X"]
    pda = PDA(
        [State(0, is_start=True), State(1, is_accepting=True)],
        [
            Transition(0, 0, "a", None, "XY"),
            Transition(0, 1, "b", "X"),
            Transition(1, 1, "c", "Y"),
        ],
    )
    assert pda.execute("abc")
    assert not pda.execute("acb")


def test_stack_state_during_run():
    pda = balanced_parentheses()
    state = pda.start_execution("(()")
    assert isinstance(state, PdaExecutionState)
    assert state.stack == [BOTTOM]
    pda.step_forward(state)
    pda.step_forward(state)
    assert state.stack_top_first() == ["X", "X", BOTTOM]
    pda.step_forward(state)
    assert state.stack_top_first() == ["X", BOTTOM]
    assert state.is_accepted is False


def test_exact_pop_preferred_over_unconditioned_move():
    pda = PDA(
        [State(0, is_start=True), State(1, is_accepting=True), State(2)],
        [
            Transition(0, 2, "a"),
            Transition(0, 1, "a", BOTTOM, BOTTOM),
        ],
    )
    state = pda.start_execution("a")
    pda.step_forward(state)
    assert state.current_state_id == 1
    assert state.is_accepted is True


@pytest.mark.parametrize("text", ["(())", "(()", "())", "ab"])
@pytest.mark.parametrize("automaton", [balanced_parentheses(), a_n_b_n()], ids=["parens", "anbn"])
def test_step_forward_then_backward_restores(automaton, text):
    state = automaton.start_execution(text)
    while not state.is_finished:
        before = (state.position, state.current_state_id, list(state.stack))
        automaton.step_forward(state)
        automaton.step_backward(state)
        assert (state.position, state.current_state_id, state.stack) == before
        assert state.is_accepted is None
        automaton.step_forward(state)


def test_step_backward_undoes_closure_with_its_step():
    pda = a_n_b_n()
    state = pda.start_execution("")
    assert state.is_accepted is True
    assert state.current_state_id == 1
    pda.step_backward(state)
    assert (state.current_state_id, state.position, state.stack) == (0, 0, [BOTTOM])
    assert state.history == []
    pda.step_forward(state)
    assert state.is_accepted is True


def test_step_backward_at_start_is_noop():
    pda = balanced_parentheses()
    state = pda.start_execution("()")
    pda.step_backward(state)
    assert (state.position, state.current_state_id, state.stack) == (0, 0, [BOTTOM])


def test_back_to_start_resets_stack():
    pda = balanced_parentheses()
    state = pda.start_execution("((")
    pda.execute_all(state)
    assert len(state.stack) == 3
    pda.back_to_start(state)
    assert state.stack == [BOTTOM]
    assert state.history == []
    assert state.is_accepted is None


def test_epsilon_push_loop_terminates_on_empty_input():
    pda = epsilon_push_loop(PdaExecutionSettings())
    assert pda.execute("") is False


def test_epsilon_push_loop_stack_is_bounded():
    settings = PdaExecutionSettings(max_epsilon_iterations=50, max_stack_growth_tolerance=20)
    pda = epsilon_push_loop(settings)
    state = pda.start_execution("a")
    pda.execute_all(state)
    assert state.is_accepted is False
    assert len(state.stack) <= settings.max_stack_growth_tolerance + 1


def test_epsilon_iteration_bound():
    settings = PdaExecutionSettings(max_epsilon_iterations=10, max_stack_growth_tolerance=100)
    state = epsilon_push_loop(settings).start_execution("")
    assert state.is_accepted is False
    assert len(state.stack) == 11


def test_deep_nesting_is_not_bounded_by_stack_tolerance():
    text = "(" * 1200 + ")" * 1200
    assert balanced_parentheses().execute(text)
    assert balanced_parentheses().accepts(text)
    assert not balanced_parentheses().execute(text + ")")


@pytest.mark.parametrize("text", ["a" * 10 + "b" * 10, "a" * 30 + "b" * 30])
def test_consuming_pushes_ignore_stack_tolerance(text):
    settings = PdaExecutionSettings(max_stack_growth_tolerance=5)
    pda = a_n_b_n()
    assert pda.execute(text, settings)
    assert pda.accepts(text, settings)


def test_per_call_settings_override_instance_settings():
    pda = epsilon_push_loop(PdaExecutionSettings())
    tight = PdaExecutionSettings(max_epsilon_iterations=5)
    state = pda.start_execution("", tight)
    assert len(state.stack) == 6
    assert pda.execute("", tight) is False


def test_epsilon_cycle_without_push_terminates():
    pda = PDA(
        [State(0, is_start=True), State(1)],
        [Transition(0, 1, EPSILON), Transition(1, 0, EPSILON)],
        settings=PdaExecutionSettings(max_epsilon_iterations=30),
    )
    assert pda.execute("") is False
    assert pda.execute("a") is False
    assert pda.accepts("a") is False


def test_accepts_gives_up_after_expansion_bound():
    pda = a_n_b_n()
    assert not pda.accepts("aabb", PdaExecutionSettings(max_bfs_expansion=2))


def test_wrong_execution_state_kind():
    pda = balanced_parentheses()
    with pytest.raises(TypeError):
        pda.step_forward(ExecutionState("()"))


def test_settings_reject_negative_limits():
    with pytest.raises(ValueError):
        PdaExecutionSettings(max_epsilon_iterations=-1)


def test_pda_round_trips_through_json():
    pda = a_n_b_n()
    restored = Automaton.from_json(pda.to_json())
    assert isinstance(restored, PDA)
    assert restored.transitions == pda.transitions
    for text in ["", "ab", "aab"]:
        assert restored.execute(text) == pda.execute(text)


def test_copy_keeps_settings():
    settings = PdaExecutionSettings(max_epsilon_iterations=3)
    copied = epsilon_push_loop(settings).copy()
    assert copied.settings is settings
