import pytest

from automatons.fsm import DFA, NFA, EpsilonNFA, State, Transition
from automatons.pda import PDA
from automatons.utils import EPSILON
from automatons.validation import (
    ValidationResult,
    validate_automaton,
    validate_state_addition,
    validate_transition_addition,
)


def test_valid_dfa():
    dfa = DFA(
        [State(0, is_start=True), State(1, is_accepting=True)],
        [Transition(0, 1, "a"), Transition(1, 1, "a")],
    )
    assert validate_automaton(dfa) == ValidationResult(True, [])


def test_empty_automaton_reports_every_problem():
    result = validate_automaton(NFA())
    assert not result.is_valid
    assert result.errors == [
        "Automaton must have at least one state.",
        "Automaton must have exactly one start state.",
    ]


def test_multiple_start_states():
    dfa = DFA([State(0, is_start=True), State(1)])
    dfa.states[1].is_start = True
    assert validate_automaton(dfa).errors == ["Automaton must have exactly one start state."]


def test_dfa_determinism_conflict():
    dfa = DFA(
        [State(0, is_start=True), State(1), State(2)],
        [Transition(0, 1, "a"), Transition(0, 2, "a"), Transition(1, 2, "b")],
    )
    result = validate_automaton(dfa)
    assert not result.is_valid
    assert "Conflicts: State 0 on symbol 'a'" in result.errors[0]


@pytest.mark.parametrize("automaton_class", [DFA, NFA])
def test_epsilon_rejected_outside_epsilon_nfa(automaton_class):
    automaton = automaton_class(
        [State(0, is_start=True), State(1)], [Transition(0, 1, EPSILON)]
    )
    assert validate_automaton(automaton).errors == [
        f"{automaton.automaton_type.value} cannot have epsilon transitions."
    ]


def test_epsilon_allowed_in_epsilon_nfa():
    enfa = EpsilonNFA([State(0, is_start=True), State(1)])
    enfa.add_epsilon_transition(0, 1)
    enfa.add_epsilon_transition(0, 0)
    assert validate_automaton(enfa).is_valid


def test_pda_determinism_conflict():
    pda = PDA(
        [State(0, is_start=True), State(1)],
        [Transition(0, 0, "a", "X", "Y"), Transition(0, 1, "a", "X")],
    )
    result = validate_automaton(pda)
    assert not result.is_valid
    assert result.errors[0].startswith("PDA must be deterministic")


def test_pda_absent_and_epsilon_pop_conflict():
    pda = PDA(
        [State(0, is_start=True), State(1)],
        [Transition(0, 0, "a", None, "Y"), Transition(0, 1, "a", EPSILON)],
    )
    assert not validate_automaton(pda).is_valid


def test_pda_distinct_pops_are_deterministic():
    pda = PDA(
        [State(0, is_start=True), State(1)],
        [Transition(0, 0, "a", "X"), Transition(0, 1, "a", "Y"), Transition(0, 1, EPSILON)],
    )
    assert validate_automaton(pda).is_valid


def test_validate_state_addition():
    dfa = DFA([State(0, is_start=True)])
    assert validate_state_addition(dfa, 1).is_valid
    assert validate_state_addition(dfa, 0).errors == ["State with ID 0 already exists."]
    assert validate_state_addition(dfa, 1, is_start=True).errors == [
        "Only one start state is allowed."
    ]


@pytest.mark.parametrize("alias", ["", "ε", "eps", "epsilon", "lambda", "λ", " EPS ", None])
def test_transition_addition_normalizes_epsilon(alias):
    enfa = EpsilonNFA([State(0, is_start=True), State(1)])
    result = validate_transition_addition(enfa, 0, 1, alias)
    assert result.is_valid
    assert result.symbol == EPSILON


def test_transition_addition_rejects_epsilon_in_dfa():
    dfa = DFA([State(0, is_start=True), State(1)])
    result = validate_transition_addition(dfa, 0, 1, "eps")
    assert not result.is_valid
    assert result.symbol is None


@pytest.mark.parametrize(
    "from_id, to_id, symbol, message",
    [
        (5, 1, "a", "From state 5 does not exist."),
        (0, 5, "a", "To state 5 does not exist."),
        (0, 1, "ab", "Symbol must be a single character"),
        (0, 0, "a", "DFA cannot have multiple transitions from state 0 on symbol 'a'."),
    ],
)
def test_transition_addition_errors(from_id, to_id, symbol, message):
    dfa = DFA([State(0, is_start=True), State(1)], [Transition(0, 1, "a")])
    result = validate_transition_addition(dfa, from_id, to_id, symbol)
    assert not result.is_valid
    assert result.errors[0].startswith(message)


def test_transition_addition_rejects_duplicates():
    nfa = NFA([State(0, is_start=True), State(1)], [Transition(0, 1, "a")])
    assert validate_transition_addition(nfa, 0, 1, "a").errors == [
        "Transition from 0 to 1 on 'a' already exists."
    ]
    result = validate_transition_addition(nfa, 0, 0, " a ")
    assert result.is_valid
    assert result.symbol == "a"
