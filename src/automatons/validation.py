"""
Business rule checks for automata under construction

Unlike the construction errors raised by `automatons.fsm`, every problem found here
is reported as a message so that an editor can show all of them at once.
"""

import logging
from collections import Counter
from typing import NamedTuple, Optional

from automatons.fsm import Automaton
from automatons.utils import EPSILON, AutomatonType, display_symbol, is_epsilon

logger = logging.getLogger(__name__)

EPSILON_ALLOWED = (AutomatonType.EPSILON_NFA, AutomatonType.PDA)


class ValidationResult(NamedTuple):
    is_valid: bool
    errors: list[str]


class TransitionValidation(NamedTuple):
    is_valid: bool
    # the symbol to store, epsilon aliases normalized to EPSILON
    symbol: Optional[str]
    errors: list[str]


def validate_automaton(automaton: Automaton) -> ValidationResult:
    """
    Collect every rule `automaton` breaks

    Examples
    --------
    >>> from automatons.fsm import DFA, State, Transition
    >>> dfa = DFA([State(0, is_start=True)], [Transition(0, 0, 'a'), Transition(0, 0, 'a')])
    >>> validate_automaton(dfa).errors
    ["DFA cannot have multiple transitions from the same state on the same symbol. Conflicts: State 0 on symbol 'a'"]
    """
    errors = []
    kind = automaton.automaton_type

    if not automaton.states:
        errors.append("Automaton must have at least one state.")
    if sum(state.is_start for state in automaton.states) != 1:
        errors.append("Automaton must have exactly one start state.")

    if kind == AutomatonType.DFA:
        conflicts = [
            f"State {from_id} on symbol '{display_symbol(symbol)}'"
            for (from_id, symbol), n in Counter(
                (t.from_state_id, t.symbol) for t in automaton.transitions
            ).items()
            if n > 1
        ]
        if conflicts:
            errors.append(
                "DFA cannot have multiple transitions from the same state on the same symbol. "
                f"Conflicts: {', '.join(conflicts)}"
            )

    if kind not in EPSILON_ALLOWED and any(t.is_epsilon for t in automaton.transitions):
        errors.append(f"{kind.value} cannot have epsilon transitions.")

    if kind == AutomatonType.PDA:
        # an absent pop condition and an epsilon pop are the same condition
        keys = Counter(
            (t.from_state_id, t.symbol, t.stack_pop or EPSILON)
            for t in automaton.transitions
        )
        if any(n > 1 for n in keys.values()):
            errors.append(
                "PDA must be deterministic: multiple transitions with same "
                "(state, input symbol, stack pop) detected."
            )

    is_valid = not errors
    logger.info(
        "Automaton validation completed: valid=%s, errors=%d", is_valid, len(errors)
    )
    return ValidationResult(is_valid, errors)


def validate_state_addition(
    automaton: Automaton, state_id: int, is_start: bool = False
) -> ValidationResult:
    if automaton.has_state(state_id):
        return ValidationResult(False, [f"State with ID {state_id} already exists."])
    if is_start and automaton.start_state_id is not None:
        return ValidationResult(False, ["Only one start state is allowed."])
    return ValidationResult(True, [])


def validate_transition_addition(
    automaton: Automaton, from_state_id: int, to_state_id: int, symbol: Optional[str]
) -> TransitionValidation:
    """
    Check whether the edge `from_state_id -symbol-> to_state_id` may be added

    Parameters
    ----------
    automaton: Automaton
        The automaton the edge would be added to
    from_state_id: int
    to_state_id: int
    symbol: Optional[str]
        The text typed for the symbol, any epsilon alias is accepted

    Returns
    -------
    TransitionValidation
        On success, `symbol` holds the single character to store
    """
    kind = automaton.automaton_type

    def invalid(message: str) -> TransitionValidation:
        return TransitionValidation(False, None, [message])

    if not automaton.has_state(from_state_id):
        return invalid(f"From state {from_state_id} does not exist.")
    if not automaton.has_state(to_state_id):
        return invalid(f"To state {to_state_id} does not exist.")

    if is_epsilon(symbol):
        if kind not in EPSILON_ALLOWED:
            return invalid(
                "Epsilon transitions are only allowed in Epsilon NFAs or PDAs."
            )
        processed = EPSILON
    elif len(symbol.strip()) == 1:
        processed = symbol.strip()
    else:
        return invalid(
            f"Symbol must be a single character or epsilon ({display_symbol(EPSILON)})."
        )

    if kind == AutomatonType.DFA and any(
        t.from_state_id == from_state_id and t.symbol == processed
        for t in automaton.transitions
    ):
        return invalid(
            f"DFA cannot have multiple transitions from state {from_state_id} "
            f"on symbol '{display_symbol(processed)}'."
        )

    if any(
        t.from_state_id == from_state_id
        and t.to_state_id == to_state_id
        and t.symbol == processed
        for t in automaton.transitions
    ):
        return invalid(
            f"Transition from {from_state_id} to {to_state_id} "
            f"on '{display_symbol(processed)}' already exists."
        )

    return TransitionValidation(True, processed, [])
