import logging
from collections import defaultdict
from itertools import count
from typing import NamedTuple, Optional

from automatons.analysis import get_reachable_states
from automatons.fsm import DFA, State

logger = logging.getLogger(__name__)

Block = frozenset[int]


class MinimizationAnalysis(NamedTuple):
    original_count: int
    reachable_count: int
    minimized_count: int

    @property
    def is_minimal(self) -> bool:
        return self.minimized_count == self.reachable_count == self.original_count


def prune_unreachable(dfa: DFA) -> DFA:
    """Return a copy of `dfa` restricted to the states reachable from its start state"""
    reachable = get_reachable_states(dfa.transitions, dfa.validate_start_state())
    return DFA(
        (
            State(state.id, state.is_start, state.is_accepting)
            for state in dfa.states
            if state.id in reachable
        ),
        (
            transition
            for transition in dfa.transitions
            if transition.from_state_id in reachable
            and transition.to_state_id in reachable
        ),
    )


def refine_partitions(dfa: DFA) -> list[Block]:
    """
    Split the states of `dfa` into blocks of indistinguishable states

    We start from the accepting/non-accepting split and keep splitting every block
    by the signature of its states: for each symbol, the block the target lies in.
    A missing transition is its own outcome.
    The loop stops once a pass creates no new block.

    Returns
    -------
    list[Block]
        The blocks, ordered by their smallest member
    """
    alphabet = dfa.alphabet
    delta = {(t.from_state_id, t.symbol): t.to_state_id for t in dfa.transitions}
    accepting = dfa.accepting_state_ids

    partitions = [
        block
        for block in (
            frozenset(s.id for s in dfa.states if s.id in accepting),
            frozenset(s.id for s in dfa.states if s.id not in accepting),
        )
        if block
    ]

    while True:
        block_of = {state: index for index, block in enumerate(partitions) for state in block}

        def signature(state: int) -> tuple[Optional[int], ...]:
            return tuple(
                None if (target := delta.get((state, symbol))) is None else block_of[target]
                for symbol in alphabet
            )

        refined = []
        for block in partitions:
            groups: defaultdict[tuple, set[int]] = defaultdict(set)
            for state in block:
                groups[signature(state)].add(state)
            refined.extend(frozenset(group) for group in groups.values())

        if len(refined) == len(partitions):
            return sorted(partitions, key=min)
        partitions = refined


def minimize_dfa(dfa: DFA) -> DFA:
    """
    Build the minimal DFA accepting the language of the reachable part of `dfa`

    New states are numbered from 1 in the order of their smallest original member.
    The result records `state_mapping` (original id -> new id) and
    `merged_state_groups` (new id -> original ids), unreachable originals appear in neither.

    Examples
    --------
    >>> from automatons.fsm import Transition
    >>> dfa = DFA(
    ...     [State(0, is_start=True), State(1, is_accepting=True), State(2, is_accepting=True)],
    ...     [Transition(0, 1, 'a'), Transition(0, 2, 'b'), Transition(1, 1, 'a'), Transition(2, 2, 'a')],
    ... )
    >>> minimized = dfa.minimize()
    >>> len(minimized.states), minimized.merged_state_groups
    (2, {1: {0}, 2: {1, 2}})
    """
    original_count = len(dfa.states)
    reachable = prune_unreachable(dfa)
    blocks = refine_partitions(reachable)

    ids = count(1)
    block2id = {block: next(ids) for block in blocks}
    state_mapping = {state: block2id[block] for block in blocks for state in block}
    start = reachable.validate_start_state()
    accepting = reachable.accepting_state_ids

    minimized = DFA(
        State(
            block2id[block],
            is_start=start in block,
            is_accepting=not block.isdisjoint(accepting),
        )
        for block in blocks
    )

    seen: set[tuple[int, int, str]] = set()
    for transition in reachable.transitions:
        key = (
            state_mapping[transition.from_state_id],
            state_mapping[transition.to_state_id],
            transition.symbol,
        )
        if key not in seen:
            seen.add(key)
            minimized.add_transition(*key)

    minimized.state_mapping = state_mapping
    minimized.merged_state_groups = {block2id[block]: set(block) for block in blocks}

    logger.info(
        "Minimized DFA: %d original, %d reachable, %d minimized states",
        original_count,
        len(reachable.states),
        len(minimized.states),
    )
    return minimized


def analyze_minimization(dfa: DFA) -> MinimizationAnalysis:
    """
    Count the original, reachable and minimized states of `dfa` without changing it

    A DFA without a single start state cannot be minimized, its reachable count is 0
    and its minimized count is the original count.
    """
    original_count = len(dfa.states)
    start = dfa.start_state_id
    if start is None or sum(state.is_start for state in dfa.states) != 1:
        return MinimizationAnalysis(original_count, 0, original_count)
    reachable_count = len(get_reachable_states(dfa.transitions, start))
    return MinimizationAnalysis(
        original_count, reachable_count, len(minimize_dfa(dfa).states)
    )


def minimize_with_message(dfa: DFA) -> tuple[DFA, str]:
    minimized = minimize_dfa(dfa)
    if len(minimized.states) == len(dfa.states):
        message = f"DFA minimized: already minimal ({len(dfa.states)} states)."
    else:
        message = f"DFA minimized: {len(dfa.states)} -> {len(minimized.states)} states."
    return minimized, message
