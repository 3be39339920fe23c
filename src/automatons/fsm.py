import json
import logging
from abc import ABC, abstractmethod
from collections import defaultdict, deque
from dataclasses import asdict, dataclass, replace
from functools import reduce
from itertools import count
from typing import Any, ClassVar, Iterable, Optional, Union

from more_itertools import first_true

from automatons.execution import ExecutionState
from automatons.utils import EPSILON, AutomatonType, display_symbol, is_epsilon

logger = logging.getLogger(__name__)


class AutomatonError(Exception):
    ...


class DuplicateStateError(AutomatonError, ValueError):
    ...


class StartStateError(AutomatonError, ValueError):
    ...


class UnknownStateError(AutomatonError, KeyError):
    def __str__(self):
        return str(self.args[0]) if self.args else ""


class InvalidSymbolError(AutomatonError, ValueError):
    ...


@dataclass(slots=True)
class State:
    id: int
    is_start: bool = False
    is_accepting: bool = False


@dataclass(frozen=True, slots=True)
class Transition:
    """
    An edge `from_state_id -> to_state_id` labelled with `symbol`

    `stack_pop` and `stack_push` are only meaningful for pushdown automata.
    A missing `stack_pop` means the move has no requirement on the stack top,
    the epsilon symbol is accepted as a spelling of that and normalized away.
    """

    from_state_id: int
    to_state_id: int
    symbol: str
    stack_pop: Optional[str] = None
    stack_push: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.symbol, str) or len(self.symbol) != 1:
            raise InvalidSymbolError(
                f"transition symbol must be a single character, got {self.symbol!r}"
            )
        if self.stack_pop in (EPSILON, ""):
            object.__setattr__(self, "stack_pop", None)
        elif self.stack_pop is not None and len(self.stack_pop) != 1:
            raise InvalidSymbolError(
                f"stack pop must be a single character, got {self.stack_pop!r}"
            )
        if self.stack_push == "":
            object.__setattr__(self, "stack_push", None)

    @property
    def is_epsilon(self) -> bool:
        return self.symbol == EPSILON

    def __str__(self):
        label = display_symbol(self.symbol)
        if self.stack_pop is not None or self.stack_push is not None:
            label += (
                f", {display_symbol(self.stack_pop or EPSILON)}"
                f"/{self.stack_push or display_symbol(EPSILON)}"
            )
        return f"{self.from_state_id} -{label}-> {self.to_state_id}"


TransitionLike = Union[Transition, int]


def transition_from_dict(data: dict[str, Any]) -> Transition:
    """Build a transition from its serialized form, any epsilon spelling maps to the epsilon marker"""
    data = dict(data)
    if "symbol" in data and is_epsilon(data["symbol"]):
        data["symbol"] = EPSILON
    for key in ("stack_pop", "stack_push"):
        if data.get(key) is not None and is_epsilon(data[key]):
            data[key] = None
    return Transition(**data)


class Automaton(ABC):
    """
    A state/transition graph with exactly one start state

    States and transitions are kept in insertion order. Every variant shares the
    construction invariants enforced here, execution semantics live in the subclasses.
    """

    automaton_type: ClassVar[AutomatonType]

    def __init__(
        self, states: Iterable[State] = (), transitions: Iterable[Transition] = ()
    ):
        self.states: list[State] = []
        self.transitions: list[Transition] = []
        for state in states:
            self.add_state(replace(state))
        for transition in transitions:
            self.add_transition(transition)

    # construction

    def add_state(self, state: State) -> State:
        if self.has_state(state.id):
            raise DuplicateStateError(f"state with id {state.id} already exists")
        if state.is_start and self.start_state_id is not None:
            raise StartStateError(
                "cannot add another start state, "
                "an automaton must have exactly one start state"
            )
        self.states.append(state)
        return state

    def set_start_state(self, state_id: int) -> None:
        state = self.state(state_id)
        for other in self.states:
            other.is_start = False
        state.is_start = True

    def add_transition(
        self,
        transition: TransitionLike,
        to_state_id: Optional[int] = None,
        symbol: Optional[str] = None,
    ) -> Transition:
        if not isinstance(transition, Transition):
            transition = Transition(transition, to_state_id, symbol)
        for state_id in (transition.from_state_id, transition.to_state_id):
            if not self.has_state(state_id):
                raise UnknownStateError(f"state with id {state_id} not found")
        self.transitions.append(transition)
        return transition

    def remove_transition(self, transition: Transition) -> None:
        self.transitions.remove(transition)

    # queries

    def has_state(self, state_id: int) -> bool:
        return any(state.id == state_id for state in self.states)

    def state(self, state_id: int) -> State:
        state = first_true(self.states, pred=lambda s: s.id == state_id)
        if state is None:
            raise UnknownStateError(f"state with id {state_id} not found")
        return state

    @property
    def start_state_id(self) -> Optional[int]:
        start = first_true(self.states, pred=lambda s: s.is_start)
        return None if start is None else start.id

    @property
    def accepting_state_ids(self) -> set[int]:
        return {state.id for state in self.states if state.is_accepting}

    @property
    def alphabet(self) -> list[str]:
        return sorted({t.symbol for t in self.transitions if t.symbol != EPSILON})

    def is_accepting_state(self, state_id: Optional[int]) -> bool:
        return state_id is not None and state_id in self.accepting_state_ids

    def find_transitions_from_state(self, state_id: int) -> list[Transition]:
        return [t for t in self.transitions if t.from_state_id == state_id]

    def find_transitions_for_symbol(self, symbol: str) -> list[Transition]:
        return [t for t in self.transitions if t.symbol == symbol]

    def transitions_by_source(self) -> defaultdict[int, list[Transition]]:
        table: defaultdict[int, list[Transition]] = defaultdict(list)
        for transition in self.transitions:
            table[transition.from_state_id].append(transition)
        return table

    def validate_start_state(self) -> int:
        starts = [state.id for state in self.states if state.is_start]
        if not starts:
            raise StartStateError("no start state defined")
        if len(starts) > 1:
            raise StartStateError(
                "multiple start states defined, "
                "an automaton must have exactly one start state"
            )
        return starts[0]

    # execution

    def execute(self, input: str) -> bool:
        state = self.start_execution(input)
        self.execute_all(state)
        return bool(state.is_accepted)

    def start_execution(self, input: str) -> ExecutionState:
        state = self._new_execution_state(input)
        self.back_to_start(state)
        return state

    def execute_all(self, state: ExecutionState) -> None:
        while not state.is_finished:
            self.step_forward(state)

    def _new_execution_state(self, input: str) -> ExecutionState:
        return ExecutionState(input)

    @abstractmethod
    def back_to_start(self, state: ExecutionState) -> None:
        pass

    @abstractmethod
    def step_forward(self, state: ExecutionState) -> None:
        pass

    @abstractmethod
    def step_backward(self, state: ExecutionState) -> None:
        pass

    # (de)serialization

    def copy(self):
        return type(self)(self.states, self.transitions)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.automaton_type.value,
            "states": [asdict(state) for state in self.states],
            "transitions": [asdict(transition) for transition in self.transitions],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Automaton":
        """
        Build an automaton of the kind named by data['type'] from its flat state and transition lists

        Examples
        --------
        >>> dfa = Automaton.from_dict({
        ...     'type': 'DFA',
        ...     'states': [{'id': 1, 'is_start': True}, {'id': 2, 'is_accepting': True}],
        ...     'transitions': [{'from_state_id': 1, 'to_state_id': 2, 'symbol': 'a'}],
        ... })
        >>> dfa.execute('a'), dfa.execute('aa')
        (True, False)
        """
        match AutomatonType(data.get("type", AutomatonType.DFA.value)):
            case AutomatonType.DFA:
                cls = DFA
            case AutomatonType.NFA:
                cls = NFA
            case AutomatonType.EPSILON_NFA:
                cls = EpsilonNFA
            case AutomatonType.PDA:
                from automatons.pda import PDA  # pda imports this module

                cls = PDA
        return cls(
            [State(**state) for state in data.get("states", [])],
            map(transition_from_dict, data.get("transitions", [])),
        )

    @staticmethod
    def from_json(payload: str) -> "Automaton":
        return Automaton.from_dict(json.loads(payload))

    def __repr__(self):
        return (
            f"{self.__class__.__name__}("
            f"states={tuple(state.id for state in self.states)}, "
            f"start_state={self.start_state_id}, "
            f"accepting_states={sorted(self.accepting_state_ids)}, "
            f"transitions={len(self.transitions)})"
        )


class DFA(Automaton):
    """A deterministic finite automaton, partial transition functions reject on a missing edge"""

    automaton_type = AutomatonType.DFA

    def __init__(
        self, states: Iterable[State] = (), transitions: Iterable[Transition] = ()
    ):
        super().__init__(states, transitions)
        # populated on automata produced by minimization
        self.state_mapping: dict[int, int] = {}
        self.merged_state_groups: dict[int, set[int]] = {}
        # populated on automata produced by subset construction
        self.source_states: dict[int, frozenset[int]] = {}

    def transition(self, state_id: int, symbol: str) -> Optional[Transition]:
        return first_true(
            self.transitions,
            pred=lambda t: t.from_state_id == state_id and t.symbol == symbol,
        )

    def back_to_start(self, state: ExecutionState) -> None:
        state.current_state_id = self.validate_start_state()
        state.current_states = None
        state.position = 0
        state.state_history.clear()
        state.is_accepted = (
            self.is_accepting_state(state.current_state_id) if not state.input else None
        )

    def step_forward(self, state: ExecutionState) -> None:
        if state.is_finished:
            return

        transition = self.transition(state.current_state_id, state.current_symbol())
        if transition is None:
            # no move is possible, the run is rejected where it stands
            state.is_accepted = False
            return

        state.state_history.append(frozenset((state.current_state_id,)))
        state.current_state_id = transition.to_state_id
        state.position += 1
        if state.position == len(state.input):
            state.is_accepted = self.is_accepting_state(state.current_state_id)

    def step_backward(self, state: ExecutionState) -> None:
        if state.is_accepted is False and state.position < len(state.input):
            # undo a rejection on a missing transition, nothing was consumed
            state.is_accepted = None
            return
        if state.position == 0 or not state.state_history:
            return
        (state.current_state_id,) = state.state_history.pop()
        state.position -= 1
        state.is_accepted = None

    def to_dfa(self) -> "DFA":
        return self.copy()

    def to_nfa(self) -> "NFA":
        """Every DFA is an NFA with at most one successor per (state, symbol)"""
        return NFA(self.states, self.transitions)

    def to_epsilon_nfa(self) -> "EpsilonNFA":
        return EpsilonNFA(self.states, self.transitions)

    def minimize(self) -> "DFA":
        from automatons.minimizer import minimize_dfa  # minimizer imports this module

        return minimize_dfa(self)

    def get_minimization_report(self) -> str:
        if not self.state_mapping or not self.merged_state_groups:
            return "No minimization mapping available."
        return "\n".join(
            f"New state {new_id} <- {{{', '.join(map(str, sorted(originals)))}}}"
            for new_id, originals in sorted(self.merged_state_groups.items())
        )


class NFA(Automaton):
    """
    A nondeterministic finite automaton

    Runs keep the whole frontier of simultaneously occupied states.
    """

    automaton_type = AutomatonType.NFA

    def initial_states(self) -> frozenset[int]:
        return frozenset((self.validate_start_state(),))

    def process_next_states(self, states: frozenset[int]) -> frozenset[int]:
        return states

    def move(self, states: Iterable[int], symbol: str) -> frozenset[int]:
        table = self.transitions_by_source()
        return frozenset(
            reduce(
                set.union,
                (
                    {t.to_state_id for t in table[state] if t.symbol == symbol}
                    for state in states
                ),
                set(),
            )
        )

    def contains_accepting(self, states: Iterable[int]) -> bool:
        accepting = self.accepting_state_ids
        return any(state in accepting for state in states)

    def back_to_start(self, state: ExecutionState) -> None:
        state.current_states = set(self.initial_states())
        state.current_state_id = None
        state.position = 0
        state.state_history.clear()
        state.is_accepted = (
            self.contains_accepting(state.current_states) if not state.input else None
        )

    def step_forward(self, state: ExecutionState) -> None:
        if state.is_finished:
            return

        frontier = self.process_next_states(
            self.move(state.current_states, state.current_symbol())
        )
        state.state_history.append(frozenset(state.current_states))
        state.current_states = set(frontier)
        state.position += 1

        if not frontier:
            state.is_accepted = False
        elif state.position == len(state.input):
            state.is_accepted = self.contains_accepting(frontier)

    def step_backward(self, state: ExecutionState) -> None:
        if state.position == 0 or not state.state_history:
            return
        state.current_states = set(state.state_history.pop())
        state.position -= 1
        state.is_accepted = None

    def to_nfa(self) -> "NFA":
        return self.copy()

    def to_epsilon_nfa(self) -> "EpsilonNFA":
        return EpsilonNFA(self.states, self.transitions)

    def to_dfa(self) -> DFA:
        """
        Subset construction, every distinct reachable frontier becomes one DFA state

        Frontiers with no successor on a symbol produce no transition, so the result may be partial.
        """
        alphabet = self.alphabet
        accepting = self.accepting_state_ids
        ids = count(1)
        frontier2id: dict[frozenset[int], int] = {}
        dfa = DFA()

        def add_frontier(frontier: frozenset[int]) -> int:
            state_id = next(ids)
            frontier2id[frontier] = state_id
            dfa.add_state(
                State(
                    state_id,
                    is_start=not dfa.states,
                    is_accepting=not frontier.isdisjoint(accepting),
                )
            )
            dfa.source_states[state_id] = frontier
            return state_id

        start = self.initial_states()
        add_frontier(start)
        queue = deque([start])

        while queue:
            frontier = queue.popleft()
            for symbol in alphabet:
                if not (target := self.process_next_states(self.move(frontier, symbol))):
                    continue
                if target not in frontier2id:
                    add_frontier(target)
                    queue.append(target)
                dfa.add_transition(frontier2id[frontier], frontier2id[target], symbol)

        logger.info(
            "Converted %s with %d states to DFA with %d states",
            self.__class__.__name__,
            len(self.states),
            len(dfa.states),
        )
        return dfa


class EpsilonNFA(NFA):
    automaton_type = AutomatonType.EPSILON_NFA

    def add_epsilon_transition(self, from_state_id: int, to_state_id: int) -> Transition:
        return self.add_transition(from_state_id, to_state_id, EPSILON)

    def epsilon_closure(self, states: Iterable[int]) -> frozenset[int]:
        """
        This is the set of all the states which can be reached by following epsilon labelled edges
        This is done here using a depth first search
        """
        table = self.transitions_by_source()
        closure = set()
        stack = list(states)

        while stack:
            if (state := stack.pop()) in closure:
                continue
            closure.add(state)
            stack.extend(t.to_state_id for t in table[state] if t.is_epsilon)

        return frozenset(closure)

    def initial_states(self) -> frozenset[int]:
        return self.epsilon_closure(super().initial_states())

    def process_next_states(self, states: frozenset[int]) -> frozenset[int]:
        return self.epsilon_closure(states)

    def to_nfa(self) -> NFA:
        """
        Epsilon elimination

        A state p gets an edge p -a-> r for every q in closure(p), q -a-> s and r in closure(s).
        p becomes accepting when closure(p) holds an accepting state.
        """
        closures = {state.id: self.epsilon_closure((state.id,)) for state in self.states}
        accepting = self.accepting_state_ids
        table = self.transitions_by_source()

        nfa = NFA(
            State(
                state.id,
                is_start=state.is_start,
                is_accepting=not closures[state.id].isdisjoint(accepting),
            )
            for state in self.states
        )

        seen: set[tuple[int, int, str]] = set()
        for state in self.states:
            for middle in sorted(closures[state.id]):
                for transition in table[middle]:
                    if transition.is_epsilon:
                        continue
                    for target in sorted(closures[transition.to_state_id]):
                        if (key := (state.id, target, transition.symbol)) not in seen:
                            seen.add(key)
                            nfa.add_transition(*key)

        logger.info(
            "Removed epsilon transitions: %d -> %d transitions",
            len(self.transitions),
            len(nfa.transitions),
        )
        return nfa

    def to_dfa(self) -> DFA:
        return self.to_nfa().to_dfa()
