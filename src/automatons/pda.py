import logging
from collections import deque
from typing import Iterable, Optional, Sequence

from more_itertools import first_true

from automatons.execution import ExecutionState, PdaExecutionState
from automatons.fsm import Automaton, State, Transition
from automatons.utils import (
    BOTTOM,
    DEFAULT_PDA_SETTINGS,
    EPSILON,
    AutomatonType,
    PdaExecutionSettings,
)

logger = logging.getLogger(__name__)


def stack_matches(transition: Transition, top: Optional[str]) -> bool:
    return transition.stack_pop is None or transition.stack_pop == top


def apply_stack_effect(stack: list[str], transition: Transition) -> list[str]:
    """
    Return the stack after popping the required top and pushing `stack_push`

    The first character of `stack_push` ends on top.

    Examples
    --------
    >>> apply_stack_effect(['#', 'X'], Transition(0, 0, 'a', 'X', 'AB'))
    ['#', 'B', 'A']
    >>> apply_stack_effect(['#'], Transition(0, 0, 'a'))
    ['#']
    """
    stack = list(stack)
    if transition.stack_pop is not None:
        stack.pop()
    if transition.stack_push:
        stack.extend(reversed(transition.stack_push))
    return stack


class PDA(Automaton):
    """
    A deterministic pushdown automaton

    A run accepts when the input is consumed, the current state is accepting,
    and the stack holds nothing but the bottom marker.
    Epsilon moves are bounded by `settings`, a run that would exceed them is rejected.
    """

    automaton_type = AutomatonType.PDA

    def __init__(
        self,
        states: Iterable[State] = (),
        transitions: Iterable[Transition] = (),
        *,
        settings: PdaExecutionSettings = DEFAULT_PDA_SETTINGS,
    ):
        super().__init__(states, transitions)
        self.settings = settings

    def copy(self) -> "PDA":
        copied = super().copy()
        copied.settings = self.settings
        return copied

    def select_transition(
        self, state_id: int, symbol: str, top: Optional[str]
    ) -> Optional[Transition]:
        """Pick the move for (state, symbol, top), a move naming the top wins over one without a pop condition"""
        candidates = [
            t
            for t in self.transitions
            if t.from_state_id == state_id and t.symbol == symbol and stack_matches(t, top)
        ]
        return first_true(
            candidates, default=None, pred=lambda t: t.stack_pop is not None
        ) or first_true(candidates, default=None)

    def is_accepting_configuration(self, state_id: Optional[int], stack: list[str]) -> bool:
        return self.is_accepting_state(state_id) and stack == [BOTTOM]

    # execution

    def _settings(self, settings: Optional[PdaExecutionSettings]) -> PdaExecutionSettings:
        return self.settings if settings is None else settings

    @staticmethod
    def _ensure_pda_state(state: ExecutionState) -> PdaExecutionState:
        if not isinstance(state, PdaExecutionState):
            raise TypeError(
                f"expected a PdaExecutionState, got {type(state).__name__}"
            )
        return state

    def _new_execution_state(self, input: str) -> PdaExecutionState:
        return PdaExecutionState(input)

    def execute(self, input: str, settings: Optional[PdaExecutionSettings] = None) -> bool:
        state = self.start_execution(input, settings)
        self.execute_all(state, settings)
        return bool(state.is_accepted)

    def start_execution(
        self, input: str, settings: Optional[PdaExecutionSettings] = None
    ) -> PdaExecutionState:
        state = self._new_execution_state(input)
        self.back_to_start(state, settings)
        return state

    def back_to_start(
        self, state: ExecutionState, settings: Optional[PdaExecutionSettings] = None
    ) -> None:
        state = self._ensure_pda_state(state)
        state.current_state_id = self.validate_start_state()
        state.current_states = None
        state.position = 0
        state.stack = [BOTTOM]
        state.history.clear()
        state.state_history.clear()
        state.is_accepted = None
        if not state.input:
            self._finish(state, self._settings(settings))

    def step_forward(
        self, state: ExecutionState, settings: Optional[PdaExecutionSettings] = None
    ) -> None:
        state = self._ensure_pda_state(state)
        if state.is_finished:
            return
        settings = self._settings(settings)

        if state.position >= len(state.input):
            self._finish(state, settings)
            return

        symbol = state.current_symbol()
        top = state.stack_top
        transition = self.select_transition(
            state.current_state_id, symbol, top
        ) or self.select_transition(state.current_state_id, EPSILON, top)

        logger.debug(
            "PDA step pos=%d symbol=%r top=%r state=%s transition=%s",
            state.position,
            symbol,
            top,
            state.current_state_id,
            transition,
        )

        state.history.append(state.snapshot())
        if transition is None:
            state.is_accepted = False
            return

        stack = apply_stack_effect(state.stack, transition)
        if transition.is_epsilon and self._grows_past_tolerance(
            state.stack, stack, settings
        ):
            logger.warning(
                "PDA epsilon move grew the stack past %d symbols, rejecting",
                settings.max_stack_growth_tolerance,
            )
            state.is_accepted = False
            return

        state.stack = stack
        state.current_state_id = transition.to_state_id
        if not transition.is_epsilon:
            state.position += 1

        if state.position == len(state.input):
            self._finish(state, settings)

    def step_backward(self, state: ExecutionState) -> None:
        """Undo the last step, epsilon moves fired by the closure pass are undone with it"""
        state = self._ensure_pda_state(state)
        if not state.history:
            return
        snapshot = state.history.pop()
        while snapshot.epsilon and state.history and state.history[-1].epsilon:
            snapshot = state.history.pop()
        if snapshot.epsilon and state.history:
            # the step that triggered the closure pass
            snapshot = state.history.pop()
        state.restore(snapshot)
        state.is_accepted = None

    def execute_all(
        self, state: ExecutionState, settings: Optional[PdaExecutionSettings] = None
    ) -> None:
        state = self._ensure_pda_state(state)
        settings = self._settings(settings)
        epsilon_moves = 0

        while not state.is_finished:
            position = state.position
            self.step_forward(state, settings)
            if state.is_finished or state.position != position:
                epsilon_moves = 0
                continue
            epsilon_moves += 1
            if epsilon_moves >= settings.max_epsilon_iterations:
                logger.warning(
                    "PDA fired %d epsilon moves at position %d, rejecting",
                    epsilon_moves,
                    state.position,
                )
                state.is_accepted = False

    @staticmethod
    def _grows_past_tolerance(
        before: Sequence[str], after: Sequence[str], settings: PdaExecutionSettings
    ) -> bool:
        # only pushing moves are bounded, the bottom marker is not counted
        return (
            len(after) > len(before)
            and len(after) - 1 > settings.max_stack_growth_tolerance
        )

    def _finish(self, state: PdaExecutionState, settings: PdaExecutionSettings) -> None:
        exceeded = self._apply_epsilon_closure(state, settings)
        state.is_accepted = not exceeded and self.is_accepting_configuration(
            state.current_state_id, state.stack
        )

    def _apply_epsilon_closure(
        self, state: PdaExecutionState, settings: PdaExecutionSettings
    ) -> bool:
        """
        Fire epsilon moves until none applies or an accepting configuration is reached

        Returns
        -------
        bool
            True if a safety bound stopped the pass
        """
        iterations = 0
        while not self.is_accepting_configuration(state.current_state_id, state.stack):
            transition = self.select_transition(
                state.current_state_id, EPSILON, state.stack_top
            )
            if transition is None:
                return False

            if iterations >= settings.max_epsilon_iterations:
                logger.warning(
                    "PDA epsilon closure stopped after %d iterations", iterations
                )
                return True

            stack = apply_stack_effect(state.stack, transition)
            if self._grows_past_tolerance(state.stack, stack, settings):
                logger.warning(
                    "PDA epsilon closure stopped, stack grew past %d symbols",
                    settings.max_stack_growth_tolerance,
                )
                return True

            state.history.append(state.snapshot(epsilon=True))
            state.stack = stack
            state.current_state_id = transition.to_state_id
            iterations += 1
        return False

    def accepts(self, input: str, settings: Optional[PdaExecutionSettings] = None) -> bool:
        """
        Breadth first search over (state, position, stack) configurations

        Unlike `execute`, which follows a single run, this explores every applicable move.
        The search gives up, rejecting, after `max_bfs_expansion` configurations.

        Examples
        --------
        >>> pda = PDA(
        ...     [State(0, is_start=True, is_accepting=True)],
        ...     [Transition(0, 0, '(', None, 'X'), Transition(0, 0, ')', 'X')],
        ... )
        >>> pda.accepts('(())'), pda.accepts('(()')
        (True, False)
        """
        settings = self._settings(settings)
        table = self.transitions_by_source()
        start = (self.validate_start_state(), 0, (BOTTOM,))
        queue = deque([start])
        visited = {start}
        expansions = 0

        while queue and expansions < settings.max_bfs_expansion:
            state_id, position, stack = queue.popleft()
            expansions += 1

            if position == len(input) and self.is_accepting_configuration(
                state_id, list(stack)
            ):
                return True

            top = stack[-1] if stack else None
            symbol = input[position] if position < len(input) else None
            for transition in table[state_id]:
                if not stack_matches(transition, top):
                    continue
                if transition.is_epsilon:
                    next_position = position
                elif transition.symbol == symbol:
                    next_position = position + 1
                else:
                    continue
                next_stack = tuple(apply_stack_effect(list(stack), transition))
                if transition.is_epsilon and self._grows_past_tolerance(
                    stack, next_stack, settings
                ):
                    continue
                configuration = (transition.to_state_id, next_position, next_stack)
                if configuration not in visited:
                    visited.add(configuration)
                    queue.append(configuration)

        if queue:
            logger.warning(
                "PDA acceptance search gave up after %d configurations", expansions
            )
        return False
