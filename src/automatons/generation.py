"""
Random automata and test inputs for them

Every generator takes an optional `seed`, equal seeds give equal results.
Candidate inputs are checked against the automaton before they are returned,
a pushdown automaton is checked with its breadth first search.
"""

import logging
import random
from collections import Counter, deque
from itertools import islice, product
from string import ascii_lowercase
from typing import Callable, Iterator, NamedTuple, Optional

from more_itertools import first_true

from automatons.fsm import DFA, NFA, Automaton, EpsilonNFA, State, Transition
from automatons.pda import PDA
from automatons.utils import EPSILON, EPSILON_DISPLAY, AutomatonType
from automatons.validation import ValidationResult

logger = logging.getLogger(__name__)

GENERATED_TYPES: dict[AutomatonType, type[Automaton]] = {
    AutomatonType.DFA: DFA,
    AutomatonType.NFA: NFA,
    AutomatonType.EPSILON_NFA: EpsilonNFA,
}

EPSILON_PROBABILITY = 0.2
MAX_TRANSITION_ATTEMPTS = 100
MAX_REJECTING_CANDIDATES = 2_000
EPSILON_WALK_ATTEMPTS = 30


class InputCase(NamedTuple):
    input: str
    description: str


def is_accepted(automaton: Automaton, text: str) -> bool:
    if isinstance(automaton, PDA):
        return automaton.accepts(text)
    return automaton.execute(text)


def consumed(transition: Transition) -> str:
    return "" if transition.symbol == EPSILON else transition.symbol


def walk_paths(automaton: Automaton, max_length: int) -> Iterator[tuple[int, str]]:
    """
    Breadth first over (state, path) pairs starting from the start state

    Every pair is yielded, but a state is expanded at most once per path length.
    Paths longer than `max_length` are dropped.
    """
    table = automaton.transitions_by_source()
    queue = deque([(automaton.validate_start_state(), "")])
    expanded: set[tuple[int, int]] = set()

    while queue:
        state_id, path = queue.popleft()
        if len(path) > max_length:
            continue
        yield state_id, path
        if (state_id, len(path)) in expanded:
            continue
        expanded.add((state_id, len(path)))
        for transition in table[state_id]:
            queue.append((transition.to_state_id, path + consumed(transition)))


def find_path_to_state(
    automaton: Automaton, target_state_id: int, max_length: int = 15
) -> Optional[str]:
    found = first_true(
        walk_paths(automaton, max_length), pred=lambda item: item[0] == target_state_id
    )
    return None if found is None else found[1]


def random_walk(
    rng: random.Random,
    automaton: Automaton,
    done: Callable[[int, str], bool],
    max_length: int,
    stall_limit: int = 20,
) -> Optional[str]:
    """
    Follow random transitions from the start state until `done(state, path)` holds

    Returns None when the walk gets stuck, grows past `max_length`,
    or revisits (state, length) pairs more than `stall_limit` times in a row.
    """
    table = automaton.transitions_by_source()
    state_id, path = automaton.validate_start_state(), ""
    seen: set[tuple[int, int]] = set()
    stalls = 0

    while len(path) <= max_length:
        if (state_id, len(path)) in seen:
            stalls += 1
            if stalls > stall_limit:
                return None
        else:
            seen.add((state_id, len(path)))
            stalls = 0

        if done(state_id, path):
            return path
        if len(path) >= max_length or not table[state_id]:
            return None

        transition = rng.choice(table[state_id])
        path += consumed(transition)
        state_id = transition.to_state_id
    return None


def _has_start_and_accepting_states(automaton: Automaton, purpose: str) -> bool:
    if automaton.start_state_id is None:
        logger.warning("Cannot generate %s, no start state", purpose)
        return False
    if not automaton.accepting_state_ids:
        logger.warning("Cannot generate %s, no accepting states", purpose)
        return False
    return True


# input generation


def generate_random_string(
    automaton: Automaton,
    min_length: int = 0,
    max_length: int = 10,
    seed: Optional[int] = None,
) -> str:
    """
    Draw a string over the automaton's alphabet with a length in [min_length, max_length]

    Examples
    --------
    >>> dfa = DFA([State(0, is_start=True)], [Transition(0, 0, 'a')])
    >>> generate_random_string(dfa, 3, 3, seed=1)
    'aaa'
    """
    if min_length < 0 or min_length > max_length:
        raise ValueError(
            f"invalid length range [{min_length}, {max_length}] for a random string"
        )
    alphabet = automaton.alphabet
    if not alphabet:
        logger.warning("No alphabet available for random string generation")
        return ""

    rng = random.Random(seed)
    text = "".join(rng.choices(alphabet, k=rng.randint(min_length, max_length)))
    logger.info("Generated random string %r", text)
    return text


def generate_accepting_string(automaton: Automaton, max_length: int = 20) -> Optional[str]:
    """
    The first accepted string found breadth first, a non-empty one is preferred over ε

    Parameters
    ----------
    automaton: Automaton
        Any variant, a PDA's candidates are checked against its stack
    max_length: int
        Candidates longer than this are not considered

    Returns
    -------
    Optional[str]
        None when no accepted string of at most `max_length` symbols is found
    """
    if not _has_start_and_accepting_states(automaton, "an accepting string"):
        return None

    accepting = automaton.accepting_state_ids
    fallback = None
    for state_id, path in walk_paths(automaton, max_length):
        if state_id not in accepting or not is_accepted(automaton, path):
            continue
        if path:
            logger.info("Found accepting string %r", path)
            return path
        fallback = path

    if fallback is None:
        logger.warning("No accepting string found within length %d", max_length)
    return fallback


def generate_random_accepting_string(
    automaton: Automaton,
    min_length: int = 0,
    max_length: int = 50,
    max_attempts: int = 100,
    seed: Optional[int] = None,
) -> Optional[str]:
    """Random walks towards an accepting state, non-empty results are preferred over ε"""
    if not _has_start_and_accepting_states(automaton, "a random accepting string"):
        return None

    rng = random.Random(seed)
    table = automaton.transitions_by_source()
    accepting = automaton.accepting_state_ids

    def done(state_id: int, path: str) -> bool:
        # ε only when the walk cannot continue
        return (
            state_id in accepting
            and len(path) >= min_length
            and (bool(path) or not table[state_id])
        )

    fallback = None
    for attempt in range(1, max_attempts + 1):
        path = random_walk(rng, automaton, done, max_length)
        if path is None or not is_accepted(automaton, path):
            continue
        if path:
            logger.info("Found random accepting string %r on attempt %d", path, attempt)
            return path
        fallback = path

    if fallback is None:
        logger.warning("No random accepting string found after %d attempts", max_attempts)
    return fallback


def generate_rejecting_string(automaton: Automaton, max_length: int = 20) -> Optional[str]:
    """
    The shortest non-empty string over the alphabet that the automaton rejects

    Candidates are tried in length then alphabetical order,
    at most `MAX_REJECTING_CANDIDATES` of them.
    """
    alphabet = automaton.alphabet
    if not alphabet or automaton.start_state_id is None:
        logger.warning("Cannot generate a rejecting string for an incomplete automaton")
        return None

    candidates = (
        "".join(letters)
        for length in range(1, max_length + 1)
        for letters in product(alphabet, repeat=length)
    )
    rejected = first_true(
        islice(candidates, MAX_REJECTING_CANDIDATES),
        pred=lambda text: not is_accepted(automaton, text),
    )
    if rejected is None:
        logger.warning("No rejecting string found within length %d", max_length)
    else:
        logger.info("Found rejecting string %r", rejected)
    return rejected


def generate_nondeterministic_case(
    automaton: Automaton, max_length: int = 15
) -> Optional[str]:
    """A string that ends on the first symbol with more than one move out of a state"""
    choices = Counter(
        (t.from_state_id, t.symbol) for t in automaton.transitions if not t.is_epsilon
    )
    branching = first_true(choices.items(), pred=lambda item: item[1] > 1)
    if branching is None or automaton.start_state_id is None:
        logger.info("No nondeterminism found in automaton")
        return None

    (from_state_id, symbol), _ = branching
    path = find_path_to_state(automaton, from_state_id, max_length - 1)
    return None if path is None else path + symbol


def generate_epsilon_case(
    automaton: Automaton, max_length: int = 15, seed: Optional[int] = None
) -> Optional[str]:
    """
    A string leading to the source of an epsilon transition

    Random walks towards each source are tried first, in random order,
    then the breadth first path to the first source.
    """
    sources = [t.from_state_id for t in automaton.transitions if t.is_epsilon]
    if not sources or automaton.start_state_id is None:
        logger.info("No epsilon transitions found")
        return None

    rng = random.Random(seed)
    for source in rng.sample(sources, len(sources)):
        for _ in range(EPSILON_WALK_ATTEMPTS):
            path = random_walk(
                rng,
                automaton,
                lambda state_id, _path: state_id == source,
                max_length,
                stall_limit=40,
            )
            if path is not None:
                logger.info("Generated epsilon case %r reaching state %d", path, source)
                return path

    return find_path_to_state(automaton, sources[0], max_length)


def generate_interesting_cases(
    automaton: Automaton, max_length: int = 15, seed: Optional[int] = None
) -> list[InputCase]:
    """
    A labelled set of inputs worth stepping through

    Examples
    --------
    >>> dfa = DFA([State(0, is_start=True, is_accepting=True)], [Transition(0, 0, 'a')])
    >>> [case.description for case in generate_interesting_cases(dfa, max_length=5)]
    ['Empty string (ε)', 'Single character', 'All alphabet symbols', "Repeated 'a'", 'Known accepting string']
    """
    cases = [InputCase("", f"Empty string ({EPSILON_DISPLAY})")]
    alphabet = automaton.alphabet
    if not alphabet:
        return cases

    first = alphabet[0]
    cases.append(InputCase(first, "Single character"))
    if len(alphabet) <= max_length:
        cases.append(InputCase("".join(alphabet), "All alphabet symbols"))
    cases.append(InputCase(first * min(5, max_length), f"Repeated '{first}'"))
    if len(alphabet) >= 2:
        alternating = "".join(alphabet[i % 2] for i in range(min(6, max_length)))
        cases.append(InputCase(alternating, "Alternating pattern"))

    if (accepting := generate_accepting_string(automaton, max_length)) is not None:
        cases.append(InputCase(accepting, "Known accepting string"))
    if (rejecting := generate_rejecting_string(automaton, max_length)) is not None:
        cases.append(InputCase(rejecting, "Known rejecting string"))

    kind = automaton.automaton_type
    if kind in (AutomatonType.NFA, AutomatonType.EPSILON_NFA):
        if (branching := generate_nondeterministic_case(automaton, max_length)) is not None:
            cases.append(InputCase(branching, "Tests nondeterminism"))
    if kind == AutomatonType.EPSILON_NFA:
        if (epsilon := generate_epsilon_case(automaton, max_length, seed)) is not None:
            cases.append(InputCase(epsilon, f"Tests {EPSILON_DISPLAY}-transitions"))

    if max_length >= 10:
        cases.append(
            InputCase(
                generate_random_string(automaton, max_length - 2, max_length, seed),
                "Long string test",
            )
        )

    logger.info("Generated %d interesting test cases", len(cases))
    return cases


# automaton generation


def validate_generation_parameters(
    automaton_type: AutomatonType,
    state_count: int,
    transition_count: int,
    alphabet_size: int = 3,
    accepting_state_ratio: float = 0.3,
) -> ValidationResult:
    errors = []
    if automaton_type not in GENERATED_TYPES:
        errors.append(f"Cannot generate a random {automaton_type.value}.")
    if state_count < 1:
        errors.append("State count must be at least 1.")
    if transition_count < 0:
        errors.append("Transition count must be non-negative.")
    if not 1 <= alphabet_size <= len(ascii_lowercase):
        errors.append(f"Alphabet size must be between 1 and {len(ascii_lowercase)}.")
    if not 0 <= accepting_state_ratio <= 1:
        errors.append("Accepting state ratio must be between 0 and 1.")
    if (
        automaton_type == AutomatonType.DFA
        and transition_count > state_count * alphabet_size
    ):
        errors.append(
            f"A DFA with {state_count} states over {alphabet_size} symbols "
            f"has at most {state_count * alphabet_size} transitions."
        )
    return ValidationResult(not errors, errors)


def _random_transition(
    rng: random.Random, automaton: Automaton, alphabet: str
) -> Optional[Transition]:
    existing = set(automaton.transitions)
    taken = {(t.from_state_id, t.symbol) for t in automaton.transitions}
    ids = [state.id for state in automaton.states]
    kind = automaton.automaton_type

    for _ in range(MAX_TRANSITION_ATTEMPTS):
        from_id, to_id = rng.choice(ids), rng.choice(ids)
        if kind == AutomatonType.EPSILON_NFA and rng.random() < EPSILON_PROBABILITY:
            symbol = EPSILON
        else:
            symbol = rng.choice(alphabet)
        transition = Transition(from_id, to_id, symbol)
        if transition in existing:
            continue
        if kind == AutomatonType.DFA and (from_id, symbol) in taken:
            continue
        return transition
    return None


def generate_random_automaton(
    automaton_type: AutomatonType,
    state_count: int,
    transition_count: int,
    alphabet_size: int = 3,
    accepting_state_ratio: float = 0.3,
    seed: Optional[int] = None,
) -> Automaton:
    """
    Generate a random finite automaton with states 1..state_count, state 1 being the start

    A chain 1 -> 2 -> ... -> state_count keeps every state reachable, the remaining
    transitions are drawn at random. A DFA never gets two moves on one symbol out of a state.

    Parameters
    ----------
    automaton_type: AutomatonType
        DFA, NFA or EpsilonNFA
    state_count: int
        At least 1
    transition_count: int
        The target number of transitions, the chain counts towards it
    alphabet_size: int
        The alphabet is the first `alphabet_size` lowercase letters
    accepting_state_ratio: float
        Share of accepting states, at least one state is always accepting
    seed: Optional[int]
        Seed for the random generator

    Raises
    ------
    ValueError
        If the parameters cannot describe an automaton of `automaton_type`
    """
    result = validate_generation_parameters(
        automaton_type, state_count, transition_count, alphabet_size, accepting_state_ratio
    )
    if not result.is_valid:
        raise ValueError(f"invalid generation parameters: {' '.join(result.errors)}")

    rng = random.Random(seed)
    alphabet = ascii_lowercase[:alphabet_size]
    ids = range(1, state_count + 1)
    accepting = set(rng.sample(ids, max(1, int(state_count * accepting_state_ratio))))

    automaton = GENERATED_TYPES[automaton_type](
        State(i, is_start=i == 1, is_accepting=i in accepting) for i in ids
    )
    for i in ids[:-1]:
        automaton.add_transition(i, i + 1, rng.choice(alphabet))
    for _ in range(transition_count - len(automaton.transitions)):
        if (transition := _random_transition(rng, automaton, alphabet)) is not None:
            automaton.add_transition(transition)

    logger.info(
        "Generated random %s with %d states and %d transitions",
        automaton_type.value,
        len(automaton.states),
        len(automaton.transitions),
    )
    return automaton


def generate_realistic_automaton(
    automaton_type: AutomatonType, state_count: int, seed: Optional[int] = None
) -> Automaton:
    """Like `generate_random_automaton`, with alphabet size, density and accepting share drawn at random"""
    if state_count < 1:
        raise ValueError("state count must be at least 1")

    rng = random.Random(seed)
    alphabet_size = 3 + rng.randrange(3)
    low = state_count
    high = min(state_count * alphabet_size, state_count * state_count)
    transition_count = rng.randrange(low, max(low + 1, high // 2))
    if automaton_type == AutomatonType.EPSILON_NFA:
        transition_count += rng.randrange(1, max(2, state_count // 3))

    return generate_random_automaton(
        automaton_type,
        state_count,
        transition_count,
        alphabet_size,
        0.2 + rng.random() * 0.3,
        seed,
    )
