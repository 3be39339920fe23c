from dataclasses import dataclass
from enum import Enum
from typing import Final, Generic, NamedTuple, Optional, TypeVar

T = TypeVar("T")

# reserved transition symbol that consumes no input
EPSILON: Final[str] = "\0"
EPSILON_DISPLAY: Final[str] = "ε"
EPSILON_ALIASES: Final[frozenset[str]] = frozenset(
    {"", EPSILON, EPSILON_DISPLAY, "eps", "epsilon", "lambda", "λ"}
)

# bottom-of-stack marker seeded into every PDA run
BOTTOM: Final[str] = "#"


class Fragment(NamedTuple, Generic[T]):
    start: T
    end: T


class AutomatonType(Enum):
    DFA = "DFA"
    NFA = "NFA"
    EPSILON_NFA = "EpsilonNFA"
    PDA = "PDA"


@dataclass(frozen=True, slots=True)
class PdaExecutionSettings:
    """
    Safety limits for pushdown automaton runs.

    Attributes
    ----------
    max_epsilon_iterations: int
        Upper bound on consecutive epsilon moves fired without consuming input
    max_stack_growth_tolerance: int
        Upper bound on the stack size above the bottom marker reached by an epsilon push,
        moves that consume input are not bounded
    max_bfs_expansion: int
        Upper bound on configurations expanded by the breadth first acceptance search
    """

    max_epsilon_iterations: int = 1_000
    max_stack_growth_tolerance: int = 1_100
    max_bfs_expansion: int = 10_000

    def __post_init__(self):
        for name in (
            "max_epsilon_iterations",
            "max_stack_growth_tolerance",
            "max_bfs_expansion",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")


DEFAULT_PDA_SETTINGS: Final[PdaExecutionSettings] = PdaExecutionSettings()


def is_epsilon(symbol: Optional[str]) -> bool:
    """
    Check if `symbol` is one of the textual spellings of the empty symbol

    Examples
    --------
    >>> is_epsilon('eps')
    True
    >>> is_epsilon(None)
    True
    >>> is_epsilon('a')
    False
    >>> is_epsilon(' ε ')
    True
    >>> is_epsilon('EPS')
    True
    """
    return symbol is None or symbol == EPSILON or symbol.strip().lower() in EPSILON_ALIASES


def display_symbol(symbol: str) -> str:
    return EPSILON_DISPLAY if symbol == EPSILON else symbol
