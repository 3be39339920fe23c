import logging
from itertools import count
from typing import NamedTuple, Optional

from automatons.fsm import EpsilonNFA, State
from automatons.parser import RegexpParsingError, Token, TokenType, parse
from automatons.utils import Fragment

logger = logging.getLogger(__name__)


class CompiledRegex(NamedTuple):
    automaton: Optional[EpsilonNFA]
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class RegexCompiler:
    """
    Thompson construction over a postfix token stream

    Every operand is a fragment, a (start, end) pair of states of the epsilon-NFA under
    construction. State ids are handed out from 1 in creation order.
    """

    def __init__(self, regex: str):
        self.regex = regex
        self.enfa = EpsilonNFA()
        self._ids = count(1)

    def gen_state(self) -> int:
        return self.enfa.add_state(State(next(self._ids))).id

    def gen_state_fragment(self) -> Fragment[int]:
        return Fragment(self.gen_state(), self.gen_state())

    def epsilon(self, source: int, target: int):
        self.enfa.add_epsilon_transition(source, target)

    def base(self, chars: str) -> Fragment[int]:
        fragment = self.gen_state_fragment()
        for char in chars:
            self.enfa.add_transition(fragment.start, fragment.end, char)
        return fragment

    def concatenate(self, fragment1: Fragment[int], fragment2: Fragment[int]) -> Fragment[int]:
        self.epsilon(fragment1.end, fragment2.start)
        return Fragment(fragment1.start, fragment2.end)

    def alternation(self, lower: Fragment[int], upper: Fragment[int]) -> Fragment[int]:
        fragment = self.gen_state_fragment()

        self.epsilon(fragment.start, lower.start)
        self.epsilon(fragment.start, upper.start)
        self.epsilon(lower.end, fragment.end)
        self.epsilon(upper.end, fragment.end)

        return fragment

    def zero_or_more(self, fragment: Fragment[int]) -> Fragment[int]:
        outer = self.gen_state_fragment()

        self.epsilon(outer.start, fragment.start)
        self.epsilon(outer.start, outer.end)
        self.epsilon(fragment.end, fragment.start)
        self.epsilon(fragment.end, outer.end)

        return outer

    def one_or_more(self, fragment: Fragment[int]) -> Fragment[int]:
        outer = self.gen_state_fragment()

        self.epsilon(outer.start, fragment.start)
        self.epsilon(fragment.end, fragment.start)
        self.epsilon(fragment.end, outer.end)

        return outer

    def zero_or_one(self, fragment: Fragment[int]) -> Fragment[int]:
        outer = self.gen_state_fragment()

        self.epsilon(outer.start, fragment.start)
        self.epsilon(outer.start, outer.end)
        self.epsilon(fragment.end, outer.end)

        return outer

    def _pop_operands(self, stack: list[Fragment[int]], token: Token, n: int) -> list[Fragment[int]]:
        if len(stack) < n:
            raise RegexpParsingError(
                f"operator {token.type.name} is missing an operand in regexp {self.regex!r}"
            )
        operands = stack[-n:]
        del stack[-n:]
        return operands

    def compile(self) -> EpsilonNFA:
        postfix = parse(self.regex)
        if not postfix:
            raise RegexpParsingError("cannot compile an empty regexp")

        stack: list[Fragment[int]] = []
        for token in postfix:
            match token.type:
                case TokenType.LITERAL | TokenType.CHAR_CLASS:
                    stack.append(self.base(token.value))
                case TokenType.CONCAT:
                    stack.append(self.concatenate(*self._pop_operands(stack, token, 2)))
                case TokenType.UNION:
                    stack.append(self.alternation(*self._pop_operands(stack, token, 2)))
                case TokenType.STAR:
                    stack.append(self.zero_or_more(*self._pop_operands(stack, token, 1)))
                case TokenType.PLUS:
                    stack.append(self.one_or_more(*self._pop_operands(stack, token, 1)))
                case TokenType.QUESTION:
                    stack.append(self.zero_or_one(*self._pop_operands(stack, token, 1)))
                case _:
                    raise RegexpParsingError(f"unexpected token {token!r} in postfix")

        if len(stack) != 1:
            raise RegexpParsingError(f"invalid regular expression {self.regex!r}")

        (fragment,) = stack
        self.enfa.set_start_state(fragment.start)
        self.enfa.state(fragment.end).is_accepting = True
        return self.enfa


def build_epsilon_nfa_from_regex(regex: str) -> EpsilonNFA:
    """
    Compile `regex` into an epsilon-NFA accepting exactly the strings it matches in full

    Raises
    ------
    RegexpParsingError
        If `regex` is empty or malformed

    Examples
    --------
    >>> enfa = build_epsilon_nfa_from_regex('(0|1)*01')
    >>> enfa.execute('001'), enfa.execute('10')
    (True, False)
    """
    enfa = RegexCompiler(regex).compile()
    logger.info(
        "Built EpsilonNFA from regex %r with %d states and %d transitions",
        regex,
        len(enfa.states),
        len(enfa.transitions),
    )
    return enfa


def compile_regex(regex: str) -> CompiledRegex:
    try:
        return CompiledRegex(build_epsilon_nfa_from_regex(regex))
    except RegexpParsingError as e:
        return CompiledRegex(None, str(e))
