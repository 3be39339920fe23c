from enum import Enum, auto
from typing import Final, NamedTuple, Optional

from more_itertools import pairwise

ESCAPE: Final[str] = "\\"
ANCHOR_START: Final[str] = "^"
ANCHOR_END: Final[str] = "$"


class RegexpParsingError(ValueError):
    ...


class TokenType(Enum):
    LITERAL = auto()
    CHAR_CLASS = auto()
    STAR = auto()
    PLUS = auto()
    QUESTION = auto()
    UNION = auto()
    OPEN = auto()
    CLOSE = auto()
    CONCAT = auto()


class Token(NamedTuple):
    type: TokenType
    # the literal character or the distinct characters of a class, None for operators
    value: Optional[str] = None

    def __repr__(self):
        if self.value is None:
            return self.type.name
        return f"{self.type.name}({self.value!r})"


OPERATORS: Final[dict[str, TokenType]] = {
    "*": TokenType.STAR,
    "+": TokenType.PLUS,
    "?": TokenType.QUESTION,
    "|": TokenType.UNION,
    "(": TokenType.OPEN,
    ")": TokenType.CLOSE,
}

PRECEDENCE: Final[dict[TokenType, int]] = {
    TokenType.STAR: 5,
    TokenType.PLUS: 5,
    TokenType.QUESTION: 5,
    TokenType.CONCAT: 4,
    TokenType.UNION: 3,
}

# a concatenation is implied between a token ending an operand and a token starting one
ENDS_OPERAND: Final[frozenset[TokenType]] = frozenset(
    {
        TokenType.LITERAL,
        TokenType.CHAR_CLASS,
        TokenType.STAR,
        TokenType.PLUS,
        TokenType.QUESTION,
        TokenType.CLOSE,
    }
)
STARTS_OPERAND: Final[frozenset[TokenType]] = frozenset(
    {TokenType.LITERAL, TokenType.CHAR_CLASS, TokenType.OPEN}
)


class RegexParser:
    """
    Tokenizer for the small regular expression dialect compiled to epsilon-NFAs

    Supported syntax: literals, `\\` escapes, `[...]` classes with `a-z` ranges,
    the postfix operators `*`, `+` and `?`, alternation `|` and grouping parentheses.
    A leading `^` and a trailing `$` are dropped, the automaton always matches the whole input.

    Examples
    --------
    >>> RegexParser('ab*').tokens
    [LITERAL('a'), LITERAL('b'), STAR]
    >>> RegexParser('[a-c]|x').tokens
    [CHAR_CLASS('abc'), UNION, LITERAL('x')]
    """

    def __init__(self, regex: str):
        self._regex = regex
        self._pos = 0
        self._tokens = self.tokenize()

    @property
    def tokens(self) -> list[Token]:
        return self._tokens

    def within_bounds(self, lookahead: int = 0) -> bool:
        return self._pos + lookahead < len(self._regex)

    def current(self, lookahead: int = 0) -> str:
        return self._regex[self._pos + lookahead]

    def remainder(self) -> str:
        return "" if self._pos >= len(self._regex) else self._regex[self._pos :]

    def matches(self, char: str, lookahead: int = 0) -> bool:
        return self.within_bounds(lookahead) and self.current(lookahead) == char

    def consume(self, char: str):
        if not self.matches(char):
            raise RegexpParsingError(
                f"expected {char!r} at position {self._pos}, "
                f"left = {self.remainder()!r}, regexp = {self._regex!r}"
            )
        self._pos += 1

    def consume_and_return(self) -> str:
        char = self.current()
        self._pos += 1
        return char

    def at_anchor(self) -> bool:
        return (self._pos == 0 and self.matches(ANCHOR_START)) or (
            self._pos == len(self._regex) - 1 and self.matches(ANCHOR_END)
        )

    def tokenize(self) -> list[Token]:
        tokens = []
        while self.within_bounds():
            if self.at_anchor():
                self._pos += 1
            elif self.matches(ESCAPE):
                tokens.append(Token(TokenType.LITERAL, self.parse_escaped()))
            elif self.matches("["):
                tokens.append(Token(TokenType.CHAR_CLASS, self.parse_character_class()))
            elif (char := self.consume_and_return()) in OPERATORS:
                tokens.append(Token(OPERATORS[char]))
            else:
                tokens.append(Token(TokenType.LITERAL, char))
        return tokens

    def parse_escaped(self) -> str:
        self.consume(ESCAPE)
        if not self.within_bounds():
            raise RegexpParsingError(
                f"dangling escape at the end of regexp {self._regex!r}"
            )
        return self.consume_and_return()

    def parse_character_class(self) -> str:
        """
        Read `[...]` and return its distinct characters in order of appearance

        Raises
        ------
        RegexpParsingError
            If the class is negated, empty, unterminated or holds an inverted range
        """
        self.consume("[")
        negated = self.matches("^")
        if negated:
            self._pos += 1

        chars: list[str] = []
        while self.within_bounds() and not self.matches("]"):
            if self.matches(ESCAPE) and self.within_bounds(1):
                self._pos += 1
                chars.append(self.consume_and_return())
            elif (
                self.matches("-", 1)
                and self.within_bounds(2)
                and not self.matches("]", 2)
            ):
                chars.extend(self.parse_character_range())
            else:
                chars.append(self.consume_and_return())

        if not self.matches("]"):
            raise RegexpParsingError(
                f"unterminated character class in regexp {self._regex!r}"
            )
        self.consume("]")
        if not chars:
            raise RegexpParsingError(f"empty character class in regexp {self._regex!r}")
        if negated:
            raise RegexpParsingError("negated character classes are not supported")
        return "".join(dict.fromkeys(chars))

    def parse_character_range(self) -> list[str]:
        start = self.consume_and_return()
        self.consume("-")
        end = self.consume_and_return()
        if start > end:
            raise RegexpParsingError(
                f"invalid range {start!r}-{end!r} in character class"
            )
        return [chr(code) for code in range(ord(start), ord(end) + 1)]


def insert_concatenation(tokens: list[Token]) -> list[Token]:
    """
    Make implicit concatenation explicit

    Examples
    --------
    >>> insert_concatenation(RegexParser('a(b)*c').tokens)
    [LITERAL('a'), CONCAT, OPEN, LITERAL('b'), CLOSE, STAR, CONCAT, LITERAL('c')]
    """
    if not tokens:
        return []
    with_concat = [tokens[0]]
    for left, right in pairwise(tokens):
        if left.type in ENDS_OPERAND and right.type in STARTS_OPERAND:
            with_concat.append(Token(TokenType.CONCAT))
        with_concat.append(right)
    return with_concat


def to_postfix(tokens: list[Token]) -> list[Token]:
    """
    Shunting-yard: convert an infix token stream, concatenations explicit, to postfix

    Examples
    --------
    >>> to_postfix(insert_concatenation(RegexParser('a|bc*').tokens))
    [LITERAL('a'), LITERAL('b'), LITERAL('c'), STAR, CONCAT, UNION]
    """
    output: list[Token] = []
    stack: list[Token] = []

    for token in tokens:
        match token.type:
            case TokenType.LITERAL | TokenType.CHAR_CLASS:
                output.append(token)
            case TokenType.OPEN:
                stack.append(token)
            case TokenType.CLOSE:
                while stack and stack[-1].type != TokenType.OPEN:
                    output.append(stack.pop())
                if not stack:
                    raise RegexpParsingError("mismatched parentheses in regexp")
                stack.pop()
            case _:
                while (
                    stack
                    and stack[-1].type != TokenType.OPEN
                    and PRECEDENCE[stack[-1].type] >= PRECEDENCE[token.type]
                ):
                    output.append(stack.pop())
                stack.append(token)

    while stack:
        if (token := stack.pop()).type in (TokenType.OPEN, TokenType.CLOSE):
            raise RegexpParsingError("mismatched parentheses in regexp")
        output.append(token)
    return output


def parse(regex: str) -> list[Token]:
    """Tokenize `regex` and return its postfix token stream"""
    return to_postfix(insert_concatenation(RegexParser(regex).tokens))
