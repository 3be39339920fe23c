import pytest

from automatons.parser import (
    RegexParser,
    RegexpParsingError,
    Token,
    TokenType,
    insert_concatenation,
    parse,
    to_postfix,
)

L = TokenType.LITERAL
CONCAT = Token(TokenType.CONCAT)
STAR = Token(TokenType.STAR)
UNION = Token(TokenType.UNION)


def lit(char: str) -> Token:
    return Token(L, char)


def types(tokens):
    return [token.type for token in tokens]


@pytest.mark.parametrize(
    "pattern, expected",
    [
        ("abc", [lit("a"), lit("b"), lit("c")]),
        ("a*", [lit("a"), STAR]),
        ("^ab$", [lit("a"), lit("b")]),
        ("a^b", [lit("a"), lit("^"), lit("b")]),
        ("a$b", [lit("a"), lit("$"), lit("b")]),
        (r"\*\(", [lit("*"), lit("(")]),
        (r"a\$", [lit("a"), lit("$")]),
        ("a|b", [lit("a"), UNION, lit("b")]),
    ],
)
def test_tokenize(pattern, expected):
    assert RegexParser(pattern).tokens == expected


@pytest.mark.parametrize(
    "pattern, chars",
    [
        ("[abc]", "abc"),
        ("[a-e]", "abcde"),
        ("[0-2x]", "012x"),
        ("[aab]", "ab"),
        (r"[\]a]", "]a"),
        ("[a-]", "a-"),
        ("[-a]", "-a"),
    ],
)
def test_character_class(pattern, chars):
    assert RegexParser(pattern).tokens == [Token(TokenType.CHAR_CLASS, chars)]


@pytest.mark.parametrize(
    "pattern, message",
    [
        ("[z-a]", "invalid range"),
        ("[]", "empty character class"),
        ("[abc", "unterminated character class"),
        ("[^abc]", "negated character classes are not supported"),
        ("ab\\", "dangling escape"),
    ],
)
def test_tokenize_errors(pattern, message):
    with pytest.raises(RegexpParsingError, match=message):
        RegexParser(pattern)


def test_parsing_error_is_a_value_error():
    with pytest.raises(ValueError):
        RegexParser("[]")


@pytest.mark.parametrize(
    "pattern, expected",
    [
        ("ab", [L, TokenType.CONCAT, L]),
        ("a(b)", [L, TokenType.CONCAT, TokenType.OPEN, L, TokenType.CLOSE]),
        ("(a)(b)", [TokenType.OPEN, L, TokenType.CLOSE, TokenType.CONCAT, TokenType.OPEN, L, TokenType.CLOSE]),
        ("a*b", [L, TokenType.STAR, TokenType.CONCAT, L]),
        ("a+[xy]", [L, TokenType.PLUS, TokenType.CONCAT, TokenType.CHAR_CLASS]),
        ("a?b", [L, TokenType.QUESTION, TokenType.CONCAT, L]),
        ("a|b", [L, TokenType.UNION, L]),
        ("(|a)", [TokenType.OPEN, TokenType.UNION, L, TokenType.CLOSE]),
    ],
)
def test_insert_concatenation(pattern, expected):
    assert types(insert_concatenation(RegexParser(pattern).tokens)) == expected


def test_insert_concatenation_empty():
    assert insert_concatenation([]) == []


@pytest.mark.parametrize(
    "pattern, expected",
    [
        ("ab", [lit("a"), lit("b"), CONCAT]),
        ("a|bc", [lit("a"), lit("b"), lit("c"), CONCAT, UNION]),
        ("ab|c", [lit("a"), lit("b"), CONCAT, lit("c"), UNION]),
        ("(a|b)c", [lit("a"), lit("b"), UNION, lit("c"), CONCAT]),
        ("ab*", [lit("a"), lit("b"), STAR, CONCAT]),
        ("a|b|c", [lit("a"), lit("b"), UNION, lit("c"), UNION]),
        ("abc", [lit("a"), lit("b"), CONCAT, lit("c"), CONCAT]),
    ],
)
def test_to_postfix(pattern, expected):
    assert parse(pattern) == expected


@pytest.mark.parametrize("pattern", ["(a", "a)", "(a))", "((a)", ")("])
def test_mismatched_parentheses(pattern):
    with pytest.raises(RegexpParsingError, match="mismatched parentheses"):
        parse(pattern)


def test_to_postfix_of_nothing():
    assert to_postfix([]) == []
