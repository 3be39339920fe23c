import json

import pytest
from click.testing import CliRunner

from automatons.main import entry


def run(*args):
    result = CliRunner().invoke(entry, list(args))
    return result


@pytest.mark.parametrize("engine", ["enfa", "nfa", "dfa", "min"])
def test_membership_with_every_engine(engine):
    result = run("(0|1)*01", "-t", "01", "-t", "10", "-t", "", "--engine", engine)
    assert result.exit_code == 0, result.output
    output = json.loads(result.output)
    assert output["engine"] == engine
    assert output["results"] == [
        {"input": "01", "accepted": True},
        {"input": "10", "accepted": False},
        {"input": "", "accepted": False},
    ]


def test_state_counts_reflect_engine():
    enfa = json.loads(run("(a|b)*abb", "-t", "abb", "-e", "enfa").output)
    minimized = json.loads(run("(a|b)*abb", "-t", "abb", "-e", "min").output)
    assert minimized["states"] == 4
    assert enfa["states"] > minimized["states"]


def test_input_file(tmp_path):
    words = tmp_path / "words.txt"
    words.write_text("a\naa\nb\n")
    result = run("a+", "--input-file", str(words))
    assert result.exit_code == 0, result.output
    assert [r["accepted"] for r in json.loads(result.output)["results"]] == [True, True, False]


def test_out_file(tmp_path):
    out = tmp_path / "out.json"
    result = run("ab", "-t", "ab", "-o", str(out))
    assert result.exit_code == 0
    assert json.loads(out.read_text())["results"] == [{"input": "ab", "accepted": True}]


def test_report():
    result = run("(a|b)*abb", "-t", "abb", "--report")
    assert result.exit_code == 0, result.output
    minimization = json.loads(result.output)["minimization"]
    assert minimization["minimized_count"] == 4
    assert minimization["reachable_count"] == minimization["original_count"]
    assert minimization["report"].startswith("New state 1 <- {")


def test_malformed_pattern():
    result = run("(a", "-t", "a")
    assert result.exit_code == 2
    assert "mismatched parentheses" in result.output


def test_no_words():
    result = run("a")
    assert result.exit_code == 2
    assert "expected at least one word" in result.output
