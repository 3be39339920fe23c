import json
import logging
from typing import IO, Optional

import click
from tqdm import tqdm

from automatons.compiler import compile_regex
from automatons.fsm import Automaton
from automatons.minimizer import analyze_minimization, minimize_dfa

ENGINES = ("enfa", "nfa", "dfa", "min")


def build_engine(pattern: str, engine: str) -> Automaton:
    compiled = compile_regex(pattern)
    if not compiled.ok:
        raise click.BadParameter(compiled.error, param_hint="PATTERN")

    match engine:
        case "enfa":
            return compiled.automaton
        case "nfa":
            return compiled.automaton.to_nfa()
        case "dfa":
            return compiled.automaton.to_dfa()
        case "min":
            return minimize_dfa(compiled.automaton.to_dfa())
        case _:
            raise click.BadParameter(f"unknown engine {engine}", param_hint="--engine")


@click.command(name="automatons", help="Compile a regular expression to an automaton and test words against it")
@click.argument("pattern", type=click.STRING)
@click.option("--text", "-t", type=click.STRING, multiple=True, help="word to test, may be repeated")
@click.option("--input-file", type=click.File(), default=None, help="Input file, one word per line")
@click.option(
    "--out", "-o", type=click.File("w"), default="-", help="Output of the file"
)
@click.option(
    "--engine",
    "-e",
    type=click.Choice(ENGINES),
    default="dfa",
    show_default=True,
    help="Automaton used to decide membership",
)
@click.option(
    "--report",
    "-r",
    is_flag=True,
    show_default=True,
    default=False,
    help="Include the minimization report of the compiled DFA",
)
@click.option(
    "--debug",
    "-g",
    is_flag=True,
    show_default=True,
    default=False,
    help="Turn on debug mode",
)
def entry(
    pattern: str,
    text: tuple[str, ...],
    input_file: Optional[IO],
    out: IO,
    engine: str,
    report: bool,
    debug: bool,
):
    if debug:
        logging.basicConfig(level=logging.DEBUG)

    words = list(text)
    if input_file is not None:
        words.extend(input_file.read().splitlines())
    if not words:
        raise click.UsageError("expected at least one word, use --text or --input-file")

    automaton = build_engine(pattern, engine)

    results = {
        "pattern": pattern,
        "engine": engine,
        "states": len(automaton.states),
        "transitions": len(automaton.transitions),
        "results": [
            {"input": word, "accepted": automaton.execute(word)}
            for word in tqdm(words, disable=not debug)
        ],
    }

    if report:
        dfa = compile_regex(pattern).automaton.to_dfa()
        analysis = analyze_minimization(dfa)
        results["minimization"] = {
            "original_count": analysis.original_count,
            "reachable_count": analysis.reachable_count,
            "minimized_count": analysis.minimized_count,
            "is_minimal": analysis.is_minimal,
            "report": minimize_dfa(dfa).get_minimization_report(),
        }

    with out:
        out.write(json.dumps(results, indent=4))


if __name__ == "__main__":
    entry()
