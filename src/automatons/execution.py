import json
from dataclasses import dataclass, field
from typing import Any, NamedTuple, Optional

from automatons.utils import BOTTOM


@dataclass(eq=True)
class ExecutionState:
    """
    The progress of one run of an automaton over `input`

    Deterministic runs track `current_state_id`, frontier based runs track `current_states`.
    `state_history` holds one entry per consumed symbol, oldest first, so that
    stepping backward is a truncation followed by a restore from the last entry.

    Attributes
    ----------
    input: str
        The string being executed
    position: int
        Index of the next symbol to consume, 0 <= position <= len(input)
    is_accepted: Optional[bool]
        None while the run is undecided, True or False once decided
    """

    input: str
    current_state_id: Optional[int] = None
    current_states: Optional[set[int]] = None
    position: int = 0
    is_accepted: Optional[bool] = None
    state_history: list[frozenset[int]] = field(default_factory=list)

    @property
    def is_finished(self) -> bool:
        return self.is_accepted is not None

    @property
    def remaining(self) -> str:
        return self.input[self.position :]

    def current_symbol(self) -> Optional[str]:
        if self.position < len(self.input):
            return self.input[self.position]
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "input": self.input,
            "position": self.position,
            "is_accepted": self.is_accepted,
            "current_state_id": self.current_state_id,
            "current_states": None
            if self.current_states is None
            else sorted(self.current_states),
            "state_history": [sorted(entry) for entry in self.state_history],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExecutionState":
        current_states = data.get("current_states")
        return cls(
            input=data["input"],
            current_state_id=data.get("current_state_id"),
            current_states=None if current_states is None else set(current_states),
            position=data.get("position", 0),
            is_accepted=data.get("is_accepted"),
            state_history=[frozenset(entry) for entry in data.get("state_history", [])],
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, payload: str) -> "ExecutionState":
        return cls.from_dict(json.loads(payload))


class Snapshot(NamedTuple):
    """A full PDA configuration recorded before a move

    `epsilon` marks moves fired by the closure pass, these are undone together
    with the move that triggered them.
    """

    state_id: Optional[int]
    position: int
    stack: tuple[str, ...]
    epsilon: bool = False


@dataclass(eq=True)
class PdaExecutionState(ExecutionState):
    # stack[-1] is the top of the stack
    stack: list[str] = field(default_factory=lambda: [BOTTOM])
    history: list[Snapshot] = field(default_factory=list)

    @property
    def stack_top(self) -> Optional[str]:
        return self.stack[-1] if self.stack else None

    def stack_top_first(self) -> list[str]:
        return self.stack[::-1]

    def snapshot(self, epsilon: bool = False) -> Snapshot:
        return Snapshot(self.current_state_id, self.position, tuple(self.stack), epsilon)

    def restore(self, snapshot: Snapshot) -> None:
        self.current_state_id = snapshot.state_id
        self.position = snapshot.position
        self.stack = list(snapshot.stack)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["stack"] = self.stack_top_first()
        data["history"] = [
            {
                "state_id": snap.state_id,
                "position": snap.position,
                "stack": list(reversed(snap.stack)),
                "epsilon": snap.epsilon,
            }
            for snap in self.history
        ]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PdaExecutionState":
        base = ExecutionState.from_dict(data)
        return cls(
            input=base.input,
            current_state_id=base.current_state_id,
            current_states=base.current_states,
            position=base.position,
            is_accepted=base.is_accepted,
            state_history=base.state_history,
            stack=list(reversed(data.get("stack", [BOTTOM]))),
            history=[
                Snapshot(
                    entry["state_id"],
                    entry["position"],
                    tuple(reversed(entry["stack"])),
                    entry.get("epsilon", False),
                )
                for entry in data.get("history", [])
            ],
        )
