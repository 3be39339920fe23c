from collections import defaultdict, deque
from typing import Iterable, Optional

from automatons.fsm import Transition


def get_reachable_states(
    transitions: Iterable[Transition], start_state_id: Optional[int]
) -> set[int]:
    """
    Breadth first search from `start_state_id` following transitions of any symbol

    Parameters
    ----------
    transitions: Iterable[Transition]
        The edges of the graph, epsilon and stack labelled edges included
    start_state_id: Optional[int]
        Where the search starts, None yields an empty set

    Returns
    -------
    set[int]
        The ids reachable from the start, the start included

    Examples
    --------
    >>> get_reachable_states([Transition(1, 2, 'a'), Transition(3, 1, 'a')], 1)
    {1, 2}
    """
    if start_state_id is None:
        return set()

    adjacency: defaultdict[int, set[int]] = defaultdict(set)
    for transition in transitions:
        adjacency[transition.from_state_id].add(transition.to_state_id)

    reachable = {start_state_id}
    queue = deque([start_state_id])
    while queue:
        for target in adjacency[queue.popleft()]:
            if target not in reachable:
                reachable.add(target)
                queue.append(target)
    return reachable


def get_reachable_count(
    transitions: Iterable[Transition], start_state_id: Optional[int]
) -> int:
    return len(get_reachable_states(transitions, start_state_id))
