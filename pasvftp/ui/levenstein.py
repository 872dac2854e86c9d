from typing import Iterable


def _levenstein(s1: str, s2: str) -> int:
    if len(s1) == 0:
        return len(s2)
    if len(s2) == 0:
        return len(s1)
    previous = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1, 1):
        current = [i]
        for j, c2 in enumerate(s2, 1):
            insert = current[j - 1] + 1
            deleted = previous[j] + 1
            change = previous[j - 1] + (c1 != c2)
            current.append(min(insert, deleted, change))
        previous = current
    return previous[-1]


def get_suggestion(cmd: str, commands: Iterable[str]) -> str:
    """Closest known command to ``cmd``, or "" if nothing is within 3 edits."""
    dis = float('inf')
    suggestion = ""
    for command in commands:
        d = _levenstein(cmd.lower(), command.lower())
        if d < dis:
            dis = d
            suggestion = command
    return suggestion if dis <= 3 else ""
