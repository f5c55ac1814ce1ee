"""
Ranked pairs (Tideman) tally.

Defeats are locked strongest-first; a defeat that would close a cycle in the
defeat graph is dropped.  Defeats of equal strength and margin are inserted
as one group before any of them is checked for cycles, so the result never
depends on the order in which tied defeats are visited.

See http://ericgorr.net/condorcet/rankedpairs/
"""

from __future__ import annotations

import logging
from itertools import groupby
from typing import Iterable, List, Protocol, Sequence, Set

from decide.models import CondorcetTally

logger = logging.getLogger("decide.condorcet")


class RankedItem(Protocol):
    candidate: int
    rank: int


def is_reachable(start: int, target: int, graph: Sequence[Set[int]]) -> bool:
    """Return ``True`` if ``target`` can be reached from ``start`` in ``graph``."""
    discovered: Set[int] = set()
    stack = [start]
    while stack:
        node = stack.pop()
        if node in discovered:
            continue
        if node == target:
            return True
        discovered.add(node)
        stack.extend(graph[node])
    return False


def filter_ballot(num_choices: int, ballot: Iterable[RankedItem]) -> List[RankedItem]:
    """Drop out-of-range candidates and every repeat of a candidate after its first entry."""
    seen: Set[int] = set()
    kept = []
    for item in ballot:
        if item.candidate >= num_choices or item.candidate in seen:
            continue
        seen.add(item.candidate)
        kept.append(item)
    return kept


def pairwise_totals(num_choices: int, ballots: Iterable[Iterable[RankedItem]]) -> List[List[int]]:
    # totals[a][b] = the number of ballots ranking candidate a over candidate b.
    totals = [[0] * num_choices for _ in range(num_choices)]
    for ballot in ballots:
        ordered = sorted(filter_ballot(num_choices, ballot), key=lambda item: item.rank)
        for i, item in enumerate(ordered):
            for later in ordered[i + 1:]:
                # Equal ranks are an explicit tie: no preference either way.
                if later.rank > item.rank:
                    totals[item.candidate][later.candidate] += 1
    return totals


def ranked_pairs(num_choices: int, ballots: Iterable[Iterable[RankedItem]]) -> CondorcetTally:
    """Compute the results of an election using the ranked pairs method."""
    totals = pairwise_totals(num_choices, ballots)

    # Every (winner, loser) pair, strongest first by:
    # 1. strength of victory (number of ballots favoring a over b)
    # 2. margin (ballots favoring a minus ballots favoring b)
    defeats = [
        (a, b)
        for a in range(num_choices)
        for b in range(num_choices)
        if totals[a][b] > totals[b][a]
    ]
    defeats.sort(key=lambda d: (totals[d[0]][d[1]], totals[d[0]][d[1]] - totals[d[1]][d[0]]), reverse=True)

    # defeat_graph[a] contains b iff a is locked in as defeating b.
    defeat_graph: List[Set[int]] = [set() for _ in range(num_choices)]

    for (strength, opposed), group in groupby(defeats, key=lambda d: (totals[d[0]][d[1]], totals[d[1]][d[0]])):
        current = list(group)
        for a, b in current:
            defeat_graph[a].add(b)
            logger.debug(f"considering {a} defeats {b} s{strength} m{strength - opposed}")

        in_cycles = [(a, b) for a, b in current if is_reachable(b, a, defeat_graph)]
        for a, b in in_cycles:
            defeat_graph[a].discard(b)
        for a, b in current:
            if (a, b) not in in_cycles:
                logger.debug(f"keeping {a} defeats {b}")

    unranked = list(range(num_choices))
    ranks: List[List[int]] = []
    while unranked:
        winners = [c for c in unranked if not any(c in defeat_graph[other] for other in unranked)]
        if not winners:
            # Unreachable: the locked graph is acyclic, so some candidate is undefeated.
            logger.error(f"defeat graph has a cycle among {unranked}")
            winners = list(unranked)
        unranked = [c for c in unranked if c not in winners]
        ranks.append(winners)

    return CondorcetTally(totals=totals, ranks=ranks)
