from __future__ import annotations

import re
from datetime import datetime, timedelta
from typing import List, NamedTuple, Tuple

from decide.models import UserVote, VoteItem

_TOKEN = re.compile(r"\d+|[>=]")


class Selection(NamedTuple):
    candidate: int
    rank: int


def parse_ballot(text: str) -> List[Selection]:
    """Turn ``"0>1=2>3"`` into selections; ``>`` moves to the next rank, ``=`` ties."""
    selections = []
    rank = 1
    for token in _TOKEN.findall(text):
        if token == ">":
            rank += 1
        elif token != "=":
            selections.append(Selection(candidate=int(token), rank=rank))
    return selections


def ballots(*groups: Tuple[int, str]) -> List[List[Selection]]:
    out = []
    for count, text in groups:
        out.extend(parse_ballot(text) for _ in range(count))
    return out


def user_vote(name: str, text: str) -> UserVote:
    return UserVote(
        name=name,
        selections=[VoteItem(candidate=s.candidate, rank=s.rank) for s in parse_ballot(text)],
    )


class FakeClock:
    def __init__(self, start: datetime = datetime(2024, 1, 1, 12, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)
