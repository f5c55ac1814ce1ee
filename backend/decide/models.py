from __future__ import annotations

from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

# Matches the request body limit of the start-vote form.
MAX_CHOICES_PAYLOAD = 32 * 1024


class VoteItem(BaseModel):
    candidate: int = Field(ge=0)
    # Lower is better.
    rank: int = Field(ge=0)


class UserVote(BaseModel):
    name: str
    selections: List[VoteItem]


class CondorcetTally(BaseModel):
    # totals[a][b] contains the number of votes where candidate a beat b.
    totals: List[List[int]]
    # ranks[0] contains the winner(s), ranks[n] contains the winners once the
    # members of all previous ranks are removed.
    ranks: List[List[int]]


class ClientStatus(str, Enum):
    connected = "connected"
    invalid_room = "invalid_room"
    invalid_identity = "invalid_identity"


class VotingResults(BaseModel):
    tally: CondorcetTally
    votes: List[UserVote]


class VoteView(BaseModel):
    choices: List[str]
    your_vote: Optional[UserVote] = None
    num_votes: int
    num_players: int
    results: Optional[VotingResults] = None


class ClientNotification(BaseModel):
    status: ClientStatus
    vote: Optional[VoteView] = None


class NewVoteRequest(BaseModel):
    choices: str = Field(max_length=MAX_CHOICES_PAYLOAD)

    def choice_labels(self) -> List[str]:
        labels = (choice.strip() for choice in self.choices.split("\n"))
        return [label for label in labels if label]


class NewVoteResponse(BaseModel):
    room_id: str
    url: str


# ---------------- Commands received over the websocket ----------------
class VoteCommand(BaseModel):
    model_config = ConfigDict(extra="forbid")

    vote: UserVote


class TallyCommand(BaseModel):
    model_config = ConfigDict(extra="forbid")

    tally: None


Command = Union[VoteCommand, TallyCommand]

# A tally may also arrive as the bare string "tally".
_command_adapter = TypeAdapter(Union[VoteCommand, TallyCommand, Literal["tally"]])


def parse_command(raw: Union[str, bytes]) -> Optional[Command]:
    """Decode one inbound frame, or return ``None`` if it is not a known command."""
    try:
        command = _command_adapter.validate_json(raw)
    except ValidationError:
        return None
    if command == "tally":
        return TallyCommand(tally=None)
    return command


def command_name(command: Command) -> str:
    return "vote" if isinstance(command, VoteCommand) else "tally"
