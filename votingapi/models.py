import re
from datetime import datetime, timezone
from typing import List

from pydantic import BaseModel, ConfigDict, Field

# path ids: letters, digits, '-' and '_'
ID_PATTERN = r"^[A-Za-z0-9_-]+$"

# names of the fixed routes that sit beside /{id}; never valid as ids
RESERVED_IDS = frozenset({"health", "voters", "polls"})

_ID = re.compile(ID_PATTERN)


def is_valid_id(value: str) -> bool:
    return bool(_ID.fullmatch(value)) and value not in RESERVED_IDS


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Document(BaseModel):
    """
    Stored and exchanged with PascalCase field names (the wire format),
    accepted in either spelling on input.
    """

    model_config = ConfigDict(populate_by_name=True)


class VoterPoll(Document):
    poll_id: str = Field("", alias="PollID", examples=["9"])
    vote_date: datetime = Field(default_factory=utc_now, alias="VoteDate")


class Voter(Document):
    voter_id: str = Field("", alias="VoterID", examples=["1"])
    first_name: str = Field("", alias="FirstName", examples=["Ada"])
    last_name: str = Field("", alias="LastName", examples=["Lovelace"])
    vote_history: List[VoterPoll] = Field(default_factory=list, alias="VoteHistory")


class PollOption(Document):
    option_id: str = Field("", alias="PollOptionID", examples=["A"])
    text: str = Field("", alias="PollOptionText", examples=["Yes"])


class Poll(Document):
    poll_id: str = Field("", alias="PollID", examples=["9"])
    title: str = Field("", alias="PollTitle", examples=["Lunch"])
    question: str = Field("", alias="PollQuestion", examples=["Pizza again?"])
    options: List[PollOption] = Field(default_factory=list, alias="PollOptions")


class Vote(Document):
    vote_id: str = Field("", alias="VoteID", examples=["5"])
    voter_id: str = Field("", alias="VoterID", examples=["1"])
    poll_id: str = Field("", alias="PollID", examples=["9"])
    vote_value: str = Field("", alias="VoteValue", examples=["A"])


class Health(BaseModel):
    status: str = "ok"
    version: str


def history_payload(poll_id: str) -> dict:
    """
    Single-entry Voter body the Votes service sends to the Voter service
    when it records, refreshes or removes a history entry.
    """
    voter = Voter(vote_history=[VoterPoll(poll_id=poll_id, vote_date=utc_now())])
    return voter.model_dump(mode="json", by_alias=True)
