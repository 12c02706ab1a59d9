"""
Shared fixtures.

- Unit tests drive the services directly over a MemoryStore.
- Peer services are scripted with ``Downstream`` behind httpx.MockTransport.
- ``cluster`` wires the three real apps together in-process through
  httpx.ASGITransport, addressed as http://voter-api, http://poll-api and
  http://votes-api.
"""
import httpx
import pytest

from votingapi.clients import PollClient, VoterClient
from votingapi.config import Settings
from votingapi.main import create_poll_app, create_voter_app, create_votes_app
from votingapi.models import Poll, Vote, Voter
from votingapi.polls import PollService
from votingapi.repository import POLL_PREFIX, VOTE_PREFIX, VOTER_PREFIX, Repository
from votingapi.store import MemoryStore
from votingapi.voters import VoterService
from votingapi.votes import VotesService

from .helpers import Cluster, Downstream, RecordingStore


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def voter_repository(store) -> Repository[Voter]:
    return Repository(store, VOTER_PREFIX, Voter)


@pytest.fixture
def poll_repository(store) -> Repository[Poll]:
    return Repository(store, POLL_PREFIX, Poll)


@pytest.fixture
def vote_repository(store) -> Repository[Vote]:
    return Repository(store, VOTE_PREFIX, Vote)


@pytest.fixture
def voter_service(voter_repository) -> VoterService:
    return VoterService(voter_repository)


@pytest.fixture
def poll_service(poll_repository) -> PollService:
    return PollService(poll_repository)


@pytest.fixture
def downstream() -> Downstream:
    """Healthy voter 1, poll 9 with option A; history calls succeed."""
    peers = Downstream()
    peers.on("GET", "/voters/1", (200, {"VoterID": "1", "VoteHistory": []}))
    peers.on("GET", "/polls/9", (200, {"PollID": "9", "PollOptions": [{"PollOptionID": "A"}]}))
    peers.on("GET", "/polls/9/options/A", (200, {"PollOptionID": "A", "PollOptionText": "Yes"}))
    peers.on("GET", "/polls/9/options/B", (200, {"PollOptionID": "B", "PollOptionText": "No"}))
    peers.on("POST", "/voters/1/polls/9")
    peers.on("PUT", "/voters/1/polls/9")
    peers.on("DELETE", "/voters/1/polls/9")
    return peers


@pytest.fixture
async def votes_service(vote_repository, downstream):
    http = downstream.client()
    yield VotesService(
        vote_repository,
        VoterClient(http, "http://voter-api"),
        PollClient(http, "http://poll-api"),
    )
    await http.aclose()


@pytest.fixture
async def cluster():
    transport = Cluster()
    http = httpx.AsyncClient(transport=transport, timeout=5.0)

    transport.apps["voter-api"] = create_voter_app(
        Settings(service="voter", votes_api_url="http://votes-api"), MemoryStore(), http
    )
    transport.apps["poll-api"] = create_poll_app(Settings(service="poll"), MemoryStore())
    transport.apps["votes-api"] = create_votes_app(
        Settings(
            service="votes",
            voter_api_url="http://voter-api",
            poll_api_url="http://poll-api",
        ),
        MemoryStore(),
        http,
    )

    yield http
    await http.aclose()
