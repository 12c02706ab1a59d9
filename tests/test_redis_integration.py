"""Repository against a real Redis. Runs only when REDIS_URL is set."""
import os
import uuid

import pytest

from votingapi.errors import Conflict, NotFound
from votingapi.models import Voter, VoterPoll
from votingapi.repository import Repository
from votingapi.store import RedisStore

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(not os.getenv("REDIS_URL"), reason="REDIS_URL not set"),
]


@pytest.fixture
async def repository():
    store = RedisStore.from_url(os.environ["REDIS_URL"])
    # unique prefix keeps runs apart on a shared server
    repo = Repository(store, f"test-voter-{uuid.uuid4().hex[:8]}", Voter)
    yield repo
    for key in await store.keys(f"{repo.prefix}:"):
        await store.delete(key)
    await store.close()


@pytest.mark.asyncio
async def test_round_trip(repository) -> None:
    voter = Voter(voter_id="1", first_name="Ada", vote_history=[VoterPoll(poll_id="9")])

    await repository.create("1", voter)

    stored = await repository.get("1")
    assert stored.first_name == "Ada"
    assert stored.vote_history[0].poll_id == "9"
    assert [v.voter_id for v in await repository.list()] == ["1"]


@pytest.mark.asyncio
async def test_create_is_atomic_per_key(repository) -> None:
    await repository.create("1", Voter(voter_id="1"))

    with pytest.raises(Conflict):
        await repository.create("1", Voter(voter_id="1"))


@pytest.mark.asyncio
async def test_delete(repository) -> None:
    await repository.create("1", Voter(voter_id="1"))

    await repository.delete("1")

    with pytest.raises(NotFound):
        await repository.get("1")
