# voter records + vote history endpoints
from typing import Annotated, List, Optional

import structlog
from fastapi import APIRouter, Depends, Path, Request, Response

from . import __version__
from .clients import DownstreamError, PollClient
from .errors import BadRequest, Conflict, InternalError, NotFound
from .models import ID_PATTERN, Health, Voter, VoterPoll, is_valid_id
from .repository import Repository


class VoterService:
    def __init__(
        self, repository: Repository[Voter], polls: Optional[PollClient] = None
    ) -> None:
        self._repository = repository
        # no poll lookup configured: history entries are taken on trust
        self._polls = polls
        self._log = structlog.get_logger(__name__).bind(service="voter")

    async def list_voters(self) -> List[Voter]:
        return await self._repository.list()

    async def get_voter(self, voter_id: str) -> Voter:
        return await self._repository.get(voter_id)

    async def add_voter(self, voter_id: str, voter: Voter) -> Voter:
        """Create a voter. The path id wins and history always starts empty."""
        if not is_valid_id(voter_id):
            raise BadRequest(f"{voter_id!r} is not a usable id")
        voter = voter.model_copy(update={"voter_id": voter_id, "vote_history": []})
        await self._repository.create(voter_id, voter)
        self._log.info("voter_created", voter_id=voter_id)
        return voter

    async def update_voter(self, voter_id: str, changes: Voter) -> Voter:
        """Blank names in ``changes`` keep the stored values; history is untouched."""
        voter = await self._repository.get(voter_id)
        if changes.first_name:
            voter.first_name = changes.first_name
        if changes.last_name:
            voter.last_name = changes.last_name
        await self._repository.overwrite(voter_id, voter)
        self._log.info("voter_updated", voter_id=voter_id)
        return voter

    async def delete_voter(self, voter_id: str) -> None:
        await self._repository.delete(voter_id)
        self._log.info("voter_deleted", voter_id=voter_id)

    async def get_history(self, voter_id: str) -> List[VoterPoll]:
        voter = await self._repository.get(voter_id)
        return voter.vote_history

    async def get_voter_poll(self, voter_id: str, poll_id: str) -> VoterPoll:
        voter = await self._repository.get(voter_id)
        matches = [entry for entry in voter.vote_history if entry.poll_id == poll_id]
        if not matches:
            raise NotFound(f"poll {poll_id} not in voter {voter_id}'s history")
        if len(matches) > 1:
            raise InternalError(
                f"{len(matches)} history entries for poll {poll_id} in voter {voter_id}"
            )
        return matches[0]

    async def add_voter_poll(self, voter_id: str, poll_id: str, payload: Voter) -> VoterPoll:
        if not is_valid_id(poll_id):
            raise BadRequest(f"{poll_id!r} is not a usable id")
        voter = await self._repository.get(voter_id)
        entry = _single_entry(payload, poll_id)

        if self._polls is not None:
            try:
                await self._polls.get_poll(poll_id)
            except DownstreamError as exc:
                raise NotFound(f"poll {poll_id} does not exist") from exc

        if any(existing.poll_id == poll_id for existing in voter.vote_history):
            raise Conflict(f"voter {voter_id} already voted in poll {poll_id}")

        voter.vote_history.append(entry)
        await self._repository.overwrite(voter_id, voter)
        self._log.info("history_added", voter_id=voter_id, poll_id=poll_id)
        return entry

    async def update_voter_poll(self, voter_id: str, poll_id: str, payload: Voter) -> VoterPoll:
        voter = await self._repository.get(voter_id)
        entry = _single_entry(payload, poll_id)

        for index, existing in enumerate(voter.vote_history):
            if existing.poll_id == poll_id:
                voter.vote_history[index] = entry
                await self._repository.overwrite(voter_id, voter)
                self._log.info("history_updated", voter_id=voter_id, poll_id=poll_id)
                return entry

        raise NotFound(f"poll {poll_id} not in voter {voter_id}'s history")

    async def delete_voter_poll(self, voter_id: str, poll_id: str) -> None:
        voter = await self._repository.get(voter_id)
        for index, existing in enumerate(voter.vote_history):
            if existing.poll_id == poll_id:
                del voter.vote_history[index]
                await self._repository.overwrite(voter_id, voter)
                self._log.info("history_deleted", voter_id=voter_id, poll_id=poll_id)
                return
        raise NotFound(f"poll {poll_id} not in voter {voter_id}'s history")


def _single_entry(payload: Voter, poll_id: str) -> VoterPoll:
    if len(payload.vote_history) != 1:
        raise BadRequest(
            f"exactly one history entry per request, {len(payload.vote_history)} given"
        )
    return payload.vote_history[0].model_copy(update={"poll_id": poll_id})


router = APIRouter(prefix="/voters")

VoterID = Annotated[str, Path(pattern=ID_PATTERN)]
PollID = Annotated[str, Path(pattern=ID_PATTERN)]


def voter_service(request: Request) -> VoterService:
    return request.app.state.voter_service


Service = Annotated[VoterService, Depends(voter_service)]


@router.get("/health", response_model=Health)
def health():
    return Health(version=__version__)


@router.get("", response_model=List[Voter])
async def list_voters(service: Service):
    return await service.list_voters()


@router.get("/{voter_id}", response_model=Voter)
async def get_voter(voter_id: VoterID, service: Service):
    return await service.get_voter(voter_id)


@router.post("/{voter_id}", response_model=Voter)
async def add_voter(voter_id: VoterID, voter: Voter, service: Service):
    return await service.add_voter(voter_id, voter)


@router.put("/{voter_id}", response_model=Voter)
async def update_voter(voter_id: VoterID, voter: Voter, service: Service):
    return await service.update_voter(voter_id, voter)


@router.delete("/{voter_id}")
async def delete_voter(voter_id: VoterID, service: Service):
    await service.delete_voter(voter_id)
    return Response(status_code=200)


@router.get("/{voter_id}/polls", response_model=List[VoterPoll])
async def get_history(voter_id: VoterID, service: Service):
    return await service.get_history(voter_id)


@router.get("/{voter_id}/polls/{poll_id}", response_model=VoterPoll)
async def get_voter_poll(voter_id: VoterID, poll_id: PollID, service: Service):
    return await service.get_voter_poll(voter_id, poll_id)


@router.post("/{voter_id}/polls/{poll_id}", response_model=VoterPoll)
async def add_voter_poll(voter_id: VoterID, poll_id: PollID, voter: Voter, service: Service):
    return await service.add_voter_poll(voter_id, poll_id, voter)


@router.put("/{voter_id}/polls/{poll_id}", response_model=VoterPoll)
async def update_voter_poll(voter_id: VoterID, poll_id: PollID, voter: Voter, service: Service):
    return await service.update_voter_poll(voter_id, poll_id, voter)


@router.delete("/{voter_id}/polls/{poll_id}")
async def delete_voter_poll(voter_id: VoterID, poll_id: PollID, service: Service):
    await service.delete_voter_poll(voter_id, poll_id)
    return Response(status_code=200)
