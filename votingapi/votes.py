"""
Votes: validates references against the Voter and Poll services, stores
the vote, then pushes the matching history entry into the Voter service.

Each mutation is a small saga run strictly in order:

    create:  voter? -> poll? -> option? -> store vote -> POST history
    update:  vote? -> option? -> overwrite vote -> PUT history
    delete:  vote? -> delete vote -> DELETE history

A failed check aborts before anything is written. When the history call
fails on create or update, the local write is compensated (drop / restore
the vote) and the request fails with InternalError. A failed delete is
reported but never undone. A 404 from the history call on update or
delete means the voter or its entry was removed independently: there is
nothing left to keep in step, so the vote change stands. If a
compensation fails too it is logged and the two services disagree until
someone repairs them.
"""
from typing import Annotated, Any, Awaitable, List

import structlog
from fastapi import APIRouter, Depends, Path, Request, Response
from fastapi.responses import JSONResponse

from . import __version__
from .clients import DownstreamError, PollClient, ServiceClient, VoterClient
from .errors import BadRequest, Conflict, InternalError, NotFound, ServiceError
from .models import ID_PATTERN, Health, Vote, history_payload, is_valid_id
from .repository import Repository


class VotesService:
    def __init__(self, repository: Repository[Vote], voters: VoterClient, polls: PollClient) -> None:
        self._repository = repository
        self.voters = voters
        self.polls = polls
        self._log = structlog.get_logger(__name__).bind(service="votes")

    async def list_votes(self) -> List[Vote]:
        return await self._repository.list()

    async def get_vote(self, vote_id: str) -> Vote:
        return await self._repository.get(vote_id)

    async def _require(self, lookup: Awaitable[Any], what: str, **ids: str) -> None:
        try:
            await lookup
        except DownstreamError as exc:
            self._log.info("reference_missing", reference=what, status=exc.status_code, **ids)
            raise NotFound(f"{what} does not exist") from exc

    async def _compensate(self, step: str, action: Awaitable[Any], **ids: str) -> None:
        try:
            await action
        except ServiceError as exc:
            self._log.error("compensation_failed", step=step, error=exc.message, **ids)
        else:
            self._log.info("compensated", step=step, **ids)

    async def add_vote(self, vote_id: str, vote: Vote) -> Vote:
        """
        Cast a vote. The id always comes from the path; a voter, poll and
        option reference must all be present and resolvable.
        """
        vote = vote.model_copy(update={"vote_id": vote_id})
        if not is_valid_id(vote_id):
            raise BadRequest(f"{vote_id!r} is not a usable id")
        _check_reference("VoterID", vote.voter_id)
        _check_reference("PollID", vote.poll_id)
        _check_reference("VoteValue", vote.vote_value)

        if await self._repository.exists(vote_id):
            raise Conflict(f"vote {vote_id} already exists, use PUT to change it")

        await self._require(self.voters.get_voter(vote.voter_id), "voter", voter_id=vote.voter_id)
        await self._require(self.polls.get_poll(vote.poll_id), "poll", poll_id=vote.poll_id)
        await self._require(
            self.polls.get_option(vote.poll_id, vote.vote_value),
            "poll option",
            poll_id=vote.poll_id,
            option_id=vote.vote_value,
        )

        await self._repository.create(vote_id, vote)

        try:
            await self.voters.add_history(vote.voter_id, vote.poll_id, history_payload(vote.poll_id))
        except DownstreamError as exc:
            self._log.warning(
                "history_propagation_failed",
                vote_id=vote_id,
                voter_id=vote.voter_id,
                poll_id=vote.poll_id,
                status=exc.status_code,
            )
            await self._compensate("drop_vote", self._repository.delete(vote_id), vote_id=vote_id)
            raise InternalError(f"could not record poll {vote.poll_id} for voter {vote.voter_id}") from exc

        self._log.info("vote_created", vote_id=vote_id, voter_id=vote.voter_id, poll_id=vote.poll_id)
        return vote

    async def update_vote(self, vote_id: str, changes: Vote) -> Vote:
        """Change the chosen option. Every other field in ``changes`` is ignored."""
        existing = await self._repository.get(vote_id)
        _check_reference("VoteValue", changes.vote_value)

        await self._require(
            self.polls.get_option(existing.poll_id, changes.vote_value),
            "poll option",
            poll_id=existing.poll_id,
            option_id=changes.vote_value,
        )

        updated = existing.model_copy(update={"vote_value": changes.vote_value})
        await self._repository.overwrite(vote_id, updated)

        try:
            await self.voters.update_history(
                existing.voter_id, existing.poll_id, history_payload(existing.poll_id)
            )
        except DownstreamError as exc:
            if exc.status_code == 404:
                self._log.info(
                    "history_already_gone",
                    vote_id=vote_id,
                    voter_id=existing.voter_id,
                    poll_id=existing.poll_id,
                )
                return updated
            self._log.warning(
                "history_propagation_failed",
                vote_id=vote_id,
                voter_id=existing.voter_id,
                poll_id=existing.poll_id,
                status=exc.status_code,
            )
            await self._compensate(
                "restore_vote", self._repository.overwrite(vote_id, existing), vote_id=vote_id
            )
            raise InternalError(f"could not refresh poll {existing.poll_id} for voter {existing.voter_id}") from exc

        self._log.info("vote_updated", vote_id=vote_id, vote_value=updated.vote_value)
        return updated

    async def delete_vote(self, vote_id: str) -> None:
        """
        Remove the vote, then its history entry. The local delete stands
        whatever the Voter service answers.
        """
        existing = await self._repository.get(vote_id)
        await self._repository.delete(vote_id)
        self._log.info("vote_deleted", vote_id=vote_id)

        try:
            await self.voters.delete_history(existing.voter_id, existing.poll_id)
        except DownstreamError as exc:
            if exc.status_code == 404:
                self._log.info(
                    "history_already_gone",
                    vote_id=vote_id,
                    voter_id=existing.voter_id,
                    poll_id=existing.poll_id,
                )
                return
            self._log.warning(
                "history_propagation_failed",
                vote_id=vote_id,
                voter_id=existing.voter_id,
                poll_id=existing.poll_id,
                status=exc.status_code,
            )
            raise InternalError(f"could not remove poll {existing.poll_id} from voter {existing.voter_id}") from exc

    async def proxy(self, client: ServiceClient, path: str = "") -> Any:
        """Pass a GET through to a peer. Any failure there reads as NotFound."""
        try:
            return await client.get(path)
        except DownstreamError as exc:
            raise NotFound(f"nothing at {client.url(path)}") from exc


def _check_reference(field: str, value: str) -> None:
    # body references end up in peer URLs
    if not is_valid_id(value):
        raise BadRequest(f"{field} {value!r} is not a usable id")


router = APIRouter(prefix="/votes")

VoteID = Annotated[str, Path(pattern=ID_PATTERN)]
PeerID = Annotated[str, Path(pattern=ID_PATTERN)]


def votes_service(request: Request) -> VotesService:
    return request.app.state.votes_service


Service = Annotated[VotesService, Depends(votes_service)]


@router.get("/health", response_model=Health)
def health():
    return Health(version=__version__)


# read-through routes, registered ahead of /votes/{vote_id}

@router.get("/voters")
async def proxy_voters(service: Service):
    return JSONResponse(await service.proxy(service.voters))


@router.get("/voters/{voter_id}")
async def proxy_voter(voter_id: PeerID, service: Service):
    return JSONResponse(await service.proxy(service.voters, f"/{voter_id}"))


@router.get("/voters/{voter_id}/polls")
async def proxy_voter_history(voter_id: PeerID, service: Service):
    return JSONResponse(await service.proxy(service.voters, f"/{voter_id}/polls"))


@router.get("/voters/{voter_id}/polls/{poll_id}")
async def proxy_voter_poll(voter_id: PeerID, poll_id: PeerID, service: Service):
    return JSONResponse(await service.proxy(service.voters, f"/{voter_id}/polls/{poll_id}"))


@router.get("/polls")
async def proxy_polls(service: Service):
    return JSONResponse(await service.proxy(service.polls))


@router.get("/polls/{poll_id}")
async def proxy_poll(poll_id: PeerID, service: Service):
    return JSONResponse(await service.proxy(service.polls, f"/{poll_id}"))


@router.get("/polls/{poll_id}/options")
async def proxy_poll_options(poll_id: PeerID, service: Service):
    return JSONResponse(await service.proxy(service.polls, f"/{poll_id}/options"))


@router.get("/polls/{poll_id}/options/{option_id}")
async def proxy_poll_option(poll_id: PeerID, option_id: PeerID, service: Service):
    return JSONResponse(await service.proxy(service.polls, f"/{poll_id}/options/{option_id}"))


@router.get("", response_model=List[Vote])
async def list_votes(service: Service):
    return await service.list_votes()


@router.get("/{vote_id}", response_model=Vote)
async def get_vote(vote_id: VoteID, service: Service):
    return await service.get_vote(vote_id)


@router.post("/{vote_id}", response_model=Vote)
async def add_vote(vote_id: VoteID, vote: Vote, service: Service):
    return await service.add_vote(vote_id, vote)


@router.put("/{vote_id}", response_model=Vote)
async def update_vote(vote_id: VoteID, vote: Vote, service: Service):
    return await service.update_vote(vote_id, vote)


@router.delete("/{vote_id}")
async def delete_vote(vote_id: VoteID, service: Service):
    await service.delete_vote(vote_id)
    return Response(status_code=200)
