# poll records + option endpoints
from typing import Annotated, List

import structlog
from fastapi import APIRouter, Depends, Path, Request, Response

from . import __version__
from .errors import BadRequest, Conflict, InternalError, NotFound
from .models import ID_PATTERN, Health, Poll, PollOption, is_valid_id
from .repository import Repository


class PollService:
    def __init__(self, repository: Repository[Poll]) -> None:
        self._repository = repository
        self._log = structlog.get_logger(__name__).bind(service="poll")

    async def list_polls(self) -> List[Poll]:
        return await self._repository.list()

    async def get_poll(self, poll_id: str) -> Poll:
        return await self._repository.get(poll_id)

    async def add_poll(self, poll_id: str, poll: Poll) -> Poll:
        """Create a poll. The path id wins and options always start empty."""
        if not is_valid_id(poll_id):
            raise BadRequest(f"{poll_id!r} is not a usable id")
        poll = poll.model_copy(update={"poll_id": poll_id, "options": []})
        await self._repository.create(poll_id, poll)
        self._log.info("poll_created", poll_id=poll_id)
        return poll

    async def update_poll(self, poll_id: str, changes: Poll) -> Poll:
        poll = await self._repository.get(poll_id)
        if changes.title:
            poll.title = changes.title
        if changes.question:
            poll.question = changes.question
        await self._repository.overwrite(poll_id, poll)
        self._log.info("poll_updated", poll_id=poll_id)
        return poll

    async def delete_poll(self, poll_id: str) -> None:
        await self._repository.delete(poll_id)
        self._log.info("poll_deleted", poll_id=poll_id)

    async def get_options(self, poll_id: str) -> List[PollOption]:
        poll = await self._repository.get(poll_id)
        return poll.options

    async def get_option(self, poll_id: str, option_id: str) -> PollOption:
        poll = await self._repository.get(poll_id)
        matches = [option for option in poll.options if option.option_id == option_id]
        if not matches:
            raise NotFound(f"option {option_id} not in poll {poll_id}")
        if len(matches) > 1:
            raise InternalError(f"{len(matches)} options with id {option_id} in poll {poll_id}")
        return matches[0]

    async def add_option(self, poll_id: str, option_id: str, payload: Poll) -> PollOption:
        if not is_valid_id(option_id):
            raise BadRequest(f"{option_id!r} is not a usable id")
        poll = await self._repository.get(poll_id)
        option = _single_option(payload, option_id)

        if any(existing.option_id == option_id for existing in poll.options):
            raise Conflict(f"option {option_id} already exists in poll {poll_id}")

        poll.options.append(option)
        await self._repository.overwrite(poll_id, poll)
        self._log.info("option_added", poll_id=poll_id, option_id=option_id)
        return option

    async def update_option(self, poll_id: str, option_id: str, payload: Poll) -> PollOption:
        poll = await self._repository.get(poll_id)
        option = _single_option(payload, option_id)

        for index, existing in enumerate(poll.options):
            if existing.option_id == option_id:
                poll.options[index] = option
                await self._repository.overwrite(poll_id, poll)
                self._log.info("option_updated", poll_id=poll_id, option_id=option_id)
                return option

        raise NotFound(f"option {option_id} not in poll {poll_id}")

    async def delete_option(self, poll_id: str, option_id: str) -> None:
        poll = await self._repository.get(poll_id)
        for index, existing in enumerate(poll.options):
            if existing.option_id == option_id:
                del poll.options[index]
                await self._repository.overwrite(poll_id, poll)
                self._log.info("option_deleted", poll_id=poll_id, option_id=option_id)
                return
        raise NotFound(f"option {option_id} not in poll {poll_id}")


def _single_option(payload: Poll, option_id: str) -> PollOption:
    # option ids come from the path, never from the body
    if len(payload.options) != 1:
        raise BadRequest(f"exactly one option per request, {len(payload.options)} given")
    return payload.options[0].model_copy(update={"option_id": option_id})


router = APIRouter(prefix="/polls")

PollID = Annotated[str, Path(pattern=ID_PATTERN)]
OptionID = Annotated[str, Path(pattern=ID_PATTERN)]


def poll_service(request: Request) -> PollService:
    return request.app.state.poll_service


Service = Annotated[PollService, Depends(poll_service)]


@router.get("/health", response_model=Health)
def health():
    return Health(version=__version__)


@router.get("", response_model=List[Poll])
async def list_polls(service: Service):
    return await service.list_polls()


@router.get("/{poll_id}", response_model=Poll)
async def get_poll(poll_id: PollID, service: Service):
    return await service.get_poll(poll_id)


@router.post("/{poll_id}", response_model=Poll)
async def add_poll(poll_id: PollID, poll: Poll, service: Service):
    return await service.add_poll(poll_id, poll)


@router.put("/{poll_id}", response_model=Poll)
async def update_poll(poll_id: PollID, poll: Poll, service: Service):
    return await service.update_poll(poll_id, poll)


@router.delete("/{poll_id}")
async def delete_poll(poll_id: PollID, service: Service):
    await service.delete_poll(poll_id)
    return Response(status_code=200)


@router.get("/{poll_id}/options", response_model=List[PollOption])
async def get_options(poll_id: PollID, service: Service):
    return await service.get_options(poll_id)


@router.get("/{poll_id}/options/{option_id}", response_model=PollOption)
async def get_option(poll_id: PollID, option_id: OptionID, service: Service):
    return await service.get_option(poll_id, option_id)


@router.post("/{poll_id}/options/{option_id}", response_model=PollOption)
async def add_option(poll_id: PollID, option_id: OptionID, poll: Poll, service: Service):
    return await service.add_option(poll_id, option_id, poll)


@router.put("/{poll_id}/options/{option_id}", response_model=PollOption)
async def update_option(poll_id: PollID, option_id: OptionID, poll: Poll, service: Service):
    return await service.update_option(poll_id, option_id, poll)


@router.delete("/{poll_id}/options/{option_id}")
async def delete_option(poll_id: PollID, option_id: OptionID, service: Service):
    await service.delete_option(poll_id, option_id)
    return Response(status_code=200)
