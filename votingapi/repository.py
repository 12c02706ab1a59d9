from typing import Generic, List, Type, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from .errors import Conflict, InternalError, NotFound
from .store import DocumentStore

ModelT = TypeVar("ModelT", bound=BaseModel)

VOTER_PREFIX = "voter"
POLL_PREFIX = "poll"
VOTE_PREFIX = "vote"

log = structlog.get_logger(__name__)


class Repository(Generic[ModelT]):
    """
    One entity per key ``"<prefix>:<id>"``, stored as a JSON document.
    There is no partial update: callers read, change in memory and overwrite.
    """

    def __init__(self, store: DocumentStore, prefix: str, model: Type[ModelT]) -> None:
        self._store = store
        self.prefix = prefix
        self._model = model

    def key(self, entity_id: str) -> str:
        return f"{self.prefix}:{entity_id}"

    def _dump(self, entity: ModelT) -> str:
        return entity.model_dump_json(by_alias=True)

    async def get(self, entity_id: str) -> ModelT:
        raw = await self._store.get(self.key(entity_id))
        if raw is None:
            raise NotFound(f"{self.prefix} {entity_id} does not exist")
        try:
            return self._model.model_validate_json(raw)
        except ValidationError as exc:
            log.warning("malformed_document", key=self.key(entity_id), errors=exc.error_count())
            raise NotFound(f"{self.prefix} {entity_id} is unreadable") from exc

    async def exists(self, entity_id: str) -> bool:
        return await self._store.get(self.key(entity_id)) is not None

    async def list(self) -> List[ModelT]:
        entities: List[ModelT] = []
        for key in await self._store.keys(f"{self.prefix}:"):
            raw = await self._store.get(key)
            if raw is None:
                # deleted between the scan and the read
                continue
            try:
                entities.append(self._model.model_validate_json(raw))
            except ValidationError as exc:
                raise InternalError(f"document {key} is unreadable") from exc
        return entities

    async def create(self, entity_id: str, entity: ModelT) -> None:
        if not await self._store.set_if_absent(self.key(entity_id), self._dump(entity)):
            raise Conflict(f"{self.prefix} {entity_id} already exists")

    async def overwrite(self, entity_id: str, entity: ModelT) -> None:
        await self._store.set(self.key(entity_id), self._dump(entity))

    async def delete(self, entity_id: str) -> None:
        if await self._store.delete(self.key(entity_id)) == 0:
            raise NotFound(f"{self.prefix} {entity_id} does not exist")
