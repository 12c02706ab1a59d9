from contextlib import asynccontextmanager
from typing import Optional

import httpx
import structlog
from fastapi import FastAPI

from .clients import PollClient, VoterClient
from .config import Settings
from .errors import register_error_handlers
from .models import Poll, Vote, Voter
from .polls import PollService
from .polls import router as polls_router
from .repository import POLL_PREFIX, VOTE_PREFIX, VOTER_PREFIX, Repository
from .store import DocumentStore, build_store
from .voters import VoterService
from .voters import router as voters_router
from .votes import VotesService
from .votes import router as votes_router

log = structlog.get_logger(__name__)


def _lifespan(settings: Settings, store: DocumentStore, http: Optional[httpx.AsyncClient]):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup: refuse to serve without a reachable store
        if not await store.ping():
            raise RuntimeError(f"document store unreachable at {settings.cache_url!r}")
        log.info(
            "service_started",
            service=settings.service,
            host=settings.host,
            port=settings.port,
            cache_url=settings.cache_url or "memory",
        )
        yield
        # Shutdown
        if http is not None:
            await http.aclose()
        await store.close()
        log.info("service_stopped", service=settings.service)

    return lifespan


def _http_client(settings: Settings, http: Optional[httpx.AsyncClient]) -> httpx.AsyncClient:
    return http if http is not None else httpx.AsyncClient(timeout=settings.http_timeout)


def create_voter_app(
    settings: Optional[Settings] = None,
    store: Optional[DocumentStore] = None,
    http: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    settings = settings or Settings(service="voter")
    store = store or build_store(settings.cache_url)

    polls = None
    if settings.votes_api_url:
        http = _http_client(settings, http)
        polls = PollClient(http, settings.votes_api_url, prefix="/votes/polls")

    app = FastAPI(title="Voter API", lifespan=_lifespan(settings, store, http))
    app.state.voter_service = VoterService(Repository(store, VOTER_PREFIX, Voter), polls)
    register_error_handlers(app)
    app.include_router(voters_router)
    return app


def create_poll_app(
    settings: Optional[Settings] = None,
    store: Optional[DocumentStore] = None,
) -> FastAPI:
    settings = settings or Settings(service="poll")
    store = store or build_store(settings.cache_url)

    app = FastAPI(title="Poll API", lifespan=_lifespan(settings, store, None))
    app.state.poll_service = PollService(Repository(store, POLL_PREFIX, Poll))
    register_error_handlers(app)
    app.include_router(polls_router)
    return app


def create_votes_app(
    settings: Optional[Settings] = None,
    store: Optional[DocumentStore] = None,
    http: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    settings = settings or Settings(service="votes")
    store = store or build_store(settings.cache_url)
    http = _http_client(settings, http)

    app = FastAPI(title="Votes API", lifespan=_lifespan(settings, store, http))
    app.state.votes_service = VotesService(
        Repository(store, VOTE_PREFIX, Vote),
        VoterClient(http, settings.voter_api_url),
        PollClient(http, settings.poll_api_url),
    )
    register_error_handlers(app)
    app.include_router(votes_router)
    return app


FACTORIES = {
    "voter": create_voter_app,
    "poll": create_poll_app,
    "votes": create_votes_app,
}


def create_app(settings: Settings) -> FastAPI:
    return FACTORIES[settings.service](settings)
