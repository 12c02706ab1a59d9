# outbound calls to peer services
from typing import Any, Optional

import httpx
import structlog

log = structlog.get_logger(__name__)


class DownstreamError(Exception):
    """
    A peer answered with anything but 200, or could not be reached
    (``status_code`` is None then).
    """

    def __init__(self, method: str, url: str, status_code: Optional[int] = None) -> None:
        self.method = method
        self.url = url
        self.status_code = status_code
        super().__init__(f"{method} {url} -> {status_code if status_code else 'unreachable'}")


class ServiceClient:
    """
    Sequential JSON calls against one peer. Every call uses the timeout
    configured on the shared ``httpx.AsyncClient``; nothing is retried.
    """

    def __init__(self, http: httpx.AsyncClient, base_url: str, prefix: str) -> None:
        self._http = http
        self.base_url = base_url.rstrip("/")
        self.prefix = prefix

    def url(self, path: str = "") -> str:
        return f"{self.base_url}{self.prefix}{path}"

    async def request(self, method: str, path: str = "", payload: Any = None) -> Any:
        url = self.url(path)
        try:
            resp = await self._http.request(method, url, json=payload)
        except httpx.HTTPError as exc:
            log.warning("downstream_unreachable", method=method, url=url, error=str(exc))
            raise DownstreamError(method, url) from exc

        if resp.status_code != 200:
            log.info("downstream_refused", method=method, url=url, status=resp.status_code)
            raise DownstreamError(method, url, resp.status_code)

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            log.warning("downstream_bad_payload", method=method, url=url)
            raise DownstreamError(method, url, resp.status_code) from exc

    async def get(self, path: str = "") -> Any:
        return await self.request("GET", path)


class VoterClient(ServiceClient):
    def __init__(self, http: httpx.AsyncClient, base_url: str, prefix: str = "/voters") -> None:
        super().__init__(http, base_url, prefix)

    async def get_voter(self, voter_id: str) -> Any:
        return await self.get(f"/{voter_id}")

    async def add_history(self, voter_id: str, poll_id: str, payload: dict) -> None:
        await self.request("POST", f"/{voter_id}/polls/{poll_id}", payload)

    async def update_history(self, voter_id: str, poll_id: str, payload: dict) -> None:
        await self.request("PUT", f"/{voter_id}/polls/{poll_id}", payload)

    async def delete_history(self, voter_id: str, poll_id: str) -> None:
        await self.request("DELETE", f"/{voter_id}/polls/{poll_id}")


class PollClient(ServiceClient):
    """
    Poll lookups. The Votes service talks to the Poll service directly;
    the Voter service goes through the Votes proxy (prefix ``/votes/polls``).
    """

    def __init__(self, http: httpx.AsyncClient, base_url: str, prefix: str = "/polls") -> None:
        super().__init__(http, base_url, prefix)

    async def get_poll(self, poll_id: str) -> Any:
        return await self.get(f"/{poll_id}")

    async def get_option(self, poll_id: str, option_id: str) -> Any:
        return await self.get(f"/{poll_id}/options/{option_id}")
