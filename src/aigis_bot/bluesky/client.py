"""
Minimal XRPC client for the Bluesky endpoints the bot needs.
"""

from datetime import datetime, timezone
from typing import Any

import httpx
import structlog

from ..errors import ReplyError, ThreadFetchError
from .records import POST_COLLECTION, ReplyRef, StrongRef

logger = structlog.get_logger()

# getPostThread caps both depth and parentHeight at 1000
MAX_THREAD_DEPTH = 1000


class BlueskyClient:
    """Authenticated session against a PDS."""

    def __init__(
        self,
        identifier: str,
        password: str,
        service: str = "https://bsky.social",
        http_client: httpx.AsyncClient | None = None,
    ):
        self.identifier = identifier
        self.password = password
        self.service = service.rstrip("/")
        self.client = http_client or httpx.AsyncClient(base_url=self.service, timeout=30.0)
        self.did: str = ""
        self.handle: str = ""
        self._access_jwt: str = ""
        self._refresh_jwt: str = ""

    async def login(self) -> str:
        """Create a session and return the account DID."""
        response = await self.client.post(
            "/xrpc/com.atproto.server.createSession",
            json={"identifier": self.identifier, "password": self.password},
        )
        response.raise_for_status()
        self._store_session(response.json())
        logger.info("Logged in to Bluesky", handle=self.handle, did=self.did)
        return self.did

    async def close(self) -> None:
        await self.client.aclose()

    def _store_session(self, data: dict[str, Any]) -> None:
        self.did = data["did"]
        self.handle = data.get("handle", self.handle)
        self._access_jwt = data["accessJwt"]
        self._refresh_jwt = data["refreshJwt"]

    async def _refresh(self) -> None:
        response = await self.client.post(
            "/xrpc/com.atproto.server.refreshSession",
            headers={"Authorization": f"Bearer {self._refresh_jwt}"},
        )
        response.raise_for_status()
        self._store_session(response.json())
        logger.debug("Refreshed Bluesky session")

    async def _request(self, method: str, nsid: str, **kwargs: Any) -> dict[str, Any]:
        """Issue an authenticated XRPC call, refreshing the session once on expiry."""
        for attempt in range(2):
            response = await self.client.request(
                method,
                f"/xrpc/{nsid}",
                headers={"Authorization": f"Bearer {self._access_jwt}"},
                **kwargs,
            )
            if response.status_code in (400, 401) and attempt == 0 and self._is_expired(response):
                await self._refresh()
                continue
            response.raise_for_status()
            return response.json()
        raise httpx.HTTPError(f"{nsid} failed after session refresh")

    @staticmethod
    def _is_expired(response: httpx.Response) -> bool:
        try:
            data = response.json()
        except ValueError:
            return False
        return isinstance(data, dict) and data.get("error") == "ExpiredToken"

    async def get_thread(self, uri: str, depth: int = MAX_THREAD_DEPTH) -> dict[str, Any]:
        """Fetch the thread view around ``uri``.

        Raises:
            ThreadFetchError: on any transport or HTTP failure, or a body
                that isn't JSON.
        """
        try:
            return await self._request(
                "GET",
                "app.bsky.feed.getPostThread",
                params={"uri": uri, "depth": depth, "parentHeight": MAX_THREAD_DEPTH},
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Thread fetch failed", uri=uri, error=str(e))
            raise ThreadFetchError(f"Could not fetch thread {uri}: {e}") from e

    async def create_reply(self, reply: ReplyRef, text: str, language: str = "en") -> StrongRef:
        """Post ``text`` as a reply and return a reference to the new record."""
        record = {
            "$type": POST_COLLECTION,
            "text": text,
            "createdAt": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "langs": [language],
            "reply": reply.to_dict(),
        }
        try:
            data = await self._request(
                "POST",
                "com.atproto.repo.createRecord",
                json={"repo": self.did, "collection": POST_COLLECTION, "record": record},
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Reply failed", parent=reply.parent.uri, error=str(e))
            raise ReplyError(f"Could not post reply to {reply.parent.uri}: {e}") from e

        if not isinstance(data, dict) or "uri" not in data or "cid" not in data:
            raise ReplyError(f"Unexpected createRecord response for reply to {reply.parent.uri}")

        logger.info("Reply posted", uri=data.get("uri"), parent=reply.parent.uri)
        return StrongRef(uri=data["uri"], cid=data["cid"])
