"""Alpha Vantage HTTP transport."""

import logging

import httpx

from marketfeed.exceptions import RemoteError

logger = logging.getLogger(__name__)

# Keys Alpha Vantage uses to report failures inside a 200 response
_ERROR_KEYS = ("Error Message", "Note", "Information")


class AlphaVantageClient:
    """Thin async wrapper around the single ``/query`` endpoint.

    Every failure mode (transport, non-2xx, non-JSON body, in-body error or
    rate-limit note) is raised as RemoteError. No retries happen here.
    """

    def __init__(
        self,
        base_url: str = "https://www.alphavantage.co",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def query(self, function: str, api_key: str, **params: str) -> dict:
        try:
            resp = await self._client.get(
                "/query", params={"function": function, "apikey": api_key, **params},
            )
        except httpx.HTTPError as exc:
            raise RemoteError(f"{function} request failed: {exc}") from exc

        if not resp.is_success:
            logger.warning("Alpha Vantage %s returned HTTP %d", function, resp.status_code)
            raise RemoteError(
                f"API Error {resp.status_code}: {resp.reason_phrase}",
                status_code=resp.status_code,
            )

        try:
            body = resp.json()
        except ValueError as exc:
            raise RemoteError(f"{function} returned a malformed body") from exc

        if not isinstance(body, dict):
            raise RemoteError(f"{function} returned {type(body).__name__}, expected an object")

        for key in _ERROR_KEYS:
            if key in body:
                logger.warning("Alpha Vantage %s rejected the call: %s", function, str(body[key])[:200])
                raise RemoteError(str(body[key]))

        return body

    async def aclose(self) -> None:
        await self._client.aclose()
