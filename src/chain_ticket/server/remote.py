"""Shared HTTP plumbing for remote collaborators."""

from types import TracebackType
from typing import Any, Dict, Optional, Self

import httpx

from chain_ticket.x402.errors import ChainTicketError


class RemoteService:
    """JSON-over-HTTP client that reports failures as ``error_class``."""

    error_class: type[ChainTicketError] = ChainTicketError

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._http_client = http_client

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def _post(self, path: str, json_data: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self._base_url}{path}"
        try:
            response = await self.http_client.post(
                url,
                json=json_data,
                headers={"Content-Type": "application/json"},
            )

            if not response.is_success:
                error_message = f"HTTP {response.status_code} {response.reason_phrase}"
                if response.text:
                    error_message += f": {response.text[:500]}"
                raise self.error_class(error_message)

            body = response.json()
            if not isinstance(body, dict):
                raise self.error_class(f"Unexpected response from {url}: {body!r}")
            return body

        except ChainTicketError:
            raise
        except httpx.TimeoutException:
            raise self.error_class(f"Request timeout after {self._timeout}s")
        except Exception as error:
            raise self.error_class(f"Request failed: {error}")
