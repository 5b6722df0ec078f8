"""
Remote Stores - Abstract interface for the cloud "logs" table

The sync engine only needs two capabilities from the remote side: a full
read of every row and a bulk upsert keyed by id. SupabaseStore implements
them against a Supabase/PostgREST endpoint using httpx.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional, List, Any

import httpx

from .models import LogEntry

logger = logging.getLogger(__name__)

DEFAULT_TABLE = "logs"
DEFAULT_TIMEOUT = 30.0


class SyncError(Exception):
    """Base exception for remote store errors"""

    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


class RemoteConnectionError(SyncError):
    """Endpoint unreachable or credential rejected"""
    pass


class RemoteReadError(SyncError):
    """Fetch failed after a valid connection"""
    pass


class RemoteWriteError(SyncError):
    """Upsert failed (constraint violation, transient fault)"""
    pass


class RemoteStore(ABC):
    """
    Abstract base class for remote log stores

    The remote store is the durable superset of every replica: rows are
    never removed, deletions arrive as rows with isDeleted=true.
    """

    @abstractmethod
    async def probe(self) -> None:
        """
        Perform a minimal, bounded read against the collection.

        Raises:
            RemoteConnectionError: If the endpoint or credential is not usable
        """
        pass

    @abstractmethod
    async def fetch_all(self) -> List[LogEntry]:
        """
        Fetch every row, regardless of deletion state.

        Returns:
            Unordered list of LogEntry

        Raises:
            RemoteConnectionError: If the endpoint cannot be reached
            RemoteReadError: If the read fails or returns malformed rows
        """
        pass

    @abstractmethod
    async def upsert_many(self, entries: List[LogEntry]) -> None:
        """
        Insert or overwrite rows sharing an id.

        Idempotent. A raised error means the call is treated as not applied.

        Raises:
            RemoteConnectionError: If the endpoint cannot be reached
            RemoteWriteError: If the write is rejected
        """
        pass

    async def close(self) -> None:
        """Release network resources"""
        pass


class SupabaseStore(RemoteStore):
    """
    Supabase (PostgREST) backed log store

    Authentication uses the project API key, sent both as the 'apikey'
    header and as a bearer token.
    """

    def __init__(
        self,
        endpoint: str,
        credential: str,
        table: str = DEFAULT_TABLE,
        timeout: float = DEFAULT_TIMEOUT,
        page_size: int = 1000,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Supabase store

        Args:
            endpoint: Project URL (e.g., "https://xyz.supabase.co")
            credential: Project API key
            table: Table name (default: "logs")
            timeout: Per-request timeout in seconds
            page_size: Rows per read request
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        if not endpoint or not credential:
            raise ValueError("endpoint and credential are required")

        self.endpoint = endpoint.strip().rstrip("/")
        self.credential = credential.strip()
        self.table = table
        self.timeout = timeout
        self.page_size = page_size
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_config(cls, config: Any) -> "SupabaseStore":
        """Create a store from a SyncConfig"""
        return cls(
            endpoint=config.endpoint,
            credential=config.credential,
            table=config.table,
            timeout=config.timeout,
        )

    @property
    def table_url(self) -> str:
        return f"{self.endpoint}/rest/v1/{self.table}"

    def _get_client(self) -> httpx.AsyncClient:
        """Create the HTTP client on first use"""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={
                    "apikey": self.credential,
                    "Authorization": f"Bearer {self.credential}",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def _request(
        self,
        method: str,
        error_cls: type,
        action: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request and map failures onto the SyncError taxonomy"""
        client = self._get_client()

        try:
            response = await client.request(method, self.table_url, **kwargs)
        except httpx.TimeoutException as e:
            raise RemoteConnectionError(
                f"Timed out trying to {action} at {self.endpoint}: {e}",
                retryable=True,
            ) from e
        except httpx.TransportError as e:
            raise RemoteConnectionError(
                f"Cannot reach {self.endpoint}: {e}",
                retryable=True,
            ) from e
        except httpx.InvalidURL as e:
            raise RemoteConnectionError(f"Invalid endpoint {self.endpoint!r}: {e}") from e

        if response.status_code in (401, 403):
            raise RemoteConnectionError(
                f"Credential rejected ({response.status_code}): {_error_detail(response)}"
            )

        if response.is_error:
            retryable = response.status_code >= 500 or response.status_code == 429
            raise error_cls(
                f"Failed to {action} ({response.status_code}): {_error_detail(response)}",
                retryable=retryable,
            )

        return response

    async def probe(self) -> None:
        """Select a single id to verify endpoint, credential and table"""
        try:
            response = await self._request(
                "GET",
                RemoteConnectionError,
                "query table",
                params={"select": "id", "limit": "1"},
            )
            rows = response.json()
        except ValueError as e:
            raise RemoteConnectionError(f"Malformed response from {self.endpoint}: {e}") from e

        if not isinstance(rows, list):
            raise RemoteConnectionError(
                f"Unexpected response from {self.endpoint}: expected a list of rows"
            )

    async def fetch_all(self) -> List[LogEntry]:
        """Read the whole table page by page"""
        entries: List[LogEntry] = []
        offset = 0

        while True:
            response = await self._request(
                "GET",
                RemoteReadError,
                "fetch rows",
                params={
                    "select": "*",
                    "order": "id",
                    "limit": str(self.page_size),
                    "offset": str(offset),
                },
            )

            try:
                rows = response.json()
                if not isinstance(rows, list):
                    raise ValueError("expected a list of rows")
                page = [LogEntry.from_dict(row) for row in rows]
            except ValueError as e:
                raise RemoteReadError(f"Malformed rows from {self.table_url}: {e}") from e

            entries.extend(page)
            if len(page) < self.page_size:
                break
            offset += len(page)

        logger.debug(f"Fetched {len(entries)} rows from {self.table_url}")
        return entries

    async def upsert_many(self, entries: List[LogEntry]) -> None:
        """Bulk upsert keyed by id"""
        if not entries:
            return

        await self._request(
            "POST",
            RemoteWriteError,
            "upsert rows",
            params={"on_conflict": "id"},
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
            json=[entry.to_dict() for entry in entries],
        )

        logger.debug(f"Upserted {len(entries)} rows to {self.table_url}")

    async def close(self) -> None:
        """Close HTTP client"""
        if self._client:
            await self._client.aclose()
            self._client = None


def _error_detail(response: httpx.Response) -> str:
    """Extract PostgREST's error message, falling back to the raw body"""
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase

    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)
