"""
============================================================================
Kipi Organizer Client - Remote Row Store Client
============================================================================
Async HTTP client for the row-oriented remote store (PostgREST dialect).
Every call is scoped by an owner id; reads are retried on transport errors.
============================================================================
"""

import logging
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from organizer_client.config import BackendSettings
from organizer_client.exceptions import NotAuthenticatedError, RemoteStoreError

logger = logging.getLogger(__name__)

OWNER_COLUMN = "user_id"


class RemoteStoreClient:
    """
    HTTP client for the remote row store.

    Provides per-table select/insert/update/delete. All four operations are
    filtered by the owner id and refuse to run without one.

    Example:
        ```python
        client = RemoteStoreClient(settings.backend, http_client)
        rows = await client.select("subjects", owner="user-1")
        ```
    """

    def __init__(
        self,
        settings: BackendSettings,
        http_client: httpx.AsyncClient,
        access_token: str | None = None,
    ):
        """
        Initialize remote store client.

        Args:
            settings: Backend connection settings
            http_client: Shared HTTP client (usually routed through the offline transport)
            access_token: Bearer token of the signed-in user, anon key when absent
        """
        self.settings = settings
        self.client = http_client
        self.access_token = access_token

    def set_access_token(self, access_token: str | None) -> None:
        """Switch the bearer token after a sign-in or sign-out."""
        self.access_token = access_token

    def _headers(self) -> dict[str, str]:
        anon_key = self.settings.anon_key.get_secret_value()
        headers = {"Accept": "application/json"}
        if anon_key:
            headers["apikey"] = anon_key
        bearer = self.access_token or anon_key
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        return headers

    def _table_url(self, table: str) -> str:
        return f"{self.settings.rest_url}/{table}"

    @staticmethod
    def _require_owner(owner: str | None) -> str:
        if not owner:
            raise NotAuthenticatedError("Remote store calls require an owner identity")
        return owner

    async def _send(
        self,
        method: str,
        table: str,
        params: dict[str, str] | None = None,
        json_body: Any = None,
        extra_headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Issue one request and map every failure to RemoteStoreError."""
        headers = self._headers()
        if extra_headers:
            headers.update(extra_headers)

        try:
            response = await self.client.request(
                method,
                self._table_url(table),
                params=params,
                json=json_body,
                headers=headers,
            )
        except httpx.TransportError:
            # Left to the retry policy of the caller
            raise
        except httpx.HTTPError as e:
            raise RemoteStoreError(f"{method} {table} failed: {e}") from e

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error on {method} {table}: {e}")
            raise RemoteStoreError(
                f"{method} {table} failed with status {response.status_code}",
                status_code=response.status_code,
            ) from e

        return response

    @staticmethod
    def _json_rows(response: httpx.Response, table: str) -> list[dict[str, Any]]:
        try:
            payload = response.json()
        except ValueError as e:
            raise RemoteStoreError(f"Malformed payload from {table}: {e}") from e
        if not isinstance(payload, list) or not all(isinstance(row, dict) for row in payload):
            raise RemoteStoreError(f"Malformed payload from {table}: expected a list of rows")
        return payload

    @classmethod
    def _require_match(cls, response: httpx.Response, table: str, record_id: str) -> None:
        """
        Fail when the id/owner filter matched nothing.

        A row owned by someone else is filtered out remotely and comes back as
        an empty representation. Servers ignoring ``Prefer`` answer 204 with
        no body, which is accepted as is.
        """
        if not response.content:
            return
        if not cls._json_rows(response, table):
            raise RemoteStoreError(
                f"No row {record_id} in {table} for the current owner",
                status_code=404,
            )

    async def select(self, table: str, owner: str) -> list[dict[str, Any]]:
        """
        Fetch every row of ``table`` owned by ``owner``.

        Args:
            table: Remote table name
            owner: Owner id

        Returns:
            Rows in the order the remote store returned them

        Raises:
            RemoteStoreError: the request failed after retries or the payload is malformed
        """
        owner = self._require_owner(owner)
        params = {"select": "*", OWNER_COLUMN: f"eq.{owner}"}

        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(httpx.TransportError),
                stop=stop_after_attempt(self.settings.read_retry_attempts),
                wait=wait_exponential(multiplier=self.settings.read_retry_backoff, max=10),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    response = await self._send("GET", table, params=params)
        except httpx.TransportError as e:
            logger.error(f"Network error selecting {table}: {e}")
            raise RemoteStoreError(f"GET {table} failed: {e}") from e

        rows = self._json_rows(response, table)
        logger.info(f"Fetched {len(rows)} rows from {table} for owner {owner}")
        return rows

    async def insert(self, table: str, row: dict[str, Any], owner: str) -> dict[str, Any]:
        """
        Insert one row owned by ``owner`` and return it as created remotely.

        The returned row carries the server-assigned id.
        """
        owner = self._require_owner(owner)
        body = {**row, OWNER_COLUMN: owner}
        body.pop("id", None)

        try:
            response = await self._send(
                "POST",
                table,
                json_body=body,
                extra_headers={"Prefer": "return=representation"},
            )
        except httpx.TransportError as e:
            raise RemoteStoreError(f"POST {table} failed: {e}") from e

        rows = self._json_rows(response, table)
        if len(rows) != 1:
            raise RemoteStoreError(f"Insert into {table} returned {len(rows)} rows, expected 1")
        created = rows[0]
        if not created.get("id"):
            raise RemoteStoreError(f"Insert into {table} returned a row without id")

        logger.info(f"Inserted row {created['id']} into {table}")
        return created

    async def update(
        self,
        table: str,
        record_id: str,
        owner: str,
        fields: dict[str, Any],
    ) -> None:
        """Replace ``fields`` of the row matching both ``record_id`` and ``owner``."""
        owner = self._require_owner(owner)
        params = {"id": f"eq.{record_id}", OWNER_COLUMN: f"eq.{owner}"}
        body = {k: v for k, v in fields.items() if k not in ("id", OWNER_COLUMN)}

        try:
            response = await self._send(
                "PATCH",
                table,
                params=params,
                json_body=body,
                extra_headers={"Prefer": "return=representation"},
            )
        except httpx.TransportError as e:
            raise RemoteStoreError(f"PATCH {table} failed: {e}") from e

        self._require_match(response, table, record_id)
        logger.info(f"Updated row {record_id} in {table}")

    async def delete(self, table: str, record_id: str, owner: str) -> None:
        """Delete the row matching both ``record_id`` and ``owner``."""
        owner = self._require_owner(owner)
        params = {"id": f"eq.{record_id}", OWNER_COLUMN: f"eq.{owner}"}

        try:
            response = await self._send(
                "DELETE",
                table,
                params=params,
                extra_headers={"Prefer": "return=representation"},
            )
        except httpx.TransportError as e:
            raise RemoteStoreError(f"DELETE {table} failed: {e}") from e

        self._require_match(response, table, record_id)
        logger.info(f"Deleted row {record_id} from {table}")

    async def health_check(self) -> bool:
        """
        Check that the REST endpoint answers.

        Returns:
            True if the endpoint returned a success status, False otherwise
        """
        try:
            response = await self.client.get(f"{self.settings.rest_url}/", headers=self._headers())
            return response.is_success
        except httpx.HTTPError as e:
            logger.error(f"Error checking remote store health: {e}")
            return False
