import logging
import re
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from scope.services.data_store import LIST_COLUMNS, DETAIL_COLUMNS, PUBLIC_COLUMNS, PatchResult, StoreError
from scope.vocabulary import DEFAULT_VOCABULARY, Vocabulary

logger = logging.getLogger(__name__)

# PostgREST reports totals as "0-23/57" or "*/0"
_CONTENT_RANGE_RE = re.compile(r"^(?:\d+-\d+|\*)/(\d+|\*)$")


class SupabaseMediaStore:
    """Data store over the hosted PostgREST table and public Storage bucket."""

    TABLE = "image_metadata"
    PUBLIC_TABLE = "public_gallery"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        access_token: Optional[str] = None,
        bucket: str = "images",
        thumbs_bucket: str = "public-thumbs",
        timeout: float = 15,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        vocabulary: Vocabulary = DEFAULT_VOCABULARY,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.access_token = access_token
        self.bucket = bucket
        self.thumbs_bucket = thumbs_bucket
        self.timeout = timeout
        self.vocabulary = vocabulary
        self._transport = transport

    def _rest_url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    @property
    def _table_url(self) -> str:
        return self._rest_url(self.TABLE)

    def _headers(self, **extra) -> dict:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token or self.api_key}",
            "Content-Type": "application/json",
        }
        headers.update(extra)
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    @staticmethod
    def _error_message(resp: httpx.Response) -> str:
        try:
            detail = resp.json()
        except ValueError:
            return resp.text or f"HTTP {resp.status_code}"
        if isinstance(detail, dict):
            return detail.get("message") or detail.get("error") or str(detail)
        return str(detail)

    def _check_response(self, resp: httpx.Response) -> None:
        """Raise with PostgREST's own error message on failure."""
        if resp.status_code >= 400:
            raise StoreError(f"Supabase {resp.status_code}: {self._error_message(resp)}")

    @staticmethod
    def _rows(resp: httpx.Response) -> List[Dict[str, Any]]:
        try:
            rows = resp.json()
        except ValueError as e:
            raise StoreError(f"Supabase {resp.status_code}: response is not JSON") from e
        if rows is None:
            return []
        if not isinstance(rows, list):
            raise StoreError(f"Supabase {resp.status_code}: expected a list of rows")
        return rows

    def _filter_params(self, category: str, color: Optional[str]) -> List[tuple]:
        params = [("category", f"eq.{category}")]
        if color:
            legacy = self.vocabulary.color_fields(category).legacy
            if legacy:
                params.append(("or", f'(colors.cs.{{"{color}"}},{legacy}.eq."{color}")'))
            else:
                params.append(("colors", f'cs.{{"{color}"}}'))
        return params

    async def count(self, category: str, color: Optional[str] = None) -> int:
        params = [("select", "id")] + self._filter_params(category, color)
        try:
            async with self._client() as client:
                resp = await client.head(
                    self._table_url,
                    headers=self._headers(Prefer="count=exact"),
                    params=params,
                )
        except httpx.HTTPError as e:
            raise StoreError(f"Count request failed: {e}") from e
        self._check_response(resp)
        match = _CONTENT_RANGE_RE.match(resp.headers.get("content-range", ""))
        if not match or match.group(1) == "*":
            raise StoreError("Count response carried no total")
        return int(match.group(1))

    async def fetch_page(
        self, category: str, color: Optional[str], offset: int, limit: int
    ) -> List[Dict[str, Any]]:
        params = [("select", ",".join(LIST_COLUMNS))] + self._filter_params(category, color)
        params += [
            ("order", "created_at.desc,id.desc"),
            ("offset", str(offset)),
            ("limit", str(limit)),
        ]
        try:
            async with self._client() as client:
                resp = await client.get(self._table_url, headers=self._headers(), params=params)
        except httpx.HTTPError as e:
            raise StoreError(f"Page request failed: {e}") from e
        self._check_response(resp)
        return self._rows(resp)

    async def fetch_record(self, record_id: str) -> Optional[Dict[str, Any]]:
        params = [("select", ",".join(DETAIL_COLUMNS)), ("id", f"eq.{record_id}"), ("limit", "1")]
        try:
            async with self._client() as client:
                resp = await client.get(self._table_url, headers=self._headers(), params=params)
        except httpx.HTTPError as e:
            raise StoreError(f"Record request failed: {e}") from e
        self._check_response(resp)
        rows = self._rows(resp)
        return rows[0] if rows else None

    async def patch_attributes(self, record_id: str, field: str, value: Any) -> PatchResult:
        try:
            async with self._client() as client:
                resp = await client.patch(
                    self._table_url,
                    headers=self._headers(Prefer="return=representation"),
                    params=[("id", f"eq.{record_id}"), ("select", "id")],
                    json={field: value},
                )
        except httpx.HTTPError as e:
            logger.warning(f"Patch of {field} on image {record_id} failed: {e}")
            return PatchResult(ok=False, error=str(e))
        if resp.status_code >= 400:
            return PatchResult(ok=False, error=self._error_message(resp))
        try:
            rows = self._rows(resp)
        except StoreError as e:
            logger.warning(f"Patch of {field} on image {record_id} returned no representation: {e}")
            return PatchResult(ok=False, error=str(e))
        # Row-level security hides rows the caller may not touch; PostgREST
        # answers with an empty representation instead of an error.
        if not rows:
            return PatchResult(ok=False, error=f"No image with id {record_id} may be updated by this account")
        return PatchResult(ok=True)

    async def fetch_public(self, limit: int) -> List[Dict[str, Any]]:
        params = [
            ("select", ",".join(PUBLIC_COLUMNS)),
            ("order", "created_at.desc"),
            ("limit", str(limit)),
        ]
        try:
            async with self._client() as client:
                resp = await client.get(
                    self._rest_url(self.PUBLIC_TABLE), headers=self._headers(), params=params
                )
        except httpx.HTTPError as e:
            raise StoreError(f"Public gallery request failed: {e}") from e
        self._check_response(resp)
        return self._rows(resp)

    def _object_url(self, bucket: str, path: Optional[str]) -> str:
        if not path:
            return ""
        return f"{self.base_url}/storage/v1/object/public/{bucket}/{quote(path.lstrip('/'))}"

    def resolve_public_url(self, path: Optional[str]) -> str:
        return self._object_url(self.bucket, path)

    def resolve_thumb_url(self, path: Optional[str]) -> str:
        return self._object_url(self.thumbs_bucket, path)

    def with_access_token(self, access_token: str) -> "SupabaseMediaStore":
        """Copy of this store that acts as the signed-in user."""
        return SupabaseMediaStore(
            self.base_url,
            self.api_key,
            access_token=access_token,
            bucket=self.bucket,
            thumbs_bucket=self.thumbs_bucket,
            timeout=self.timeout,
            transport=self._transport,
            vocabulary=self.vocabulary,
        )
