from __future__ import annotations
import logging
import requests
from typing import List, Dict, Any, Optional
from core.exceptions import StoreError, ConnectionFailure

logger = logging.getLogger(__name__)


def eq(value: Any) -> str:
    """PostgREST equality filter."""
    return f"eq.{value}"


class SupabaseClient:
    """Minimal PostgREST (Supabase) client on top of requests."""
    def __init__(self, base_url: str, api_key: str, timeout: float = 10,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        })

    def _url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    def _request(self, method: str, table: str, *, params: Optional[Dict[str, Any]] = None,
                 json: Any = None, prefer: Optional[str] = None) -> Any:
        headers = {"Prefer": prefer} if prefer else None
        try:
            r = self.session.request(method, self._url(table), params=params, json=json,
                                     headers=headers, timeout=self.timeout)
        except (requests.ConnectionError, requests.Timeout, requests.exceptions.ChunkedEncodingError) as e:
            logger.warning("%s %s unreachable: %s", method, table, e)
            raise ConnectionFailure(f"Backend unreachable: {e}") from e
        except requests.RequestException as e:
            # malformed URL or similar: not a connectivity problem
            logger.error("%s %s could not be sent: %s", method, table, e)
            raise StoreError(f"{method} {table} failed: {e}") from e
        if not r.ok:
            raise StoreError(f"{method} {table} failed: {r.status_code} {r.text}", r.status_code)
        if not r.content:
            return None
        try:
            return r.json()
        except ValueError as e:
            raise StoreError(f"{method} {table} returned a non-JSON body ({r.status_code})", r.status_code) from e

    def _rows(self, method: str, table: str, **kwargs: Any) -> List[Dict[str, Any]]:
        data = self._request(method, table, **kwargs)
        if data is None:
            return []
        if not isinstance(data, list):
            raise StoreError(f"{method} {table} returned {type(data).__name__}, expected rows")
        return data

    # ---------- rows ----------
    def select(self, table: str, filters: Optional[Dict[str, str]] = None, *,
               order: Optional[str] = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"select": "*"}
        params.update(filters or {})
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = limit
        return self._rows("GET", table, params=params)

    def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        rows = self._rows("POST", table, json=[row], prefer="return=representation")
        if not rows:
            raise StoreError(f"Insert into {table} returned no row")
        return rows[0]

    def update(self, table: str, filters: Dict[str, str], fields: Dict[str, Any]) -> List[Dict[str, Any]]:
        return self._rows("PATCH", table, params=filters, json=fields,
                          prefer="return=representation")

    def delete(self, table: str, filters: Dict[str, str]) -> List[Dict[str, Any]]:
        return self._rows("DELETE", table, params=filters, prefer="return=representation")
