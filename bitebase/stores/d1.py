"""Cloudflare D1 store, talking to the D1 REST query endpoint."""

import logging
from typing import Any, Dict, List, Optional, Sequence

import requests

from bitebase.core.errors import ConfigError, PersistedStoreError
from bitebase.stores.sql import SqlDialectStore

logger = logging.getLogger(__name__)
_BASE_URL = "https://api.cloudflare.com/client/v4"


class D1Store(SqlDialectStore):
    name = "d1"

    def __init__(
        self,
        account_id: str,
        database_id: str,
        api_token: str,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ) -> None:
        if not (account_id and database_id and api_token):
            raise ConfigError("D1 account id, database id and API token are required")
        self.url = f"{_BASE_URL}/accounts/{account_id}/d1/database/{database_id}/query"
        self.timeout = timeout
        self._session = session or requests.Session()
        self._headers = {"Authorization": f"Bearer {api_token}", "Content-Type": "application/json"}

    def _execute(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        body = {"sql": " ".join(sql.split()), "params": list(params)}
        try:
            response = self._session.post(self.url, json=body, headers=self._headers, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.error("D1 request failed: %s", exc)
            raise PersistedStoreError(f"D1 request failed: {exc}") from exc

        if not payload.get("success"):
            errors = payload.get("errors") or []
            message = "; ".join(str(err.get("message", err)) for err in errors) or "unknown error"
            logger.error("D1 query rejected: %s", message)
            raise PersistedStoreError(f"D1 query rejected: {message}")

        results = payload.get("result") or []
        if not results:
            return []
        return list(results[0].get("results") or [])
