from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Final

import requests
from django.conf import settings
from django.utils import timezone

from .models import AccountingConnection

log = logging.getLogger(__name__)

TOKEN_URL: Final[str] = "https://oauth.platform.intuit.com/oauth2/v1/tokens/bearer"
BASE_URLS: Final[dict[str, str]] = {
    "sandbox": "https://sandbox-quickbooks.api.intuit.com",
    "production": "https://quickbooks.api.intuit.com",
}
DEFAULT_TIMEOUT: Final[int] = 20  # seconds
# Refresh a little before the provider's own expiry
TOKEN_EXPIRY_SKEW: Final[dt.timedelta] = dt.timedelta(minutes=1)


class AccountingError(Exception):
    def __init__(self, message: str, status_code: int | None = None, intuit_tid: str = ""):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.intuit_tid = intuit_tid


class AccountingNotConnected(AccountingError):
    pass


def _fault_message(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    errors = ((payload.get("Fault") or {}).get("Error")) or []
    if errors:
        err = errors[0]
        return err.get("Detail") or err.get("Message") or f"HTTP {response.status_code}"
    return payload.get("error_description") or payload.get("error") or f"HTTP {response.status_code}"


def quote(value: str) -> str:
    """Quote a literal for the QuickBooks query language."""
    return "'" + (value or "").replace("\\", "\\\\").replace("'", "\\'") + "'"


class QuickBooksClient:
    """Thin REST client over the QuickBooks Online v3 API."""

    def __init__(
        self,
        connection: AccountingConnection,
        *,
        client_id: str = "",
        client_secret: str = "",
        minor_version: str = "",
        session: requests.Session | None = None,
        timeout: int = DEFAULT_TIMEOUT,
    ):
        self.connection = connection
        self.client_id = client_id or getattr(settings, "QB_CLIENT_ID", "")
        self.client_secret = client_secret or getattr(settings, "QB_CLIENT_SECRET", "")
        self.minor_version = minor_version or getattr(settings, "QB_MINOR_VERSION", "")
        self.session = session or requests.Session()
        self.timeout = timeout

    @property
    def base_url(self) -> str:
        root = BASE_URLS.get(self.connection.environment, BASE_URLS["sandbox"])
        return f"{root}/v3/company/{self.connection.realm_id}"

    def token_expired(self, now: dt.datetime | None = None) -> bool:
        if not self.connection.access_token or not self.connection.token_expires_at:
            return True
        now = now or timezone.now()
        return now >= self.connection.token_expires_at - TOKEN_EXPIRY_SKEW

    def refresh_tokens(self) -> None:
        conn = self.connection
        if not conn.refresh_token:
            raise AccountingNotConnected("QuickBooks not connected")
        resp = self.session.post(
            TOKEN_URL,
            auth=(self.client_id, self.client_secret),
            headers={"Accept": "application/json"},
            data={"grant_type": "refresh_token", "refresh_token": conn.refresh_token},
            timeout=self.timeout,
        )
        tid = resp.headers.get("intuit_tid", "")
        if not resp.ok:
            log.warning("[accounting] Token refresh failed status=%s tid=%s", resp.status_code, tid or "-")
            raise AccountingNotConnected(_fault_message(resp), resp.status_code, tid)
        token = resp.json()
        now = timezone.now()
        conn.access_token = token["access_token"]
        conn.refresh_token = token.get("refresh_token") or conn.refresh_token
        conn.token_expires_at = now + dt.timedelta(seconds=int(token.get("expires_in", 3600)))
        if token.get("x_refresh_token_expires_in"):
            conn.refresh_expires_at = now + dt.timedelta(seconds=int(token["x_refresh_token_expires_in"]))
        conn.save(update_fields=["access_token", "refresh_token", "token_expires_at", "refresh_expires_at", "updated_at"])
        log.info("[accounting] Refreshed QuickBooks token realm=%s tid=%s", conn.realm_id, tid or "-")

    def ensure_token(self) -> None:
        if self.token_expired():
            self.refresh_tokens()

    def _request(self, method: str, path: str, **kwargs) -> dict[str, Any]:
        self.ensure_token()
        params = kwargs.pop("params", None) or {}
        if self.minor_version:
            params.setdefault("minorversion", self.minor_version)
        headers = {
            "Authorization": f"Bearer {self.connection.access_token}",
            "Accept": "application/json",
        }
        resp = self.session.request(
            method,
            f"{self.base_url}/{path}",
            headers=headers,
            params=params,
            timeout=self.timeout,
            **kwargs,
        )
        tid = resp.headers.get("intuit_tid", "")
        if tid:
            log.debug("[accounting] %s %s tid=%s", method, path, tid)
        if not resp.ok:
            log.warning("[accounting] %s %s failed status=%s tid=%s", method, path, resp.status_code, tid or "-")
            raise AccountingError(_fault_message(resp), resp.status_code, tid)
        return resp.json()

    def query(self, statement: str) -> dict[str, Any]:
        """Run a query and return its ``QueryResponse`` body (possibly empty)."""
        payload = self._request("GET", "query", params={"query": statement})
        return payload.get("QueryResponse") or {}

    def create(self, entity: str, body: dict[str, Any]) -> dict[str, Any]:
        payload = self._request("POST", entity.lower(), json=body)
        return payload.get(entity) or {}
