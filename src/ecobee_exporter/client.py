"""ecobee cloud API client — the exporter's thermostat data source.

``EcobeeClient.fetch_thermostats(selection)`` is the single operation the
scrape translator needs.  It returns validated
:class:`~ecobee_exporter.models.thermostat.Thermostat` snapshots or raises an
:class:`EcobeeError`.

Error hierarchy (all inherit from RuntimeError):

    EcobeeError
    ├── EcobeeApiError       — transport failure, HTTP error or non-zero API status
    ├── EcobeeAuthError      — no usable token, or the refresh was rejected
    └── EcobeeResponseError  — body is not JSON or not the documented shape

Tokens
------
ecobee access tokens live for one hour; refresh tokens rotate on every use.
:class:`TokenStore` keeps the current pair in a JSON cache file (mode 0600)
so a restarted exporter resumes without re-authorising.  The first refresh
token is seeded from configuration (``ecobee.refresh_token``) and obtained
once through the ecobee developer portal; the interactive PIN flow is not
part of the exporter.
"""

from __future__ import annotations

import json
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Protocol

import requests

from ecobee_exporter.config import Settings
from ecobee_exporter.decode import decode_thermostats
from ecobee_exporter.logging import get_logger
from ecobee_exporter.models.thermostat import Selection, Thermostat

_log = get_logger(__name__)

# Refresh this many seconds before the access token actually expires.
TOKEN_EXPIRY_BUFFER = 60
# ecobee status code for "Authentication token has expired".
EXPIRED_TOKEN_CODE = 14
# ecobee's documented default access-token lifetime.
_DEFAULT_EXPIRES_IN = 3600
_BODY_PREVIEW = 300


# ---------------------------------------------------------------------------
# Typed error classes
# ---------------------------------------------------------------------------


class EcobeeError(RuntimeError):
    """Base class for every data-source failure."""


class EcobeeApiError(EcobeeError):
    """The request failed in transport, over HTTP, or with a non-zero ecobee status."""

    def __init__(self, message: str, *, status_code: int | None = None, code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class EcobeeAuthError(EcobeeError):
    """No refresh token is available, or ecobee rejected it."""


class EcobeeResponseError(EcobeeError):
    """The response body is not JSON or does not have the documented shape."""


class ThermostatSource(Protocol):
    def fetch_thermostats(self, selection: Selection) -> list[Thermostat]: ...


# ---------------------------------------------------------------------------
# Token cache
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Tokens:
    refresh_token: str
    access_token: str | None = None
    expires_at: int = 0


class TokenStore:
    """Token pair persisted in a JSON cache file.

    Args:
        cache_path:         Cache file, or None to keep tokens in memory only.
        seed_refresh_token: Used when the cache file does not exist yet.
    """

    def __init__(self, cache_path: Path | None, seed_refresh_token: str | None = None) -> None:
        self._cache_path = cache_path
        self._seed = seed_refresh_token
        self._current: Tokens | None = None

    def load(self) -> Tokens | None:
        """Return the current tokens: in-memory, then cache file, then the seed."""
        if self._current is not None:
            return self._current
        if self._cache_path is not None:
            self._current = _read_cache(self._cache_path)
        if self._current is None and self._seed:
            self._current = Tokens(refresh_token=self._seed)
        return self._current

    def save(self, tokens: Tokens) -> None:
        """Keep *tokens* in memory and persist them; a failed write only warns."""
        self._current = tokens
        if self._cache_path is None:
            return
        try:
            _write_cache(self._cache_path, tokens)
        except OSError as exc:
            _log.warning("token cache not written", path=str(self._cache_path), error=str(exc))


def _read_cache(path: Path) -> Tokens | None:
    """Return cached tokens, or None if the file is missing or unreadable."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except OSError as exc:
        _log.warning("token cache unreadable", path=str(path), error=str(exc))
        return None
    except ValueError:
        data = None
    if not isinstance(data, dict) or not data.get("refresh_token"):
        _log.warning("ignoring malformed token cache", path=str(path))
        return None
    access_token = data.get("access_token")
    try:
        expires_at = int(data.get("expires_at") or 0)
    except (TypeError, ValueError, OverflowError):
        expires_at = 0
    return Tokens(
        refresh_token=str(data["refresh_token"]),
        access_token=access_token if isinstance(access_token, str) else None,
        expires_at=expires_at,
    )


def _write_cache(path: Path, tokens: Tokens) -> None:
    """Atomic write with restrictive permissions (0o600)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(json.dumps(asdict(tokens)), encoding="utf-8")
    tmp_path.chmod(0o600)
    tmp_path.replace(path)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class EcobeeClient:
    """Thermostat data source backed by the ecobee v1 REST API.

    Args:
        app_key:         Application key from the ecobee developer portal.
        tokens:          Where the access/refresh token pair lives.
        api_base_url:    API root, without trailing slash.
        timeout_seconds: Per-request HTTP timeout; bounds a whole scrape.
        session:         Optional ``requests.Session`` (created if None).
        clock:           Returns the current Unix time; override in tests.
    """

    def __init__(
        self,
        app_key: str,
        tokens: TokenStore,
        *,
        api_base_url: str = "https://api.ecobee.com",
        timeout_seconds: float = 30.0,
        session: requests.Session | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._app_key = app_key
        self._tokens = tokens
        self._base = api_base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._session = session if session is not None else requests.Session()
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> EcobeeClient:
        ecobee = settings.ecobee
        return cls(
            ecobee.app_key,
            TokenStore(ecobee.token_cache, ecobee.refresh_token),
            api_base_url=ecobee.api_base_url,
            timeout_seconds=ecobee.timeout_seconds,
        )

    # ------------------------------------------------------------------
    # Data source
    # ------------------------------------------------------------------

    def fetch_thermostats(self, selection: Selection) -> list[Thermostat]:
        """Fetch every page of ``/1/thermostat`` for *selection*.

        Thermostats that fail validation are logged and dropped; the rest
        are returned in API order.

        Raises:
            EcobeeApiError:      Transport, HTTP or API status failure.
            EcobeeAuthError:     No token could be obtained.
            EcobeeResponseError: The body is not the documented shape.
        """
        raw: list[Any] = []
        page = 1
        while True:
            payload = self._get_thermostat_page(selection, page)
            items = payload.get("thermostatList", [])
            if not isinstance(items, list):
                raise EcobeeResponseError("thermostatList is not a list")
            raw.extend(items)

            total_pages = _total_pages(payload)
            if page >= total_pages:
                break
            page += 1

        good, bad = decode_thermostats(raw)
        for rejected in bad:
            _log.error(
                "thermostat skipped",
                index=rejected.index,
                thermostat_id=rejected.identifier,
                reason=rejected.reason,
            )
        return good

    def _get_thermostat_page(self, selection: Selection, page: int) -> dict[str, Any]:
        body: dict[str, Any] = {"selection": selection.model_dump(by_alias=True)}
        if page > 1:
            body["page"] = {"page": page}
        params = {"format": "json", "body": json.dumps(body, separators=(",", ":"))}

        try:
            return self._get("/1/thermostat", params)
        except EcobeeApiError as exc:
            if exc.code != EXPIRED_TOKEN_CODE:
                raise
            _log.info("access token rejected as expired, refreshing")
            self.refresh()
            return self._get("/1/thermostat", params)

    def _get(self, path: str, params: dict[str, str]) -> dict[str, Any]:
        url = f"{self._base}{path}"
        headers = {
            "Authorization": f"Bearer {self.access_token()}",
            "Content-Type": "application/json;charset=UTF-8",
        }
        try:
            resp = self._session.get(url, params=params, headers=headers, timeout=self._timeout)
        except requests.RequestException as exc:
            raise EcobeeApiError(f"GET {url} failed: {exc}") from exc

        try:
            payload = _json_body(resp, url)
        except EcobeeResponseError:
            if resp.status_code >= 400:
                raise EcobeeApiError(
                    f"GET {url} failed: HTTP {resp.status_code}", status_code=resp.status_code
                ) from None
            raise
        status = payload.get("status") if isinstance(payload.get("status"), dict) else {}
        code = status.get("code", 0)
        if resp.status_code >= 400 or code:
            message = status.get("message") or (resp.text or "")[:_BODY_PREVIEW]
            raise EcobeeApiError(
                f"GET {url} failed: HTTP {resp.status_code}, ecobee status {code}: {message}",
                status_code=resp.status_code,
                code=int(code) if isinstance(code, int) else None,
            )
        return payload

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    def access_token(self) -> str:
        """Return a valid access token, refreshing first if it is about to expire."""
        tokens = self._tokens.load()
        if tokens is None:
            raise EcobeeAuthError(
                "no ecobee refresh token: set ecobee.refresh_token or provide a token cache"
            )
        if tokens.access_token and self._clock() < tokens.expires_at - TOKEN_EXPIRY_BUFFER:
            return tokens.access_token
        return self.refresh().access_token or ""

    def refresh(self) -> Tokens:
        """Exchange the refresh token for a new pair and persist it."""
        current = self._tokens.load()
        if current is None:
            raise EcobeeAuthError("no ecobee refresh token to refresh with")

        url = f"{self._base}/token"
        params = {
            "grant_type": "refresh_token",
            "refresh_token": current.refresh_token,
            "client_id": self._app_key,
        }
        try:
            resp = self._session.post(url, params=params, timeout=self._timeout)
        except requests.RequestException as exc:
            raise EcobeeApiError(f"POST {url} failed: {exc}") from exc

        try:
            payload = _json_body(resp, url)
        except EcobeeResponseError:
            if resp.status_code >= 400:
                raise EcobeeAuthError(f"token refresh rejected: HTTP {resp.status_code}") from None
            raise
        if resp.status_code >= 400 or "access_token" not in payload:
            reason = payload.get("error_description") or payload.get("error") or f"HTTP {resp.status_code}"
            raise EcobeeAuthError(f"token refresh rejected: {reason}")

        access_token = payload["access_token"]
        new_refresh = payload.get("refresh_token") or current.refresh_token
        try:
            expires_in = int(payload.get("expires_in") or _DEFAULT_EXPIRES_IN)
        except (TypeError, ValueError, OverflowError):
            raise EcobeeResponseError(
                f"token response has a non-integer expires_in: {payload.get('expires_in')!r}"
            ) from None
        if not isinstance(access_token, str) or not access_token or not isinstance(new_refresh, str):
            raise EcobeeResponseError("token response carries a non-string token")
        tokens = Tokens(
            refresh_token=new_refresh,
            access_token=access_token,
            expires_at=int(self._clock()) + expires_in,
        )
        self._tokens.save(tokens)
        _log.info("access token refreshed", expires_in=expires_in)
        return tokens


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _json_body(resp: requests.Response, url: str) -> dict[str, Any]:
    try:
        payload = resp.json()
    except ValueError as exc:
        body = (resp.text or "")[:_BODY_PREVIEW]
        raise EcobeeResponseError(
            f"{url} returned HTTP {resp.status_code} with a non-JSON body: {body!r}"
        ) from exc
    if not isinstance(payload, dict):
        raise EcobeeResponseError(f"{url} returned {type(payload).__name__}, expected a JSON object")
    return payload


def _total_pages(payload: dict[str, Any]) -> int:
    page_info = payload.get("page")
    if not isinstance(page_info, dict):
        return 1
    try:
        return int(page_info.get("totalPages", 1))
    except (TypeError, ValueError):
        return 1
