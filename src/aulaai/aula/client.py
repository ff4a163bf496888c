"""
HTTP client for the Danish school portal Aula.

The client is shared by every agent session, so it holds no per-conversation state: which child is
"active" is tracked by the caller and passed in as a child id.  Login sessions are cached in a
:class:`SessionCache` keyed by username; an expired or rejected session is renewed transparently,
once per call.
"""

import logging
from collections import defaultdict
from datetime import (
    datetime,
    timedelta,
    timezone,
)
from typing import (
    Any,
    Dict,
    List,
)

import httpx

from aulaai.aula.session_cache import (
    AulaSession,
    SessionCache,
)
from aulaai.config import Settings
from aulaai.core.errors import (
    ConfigurationError,
    UpstreamError,
)

logger = logging.getLogger(__name__)

_AULA_TIME_FORMAT = "%Y-%m-%d 00:00:00.0000+00:00"


def _format_datetime(value: str | None, fmt: str = "%Y-%m-%d %H:%M") -> str:
    if not value:
        return ""
    try:
        return datetime.fromisoformat(value).strftime(fmt)
    except ValueError:
        return value


class _SessionRejected(Exception):
    """The portal answered 401/403 for a cached session."""


class AulaClient:
    """Thin wrapper around the Aula JSON API."""

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.Client | None = None,
        cache: SessionCache | None = None,
    ) -> None:
        self.settings = settings
        self.username = settings.AULA_USERNAME
        self.password = settings.AULA_PASSWORD
        self.api_url = settings.AULA_API_URL
        self._http = http_client or httpx.Client(timeout=settings.TOOL_TIMEOUT)
        self._cache = cache or SessionCache(ttl=settings.AULA_SESSION_TTL)

    def is_configured(self) -> bool:
        return bool(self.username) and bool(self.password)

    # ------------------------------------------------------------------ #
    # Session handling
    # ------------------------------------------------------------------ #
    def _login(self) -> AulaSession:
        """Authenticate and load the profile list."""
        try:
            resp = self._http.post(
                self.settings.AULA_LOGIN_URL,
                data={
                    "username": self.username,
                    "password": self.password,
                    "selected-aktoer": "KONTAKT",
                },
                timeout=self.settings.TOOL_TIMEOUT,
            )
        except httpx.HTTPError as exc:
            logger.error("Aula login failed: %s", exc)
            raise UpstreamError(f"Aula login failed: {exc}") from exc

        cookies = {cookie.name: cookie.value for cookie in resp.cookies.jar}
        if not resp.is_success or not cookies:
            logger.error("Aula login rejected (status %s)", resp.status_code)
            raise UpstreamError("Aula authentication failed")

        session = AulaSession(cookies=cookies)
        try:
            data = self._send(session, "GET", {"method": "profiles.getProfilesByLogin"})
        except _SessionRejected as exc:
            raise UpstreamError("Aula rejected the new session while loading profiles") from exc
        session.profiles = (data.get("data") or {}).get("profiles") or []
        for profile in session.profiles:
            for child in profile.get("children") or []:
                first_name = str(child.get("name", "")).split(" ")[0]
                session.child_ids[first_name] = child.get("id")
        logger.info("Logged in to Aula with %d children", len(session.child_ids))
        return session

    def _session(self) -> AulaSession:
        if not self.is_configured():
            raise ConfigurationError("Aula credentials not configured")
        return self._cache.get_or_refresh(str(self.username), self._login)

    def _send(
        self,
        session: AulaSession,
        method: str,
        params: Dict[str, Any],
        json: Dict[str, Any] | None = None,
    ) -> Dict[str, Any]:
        cookie_header = "; ".join(f"{name}={value}" for name, value in session.cookies.items())
        try:
            resp = self._http.request(
                method,
                self.api_url,
                params=params,
                json=json,
                headers={"Cookie": cookie_header},
                timeout=self.settings.TOOL_TIMEOUT,
            )
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Aula request {params.get('method')} failed: {exc}") from exc

        if resp.status_code in (401, 403):
            raise _SessionRejected()
        if not resp.is_success:
            raise UpstreamError(
                f"Aula request {params.get('method')} failed with status {resp.status_code}"
            )
        return resp.json()

    def _call(
        self, method: str, params: Dict[str, Any], json: Dict[str, Any] | None = None
    ) -> Dict[str, Any]:
        """Send an API call, re-authenticating once if the cached session was rejected."""
        session = self._session()
        try:
            return self._send(session, method, params, json)
        except _SessionRejected:
            logger.info("Aula session rejected, logging in again")
            self._cache.invalidate(str(self.username), stale=session)

        session = self._session()
        try:
            return self._send(session, method, params, json)
        except _SessionRejected as exc:
            raise UpstreamError("Aula rejected a freshly created session") from exc

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    def children(self) -> Dict[str, Any]:
        """Map of child first name -> child id."""
        return dict(self._session().child_ids)

    def child_id(self, name: str) -> Any:
        """Return the id of the child called *name* (first name)."""
        ids = self.children()
        if name not in ids:
            raise ValueError(f"Child '{name}' not found")
        return ids[name]

    def fetch_basic_data(self) -> List[Dict[str, str]]:
        """Name and institution of every child on the account."""
        children_data = []
        for profile in self._session().profiles:
            for child in profile.get("children") or []:
                institution = (child.get("institutionProfile") or {}).get("institutionName")
                children_data.append(
                    {"name": child.get("name", ""), "institution": institution or "Unknown"}
                )
        return children_data

    def fetch_daily_overview(self, child_id: Any) -> Dict[str, Any]:
        """Today's presence overview for one child."""
        data = self._call("GET", {"method": "presence.getDailyOverview", "childIds[]": child_id})
        entries = data.get("data") or []
        return entries[0] if entries else {}

    def fetch_messages(self) -> List[Dict[str, Any]]:
        """Newest message threads with their plain messages."""
        data = self._call(
            "GET",
            {
                "method": "messaging.getThreads",
                "sortOn": "date",
                "orderDirection": "desc",
                "page": 0,
            },
        )
        threads = []
        for thread in (data.get("data") or {}).get("threads") or []:
            thread_data = self._call(
                "GET",
                {"method": "messaging.getMessagesForThread", "threadId": thread["id"], "page": 0},
            )
            messages = []
            for msg in (thread_data.get("data") or {}).get("messages") or []:
                if msg.get("messageType") != "Message":
                    continue
                text = msg.get("text")
                if isinstance(text, dict):
                    text = text.get("html")
                messages.append(
                    {
                        "text": text or "No content",
                        "sender": (msg.get("sender") or {}).get("fullName") or "Unknown sender",
                        "date": _format_datetime(msg.get("sendDateTime")),
                    }
                )
            threads.append({"subject": thread.get("subject", ""), "messages": messages})
        return threads

    def fetch_calendar(self, child_id: Any, days: int = 14) -> Dict[str, List[Dict[str, str]]]:
        """Events for one child over the next *days* days, grouped by date."""
        now = datetime.now(timezone.utc)
        data = self._call(
            "POST",
            {"method": "calendar.getEventsByProfileIdsAndResourceIds"},
            json={
                "instProfileIds": [child_id],
                "resourceIds": [],
                "start": now.strftime(_AULA_TIME_FORMAT),
                "end": (now + timedelta(days=days)).strftime(_AULA_TIME_FORMAT),
            },
        )
        events: Dict[str, List[Dict[str, str]]] = defaultdict(list)
        for event in data.get("data") or []:
            if child_id not in (event.get("belongsToProfiles") or []):
                continue
            start = event.get("startDateTime")
            end = event.get("endDateTime")
            events[_format_datetime(start, "%Y-%m-%d")].append(
                {
                    "title": event.get("title", ""),
                    "start": _format_datetime(start),
                    "end": _format_datetime(end),
                    "formatted_time": f"{_format_datetime(start, '%H:%M')} - "
                    f"{_format_datetime(end, '%H:%M')}",
                }
            )
        return dict(events)
