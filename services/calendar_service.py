"""Google Calendar mirroring: OAuth session + event create / color update.

Failures here never propagate: create_event returns None and
update_event_color returns False, the caller keeps going without the mirror.
"""
from __future__ import annotations

import datetime as dt
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union
from zoneinfo import ZoneInfo

import requests
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from core.exceptions import CalendarAuthError, CalendarError
from core.models import DEFAULT_END_TIME, DEFAULT_START_TIME, CalendarSync, Task
from core.validation import parse_time

logger = logging.getLogger(__name__)

GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"
GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
GOOGLE_REVOKE_URI = "https://oauth2.googleapis.com/revoke"

# palette hex -> Google Calendar colorId
COLOR_MAP: Dict[str, str] = {
    "#00A19D": "10",  # Teal -> Basil
    "#4A90E2": "1",   # Blue -> Lavender
    "#7ED321": "11",  # Green
    "#F5A623": "6",   # Orange -> Tangerine
    "#F8B6D3": "4",   # Pink -> Flamingo
    "#9013FE": "3",   # Purple -> Grape
}
DEFAULT_COLOR_ID = "1"
COMPLETED_COLOR_ID = "8"  # Graphite


class AuthState(Enum):
    UNLOADED = "unloaded"
    LOADED = "loaded"
    SIGNED_IN = "signed_in"


class CalendarSession:
    """Google auth state: UNLOADED -> LOADED -> SIGNED_IN.

    With a token_path the authorized credentials are written there after
    consent and restored on later runs, refreshing them when expired.
    """
    def __init__(self, client_id: str, client_secret: str, scopes: List[str], *,
                 token_path: Optional[Union[str, Path]] = None,
                 flow_factory: Optional[Callable[..., Any]] = None,
                 http: Optional[requests.Session] = None, timeout: float = 10):
        self.client_id = client_id
        self.client_secret = client_secret
        self.scopes = list(scopes)
        self.token_path = Path(token_path) if token_path else None
        self.state = AuthState.UNLOADED
        self.token: Optional[str] = None
        self.credentials = None
        self.timeout = timeout
        self._cache_rejected = False
        self._flow = None
        self._flow_factory = flow_factory or InstalledAppFlow.from_client_config
        self._http = http or requests.Session()

    @property
    def is_loaded(self) -> bool:
        return self.state is not AuthState.UNLOADED

    @property
    def is_signed_in(self) -> bool:
        return self.state is AuthState.SIGNED_IN and bool(self.token)

    def has_valid_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def client_config(self) -> Dict[str, Any]:
        return {
            "installed": {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "auth_uri": GOOGLE_AUTH_URI,
                "token_uri": GOOGLE_TOKEN_URI,
            }
        }

    # ---------- transitions ----------
    def load(self) -> bool:
        """One-time flow setup. No-op once loaded."""
        if self.is_loaded:
            return True
        if not self.has_valid_credentials():
            logger.error("Google API credentials not configured")
            return False
        try:
            self._flow = self._flow_factory(self.client_config(), scopes=self.scopes)
        except Exception:
            logger.exception("Could not initialise the Google OAuth flow")
            return False
        self.state = AuthState.LOADED
        logger.debug("Google OAuth flow loaded")
        return True

    def _accept(self, creds) -> bool:
        token = getattr(creds, "token", None)
        if not token:
            return False
        self.credentials = creds
        self.token = token
        self.state = AuthState.SIGNED_IN
        return True

    def restore(self) -> bool:
        """Non-interactive sign-in from the cached token file."""
        if self.is_signed_in:
            return True
        if self._cache_rejected or self.token_path is None or not self.token_path.exists():
            return False
        if not self.load():
            return False
        try:
            creds = Credentials.from_authorized_user_file(str(self.token_path), self.scopes)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable Google token %s: %s", self.token_path, e)
            return False
        if creds.expired and creds.refresh_token:
            try:
                creds.refresh(Request())
            except GoogleAuthError as e:
                logger.warning("Could not refresh the Google token: %s", e)
                return False
            self._save(creds)
        if not creds.valid or not self._accept(creds):
            return False
        logger.debug("Google credentials restored from %s", self.token_path)
        return True

    def sign_in(self) -> bool:
        """Cached credentials first, interactive consent otherwise."""
        if self.restore():
            return True
        if not self.load():
            return False
        try:
            creds = self._flow.run_local_server(port=0)
        except Exception as e:
            logger.error("OAuth consent failed: %s", e)
            self.invalidate()
            return False
        if not self._accept(creds):
            logger.error("OAuth consent returned no access token")
            self.invalidate()
            return False
        self._cache_rejected = False
        self._save(creds)
        logger.info("Signed in to Google Calendar")
        return True

    def _save(self, creds) -> None:
        if self.token_path is None:
            return
        try:
            self.token_path.parent.mkdir(parents=True, exist_ok=True)
            self.token_path.write_text(creds.to_json(), encoding="utf-8")
        except OSError as e:
            logger.warning("Could not write Google token to %s: %s", self.token_path, e)

    def invalidate(self, reject_cache: bool = False) -> None:
        """Forget the token, keep the loaded flow.

        reject_cache: the provider refused the token, so the cached file is
        not restored again and the next sign-in asks for consent.
        """
        if reject_cache:
            self._cache_rejected = True
        self.token = None
        self.credentials = None
        if self.state is AuthState.SIGNED_IN:
            self.state = AuthState.LOADED

    def sign_out(self) -> None:
        if self.token:
            try:
                self._http.post(GOOGLE_REVOKE_URI, params={"token": self.token}, timeout=self.timeout)
            except requests.RequestException as e:
                logger.warning("Token revoke failed: %s", e)
        if self.token_path is not None:
            self.token_path.unlink(missing_ok=True)
        self.invalidate()

    def require_token(self) -> str:
        if not self.is_signed_in:
            raise CalendarAuthError("Not signed in to Google Calendar")
        return self.token


# ---------- payload ----------
def color_id_for(color: str, color_map: Optional[Dict[str, str]] = None,
                 default: str = DEFAULT_COLOR_ID) -> str:
    mapping = COLOR_MAP if color_map is None else color_map
    return mapping.get((color or "").upper(), mapping.get(color, default))


def _tzinfo(name: str) -> dt.tzinfo:
    if name in ("UTC", "Etc/UTC"):
        return dt.timezone.utc
    return ZoneInfo(name)


def build_event(task: Task, timezone: str = "UTC",
                color_map: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Event body for events.insert. Raises ValueError on a bad date/time."""
    day = task.event_date
    if not isinstance(day, dt.date):
        raise ValueError(f"Invalid event date: {day!r}")
    sync = task.calendar_sync or CalendarSync()
    event: Dict[str, Any] = {
        "summary": task.title,
        "description": f"Category: {task.category}\nTask: {task.title}",
        "colorId": color_id_for(task.color, color_map),
    }
    if sync.is_all_day:
        event["start"] = {"date": day.isoformat(), "timeZone": timezone}
        event["end"] = {"date": day.isoformat(), "timeZone": timezone}
        return event

    tz = _tzinfo(timezone)
    start = dt.datetime.combine(day, parse_time(sync.start_time or DEFAULT_START_TIME), tzinfo=tz)
    end = dt.datetime.combine(day, parse_time(sync.end_time or DEFAULT_END_TIME), tzinfo=tz)
    # end not after start: the event runs into the next day
    if end <= start:
        end += dt.timedelta(days=1)
    event["start"] = {"dateTime": start.isoformat(), "timeZone": timezone}
    event["end"] = {"dateTime": end.isoformat(), "timeZone": timezone}
    return event


class CalendarEventGateway:
    def __init__(self, session: CalendarSession, *, api_key: str = "", timezone: str = "UTC",
                 calendar_id: str = "primary", color_map: Optional[Dict[str, str]] = None,
                 http: Optional[requests.Session] = None, timeout: float = 10):
        self.session = session
        self.api_key = api_key
        self.timezone = timezone
        self.calendar_id = calendar_id
        self.color_map = dict(COLOR_MAP if color_map is None else color_map)
        self.http = http or requests.Session()
        self.timeout = timeout

    def _events_path(self, event_id: Optional[str] = None) -> str:
        path = f"/calendars/{self.calendar_id}/events"
        return f"{path}/{event_id}" if event_id else path

    def _call(self, method: str, path: str, json: Any = None) -> Dict[str, Any]:
        headers = {"Authorization": f"Bearer {self.session.require_token()}"}
        params = {"key": self.api_key} if self.api_key else None
        try:
            r = self.http.request(method, GOOGLE_CALENDAR_API + path, params=params, json=json,
                                  headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise CalendarError(f"{method} {path}: {e}") from e
        if r.status_code == 401:
            self.session.invalidate(reject_cache=True)
        if not r.ok:
            raise CalendarError(f"{method} {path}: {r.status_code} {r.text}", r.status_code)
        if not r.content:
            return {}
        try:
            return r.json()
        except ValueError as e:
            raise CalendarError(f"{method} {path}: non-JSON body ({r.status_code})", r.status_code) from e

    def create_event(self, task: Task) -> Optional[str]:
        """Provider event id, or None if anything failed."""
        if not self.session.is_signed_in:
            logger.info("Not signed in to Google Calendar, starting sign-in")
            if not self.session.sign_in():
                logger.error("Could not connect to Google Calendar; task %s not mirrored", task.id)
                return None
        try:
            body = build_event(task, self.timezone, self.color_map)
        except (ValueError, KeyError) as e:
            logger.error("Cannot build calendar event for %s: %s", task.id, e)
            return None
        try:
            data = self._call("POST", self._events_path(), json=body)
        except CalendarError as e:
            logger.error("Error creating calendar event: %s", e)
            return None
        event_id = data.get("id") if isinstance(data, dict) else None
        if not event_id:
            logger.error("Calendar answered without an event id for task %s", task.id)
            return None
        logger.info("Calendar event %s created for task %s", event_id, task.id)
        return event_id

    def update_event_color(self, event_id: str, completed: bool, original_color: str) -> bool:
        if not self.session.restore():
            logger.info("Not signed in to Google Calendar, skipping color update")
            return False
        path = self._events_path(event_id)
        try:
            event = self._call("GET", path)
            if not isinstance(event, dict) or not event:
                logger.info("Event %s not found in calendar", event_id)
                return False
            event["colorId"] = COMPLETED_COLOR_ID if completed else color_id_for(original_color, self.color_map)
            self._call("PUT", path, json=event)
        except CalendarError as e:
            if e.status_code == 404:
                logger.info("Event %s not found in calendar", event_id)
            else:
                logger.error("Error updating calendar event %s: %s", event_id, e)
            return False
        logger.info("Calendar event %s color updated (completed=%s)", event_id, completed)
        return True
