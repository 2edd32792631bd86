# booking-backend/google_calendar_api.py

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from cryptography.fernet import Fernet, InvalidToken
from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from sqlalchemy.orm import Session

import models
from config import (
    GOOGLE_CLIENT_ID,
    GOOGLE_CLIENT_SECRET,
    GOOGLE_PROJECT_ID,
    REDIRECT_URI,
    TOKEN_ENCRYPTION_KEY,
)
from scheduling import BusyInterval

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/calendar.events",
    "https://www.googleapis.com/auth/calendar.freebusy",
]
PRIMARY_CALENDAR = "primary"


@dataclass
class BusyTimesResult:
    """Outcome of a free/busy lookup: either busy intervals or the error that prevented them."""

    intervals: List[BusyInterval] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def get_flow(state: Optional[str] = None) -> Flow:
    """Initializes and returns the Google OAuth flow."""
    if not GOOGLE_CLIENT_ID or not GOOGLE_CLIENT_SECRET:
        raise ValueError("GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET environment variables must be set.")

    client_config = {
        "web": {
            "client_id": GOOGLE_CLIENT_ID,
            "project_id": GOOGLE_PROJECT_ID,
            "auth_uri": "https://accounts.google.com/o/oauth2/auth",
            "token_uri": "https://oauth2.googleapis.com/token",
            "auth_provider_x509_cert_url": "https://www.googleapis.com/oauth2/v1/certs",
            "client_secret": GOOGLE_CLIENT_SECRET,
            "redirect_uris": [REDIRECT_URI],
        }
    }
    # The callback builds a fresh Flow, so there is no PKCE verifier to carry over
    return Flow.from_client_config(
        client_config,
        scopes=SCOPES,
        redirect_uri=REDIRECT_URI,
        state=state,
        autogenerate_code_verifier=False,
    )


def authorization_url(user_id: str) -> str:
    """Consent-screen URL for a host; the host id travels back in ``state``."""
    flow = get_flow()
    url, _ = flow.authorization_url(
        access_type="offline",
        include_granted_scopes="true",
        prompt="consent",  # Always hand out a refresh token
        state=user_id,
    )
    return url


def encrypt_token(value: str) -> str:
    return Fernet(TOKEN_ENCRYPTION_KEY.encode()).encrypt(value.encode()).decode()


def decrypt_token(value: str) -> str:
    return Fernet(TOKEN_ENCRYPTION_KEY.encode()).decrypt(value.encode()).decode()


def save_credentials(db: Session, user: models.User, creds: Credentials) -> None:
    # Holds the refresh token and client secret, so never store it in the clear
    user.google_credentials = encrypt_token(creds.to_json())
    user.google_calendar_connected = True
    db.add(user)
    db.commit()
    logger.info(f"Google Calendar credentials saved for user {user.id}")


def exchange_code(db: Session, user: models.User, authorization_response: str) -> Credentials:
    """Finish the OAuth dance for ``user`` and store the resulting credentials."""
    flow = get_flow(state=user.id)
    flow.fetch_token(authorization_response=authorization_response)
    creds = flow.credentials

    # The primary calendar's id is the account's email address
    try:
        calendar = build_calendar_service(creds).calendars().get(calendarId=PRIMARY_CALENDAR).execute()
        user.google_calendar_email = calendar.get("id")
    except HttpError as e:
        logger.warning(f"Could not read primary calendar for user {user.id}: {e}")

    save_credentials(db, user, creds)
    return creds


def disconnect(db: Session, user: models.User) -> None:
    """Forget the host's Google Calendar; availability stops consulting it."""
    user.google_calendar_connected = False
    user.google_credentials = None
    user.google_calendar_email = None
    db.add(user)
    db.commit()
    logger.info(f"Google Calendar disconnected for user {user.id}")


def get_credentials(db: Session, user: models.User) -> Optional[Credentials]:
    """
    Loads the host's stored credentials, or returns None if the calendar is not connected.
    Expired access tokens are refreshed and the refreshed token is persisted.
    """
    if not user.google_calendar_connected or not user.google_credentials:
        return None

    try:
        stored = decrypt_token(user.google_credentials)
    except InvalidToken:
        logger.warning(f"Stored Google credentials for user {user.id} cannot be decrypted; reconnect needed")
        return None

    creds = Credentials.from_authorized_user_info(json.loads(stored), SCOPES)
    if creds.expired:
        if not creds.refresh_token:
            logger.warning(f"Google credentials for user {user.id} expired and cannot be refreshed")
            return None
        logger.debug(f"Refreshing Google Calendar access token for user {user.id}")
        creds.refresh(Request())
        save_credentials(db, user, creds)
    return creds


def build_calendar_service(creds: Credentials):
    """Builds and returns a Google Calendar API service object."""
    return build("calendar", "v3", credentials=creds, cache_discovery=False)


def _parse_google_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00")).astimezone(timezone.utc)


def get_busy_times(
    db: Session,
    user: models.User,
    start_time: datetime,
    end_time: datetime,
    calendar_id: str = PRIMARY_CALENDAR,
) -> BusyTimesResult:
    """
    Queries Google Calendar free/busy data for a host.

    Never raises: a host without a connected calendar yields an empty result,
    any failure talking to Google is returned in ``BusyTimesResult.error``.
    """
    try:
        creds = get_credentials(db, user)
        if creds is None:
            return BusyTimesResult()

        body = {
            "timeMin": start_time.isoformat(),
            "timeMax": end_time.isoformat(),
            "items": [{"id": calendar_id}],
        }
        result = build_calendar_service(creds).freebusy().query(body=body).execute()
        calendar = result.get("calendars", {}).get(calendar_id, {})
        if calendar.get("errors"):
            return BusyTimesResult(error=RuntimeError(f"free/busy errors: {calendar['errors']}"))

        intervals = [
            BusyInterval(_parse_google_datetime(period["start"]), _parse_google_datetime(period["end"]))
            for period in calendar.get("busy", [])
        ]
        return BusyTimesResult(intervals=intervals)

    except HttpError as error:
        logger.error(f"An error occurred during free/busy query: {error}")
        return BusyTimesResult(error=error)
    except RefreshError as error:
        logger.error(f"Could not refresh Google credentials for user {user.id}: {error}")
        return BusyTimesResult(error=error)
    except Exception as e:
        logger.exception(f"An unexpected error occurred in get_busy_times: {e}")
        return BusyTimesResult(error=e)


def create_calendar_event(db: Session, user: models.User, booking: models.Booking) -> Optional[str]:
    """
    Creates an event with a Meet link on the host's primary calendar.
    Returns the event id, or None if the host has no connected calendar.
    """
    creds = get_credentials(db, user)
    if creds is None:
        return None

    start_time = booking.start_time.replace(tzinfo=timezone.utc)
    end_time = booking.end_time.replace(tzinfo=timezone.utc)
    event = {
        "summary": f"Session with {booking.client_name}",
        "description": booking.notes or f"Meeting with {booking.client_name}",
        "location": "Online / Phone",
        "start": {"dateTime": start_time.isoformat(), "timeZone": "UTC"},
        "end": {"dateTime": end_time.isoformat(), "timeZone": "UTC"},
        "attendees": [{"email": booking.client_email}],
        "conferenceData": {
            "createRequest": {
                "requestId": f"booking-{start_time.strftime('%Y%m%d%H%M%S')}-{os.urandom(8).hex()}",
                "conferenceSolutionKey": {"type": "hangoutsMeet"},
            }
        },
    }

    try:
        created = (
            build_calendar_service(creds)
            .events()
            .insert(calendarId=PRIMARY_CALENDAR, body=event, conferenceDataVersion=1)
            .execute()
        )
    except HttpError as error:
        logger.error(f"An error occurred while creating event: {error}")
        raise
    logger.info(f"Event created: {created.get('htmlLink')}")
    return created.get("id")

