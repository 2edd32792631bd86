# booking-backend/main.py

import logging

from fastapi import Depends, FastAPI, HTTPException, Path, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session
from starlette.responses import RedirectResponse

import google_calendar_api
import models
from availability_service import get_host_availability
from booking_service import create_booking
from config import LOG_LEVEL
from database import create_db_tables, get_db
from exceptions import BookingConflictError, HostNotFoundError, InvalidBookingError
from schemas import AvailabilityResponse, BookingRequest, BookingResponse

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Booking Availability API",
    description="Public availability and booking endpoints for hosts' booking pages.",
    version="0.2.0",
)

# --- CORS Configuration ---
# The booking widget is embedded on arbitrary customer sites
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.on_event("startup")
def startup_event():
    # Create database tables if they don't exist
    create_db_tables()


@app.get("/")
def read_root():
    return {"message": "Welcome to the Booking Availability API!"}


@app.get("/availability/{host_slug}", response_model=AvailabilityResponse)
def get_availability(
    host_slug: str = Path(..., description="Host id, email or name slug"),
    db: Session = Depends(get_db),
):
    """
    Weekly availability rules of a host plus every (date, time) already taken,
    either by a booking or by an event on the host's Google Calendar.
    """
    try:
        return get_host_availability(db, host_slug)
    except HostNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")


@app.post("/bookings/{host_slug}", response_model=BookingResponse)
def book_slot(
    booking_details: BookingRequest,
    host_slug: str = Path(..., description="Host id, email or name slug"),
    db: Session = Depends(get_db),
):
    """Books a time with the host and mirrors it to the host's Google Calendar when connected."""
    try:
        return create_booking(db, host_slug, booking_details)
    except HostNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    except InvalidBookingError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except BookingConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


# --- Google OAuth Endpoints ---
@app.get("/auth/google")
def authorize_google(user_id: str = Query(..., description="Host connecting their calendar")):
    """Initiates the Google OAuth 2.0 authorization flow for a host."""
    return RedirectResponse(google_calendar_api.authorization_url(user_id))


@app.get("/auth/google/callback")
def google_callback(request: Request, state: str = Query(...), db: Session = Depends(get_db)):
    """Handles the callback from Google after a host authorized calendar access."""
    user = db.get(models.User, state)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    google_calendar_api.exchange_code(db, user, str(request.url))
    return {
        "message": "Google Calendar authorization successful!",
        "token_saved": True,
        "calendar_email": user.google_calendar_email,
    }


@app.delete("/auth/google")
def disconnect_google(
    user_id: str = Query(..., description="Host disconnecting their calendar"),
    db: Session = Depends(get_db),
):
    """Removes a host's stored Google Calendar credentials."""
    user = db.get(models.User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    google_calendar_api.disconnect(db, user)
    return {"message": "Google Calendar disconnected", "connected": False}
