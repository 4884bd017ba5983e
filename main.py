from fastapi import APIRouter, FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from fastapi import status
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Literal
from datetime import datetime
from contextlib import asynccontextmanager
import logging

import config
from auth import admin_required, create_access_token, get_credential_store, get_current_user
from database import Database
from errors import NotFound, PortalError, Unauthenticated, WriteConflict
from manager import CredentialStore, EventStore, new_id
from models import Event, User, DEFAULT_CAPACITY
from registration import RegistrationService
from utils import parse_date, generate_csv

# Logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

EventType = Literal["workshop", "seminar", "competition", "networking", "other"]
EventStatus = Literal["upcoming", "ongoing", "completed", "cancelled"]

# -------------------------------
# Schemas
# -------------------------------
class UserRegister(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(pattern=r"^\s*\S+@\S+\.\S+\s*$")
    password: str = Field(min_length=6)
    roll_number: str = Field(min_length=1)
    branch: str = Field(min_length=1)
    year: int = Field(ge=1, le=4)
    phone: str = Field(min_length=1)

    model_config = ConfigDict(str_strip_whitespace=True, json_schema_extra={
        "example": {
            "name": "Asha Rao",
            "email": "asha@college.edu",
            "password": "secret123",
            "roll_number": "21CS042",
            "branch": "CSE",
            "year": 3,
            "phone": "9876543210",
        }
    })

class UserLogin(BaseModel):
    email: str = Field(pattern=r"^\s*\S+@\S+\.\S+\s*$")
    password: str = Field(min_length=1)

class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    phone: Optional[str] = Field(default=None, min_length=1)
    branch: Optional[str] = Field(default=None, min_length=1)

    model_config = ConfigDict(str_strip_whitespace=True)

class EventCreate(BaseModel):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    date: str
    time: str = Field(min_length=1)
    venue: str = Field(min_length=1)
    type: EventType = "other"
    max_participants: int = Field(default=DEFAULT_CAPACITY, gt=0)
    image_url: Optional[str] = None

    model_config = ConfigDict(str_strip_whitespace=True, json_schema_extra={
        "example": {
            "title": "Startup Pitch Competition",
            "description": "Present your startup idea to industry experts and investors.",
            "date": "2026-12-15T10:00:00",
            "time": "10:00 AM - 4:00 PM",
            "venue": "Auditorium, Block A",
            "type": "competition",
            "max_participants": 50,
        }
    })

class EventUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    venue: Optional[str] = None
    type: Optional[EventType] = None
    max_participants: Optional[int] = Field(default=None, gt=0)
    status: Optional[EventStatus] = None
    image_url: Optional[str] = None

# -------------------------------
# Dependencies
# -------------------------------
def get_event_store(request: Request) -> EventStore:
    return request.app.state.events

def get_registration_service(request: Request) -> RegistrationService:
    return request.app.state.registrations

def get_event_or_404(event_id: str, events: EventStore = Depends(get_event_store)) -> Event:
    event = events.find_by_id(event_id)
    if event is None:
        raise NotFound("event", event_id)
    return event

# -------------------------------
# Routes
# -------------------------------
router = APIRouter()

@router.get("/", response_model=dict, summary="API root endpoint")
def root():
    """Welcome message for the club API."""
    return {"message": "Welcome to the Entrepreneurship Club API", "data": {}}

# Auth
@router.post("/api/auth/register", response_model=dict, status_code=status.HTTP_201_CREATED, summary="Register a new member")
def register(payload: UserRegister, users: CredentialStore = Depends(get_credential_store)):
    """Create a member account and return an access token."""
    user = users.create(
        name=payload.name,
        email=payload.email,
        password=payload.password,
        roll_number=payload.roll_number,
        branch=payload.branch,
        year=payload.year,
        phone=payload.phone,
    )
    logger.info(f"User {user.email} registered")
    return {
        "message": "Registration successful",
        "data": {"token": create_access_token(user), "user": user.to_public()},
    }

@router.post("/api/auth/login", response_model=dict, summary="Login and receive an access token")
def login(payload: UserLogin, users: CredentialStore = Depends(get_credential_store)):
    """Authenticate by email and password."""
    user = users.find_by_email(payload.email)
    if user is None or not users.verify_secret(user.id, payload.password):
        raise Unauthenticated("Invalid email or password")
    logger.info(f"User {user.email} logged in")
    return {
        "message": "Login successful",
        "data": {"token": create_access_token(user), "user": user.to_public()},
    }

# Events
@router.get("/api/events", response_model=dict, summary="List upcoming events")
def list_events(events: EventStore = Depends(get_event_store)):
    """Retrieve upcoming events, soonest first."""
    upcoming = events.list_upcoming(datetime.now(), limit=config.UPCOMING_EVENTS_LIMIT)
    return {
        "message": "Events retrieved",
        "count": len(upcoming),
        "data": [e.to_dict() for e in upcoming],
    }

@router.get("/api/events/{event_id}", response_model=dict, summary="Get a single event")
def get_event(
    event: Event = Depends(get_event_or_404),
    users: CredentialStore = Depends(get_credential_store),
):
    data = event.to_dict()
    creator = users.find_by_id(event.created_by) if event.created_by else None
    data["created_by"] = {"id": creator.id, "name": creator.name, "email": creator.email} if creator else None
    return {"message": "Event retrieved", "data": data}

@router.post("/api/events", response_model=dict, status_code=status.HTTP_201_CREATED, summary="Create a new event")
def create_event(
    payload: EventCreate,
    current_user: User = Depends(admin_required),
    events: EventStore = Depends(get_event_store),
):
    """Create a new event (admins only)."""
    evt = Event(
        id=new_id(),
        title=payload.title,
        description=payload.description,
        date=parse_date(payload.date),
        time=payload.time,
        venue=payload.venue,
        type=payload.type,
        max_participants=payload.max_participants,
        status="upcoming",
        image_url=payload.image_url,
        created_by=current_user.id,
    )
    events.create(evt)
    logger.info(f"Event {evt.id} created by {current_user.id}")
    return {"message": "Event created successfully", "data": evt.to_dict()}

@router.put("/api/events/{event_id}", response_model=dict, summary="Update an event")
def update_event(
    payload: EventUpdate,
    current_user: User = Depends(admin_required),
    event: Event = Depends(get_event_or_404),
    events: EventStore = Depends(get_event_store),
):
    """Update an existing event (admins only)."""
    fields = payload.model_dump(exclude_none=True)
    if "date" in fields:
        fields["date"] = parse_date(fields["date"])
    new_capacity = fields.get("max_participants")
    if new_capacity is not None and new_capacity < len(event.registered_users):
        # Accepted without reconciliation: existing registrations stay, new ones are refused.
        logger.warning(
            f"Event {event.id} capacity lowered to {new_capacity} below "
            f"{len(event.registered_users)} existing registrations"
        )
    events.update(event.id, **fields)
    updated = events.find_by_id(event.id)
    if updated is None:
        raise NotFound("event", event.id)
    logger.info(f"Event {event.id} updated by {current_user.id}")
    return {"message": "Event updated successfully", "data": updated.to_dict()}

@router.delete("/api/events/{event_id}", response_model=dict, summary="Delete an event")
def delete_event(
    current_user: User = Depends(admin_required),
    event: Event = Depends(get_event_or_404),
    events: EventStore = Depends(get_event_store),
):
    """Delete an event and every registration for it (admins only)."""
    if not events.delete(event.id):
        raise NotFound("event", event.id)
    logger.info(f"Event {event.id} deleted by {current_user.id}")
    return {"message": "Event deleted successfully", "data": {}}

@router.post("/api/events/{event_id}/register", response_model=dict, summary="Register for an event")
def register_for_event(
    event_id: str,
    current_user: User = Depends(get_current_user),
    registrations: RegistrationService = Depends(get_registration_service),
):
    """Register the authenticated user for an event."""
    registrations.register(current_user.id, event_id)
    logger.info(f"User {current_user.id} registered for event {event_id}")
    return {"message": "Successfully registered for event", "data": {"event_id": event_id}}

@router.get("/api/events/{event_id}/registrations/export", response_model=None, summary="Export registrations as CSV")
def export_registrations(
    current_user: User = Depends(admin_required),
    event: Event = Depends(get_event_or_404),
    events: EventStore = Depends(get_event_store),
):
    """Export the users registered for an event as a CSV file (admins only)."""
    csv_data = generate_csv(events.list_registrants(event.id))
    logger.info(f"Registrations exported for event {event.id} by {current_user.id}")
    return StreamingResponse(
        csv_data,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=registrations-{event.id}.csv"},
    )

# Profile
@router.get("/api/user/profile", response_model=dict, summary="Get the current user's profile")
def get_profile(current_user: User = Depends(get_current_user)):
    return {"message": "Profile retrieved", "data": current_user.to_public()}

@router.put("/api/user/profile", response_model=dict, summary="Update the current user's profile")
def update_profile(
    payload: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    users: CredentialStore = Depends(get_credential_store),
):
    """Update name, phone or branch."""
    users.update_profile(current_user.id, name=payload.name, phone=payload.phone, branch=payload.branch)
    logger.info(f"Profile updated for {current_user.id}")
    return {"message": "Profile updated successfully", "data": users.find_by_id(current_user.id).to_public()}

# -------------------------------
# App factory
# -------------------------------
def create_app(db_path: str | None = None) -> FastAPI:
    """Build the API. The database is opened at startup and closed at shutdown."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        path = db_path or config.DATABASE_PATH
        logger.info(f"Opening database {path}")
        db = Database(path, timeout=config.DATABASE_TIMEOUT)
        app.state.db = db
        app.state.events = EventStore(db)
        app.state.users = CredentialStore(db)
        app.state.registrations = RegistrationService(db, app.state.events, app.state.users)
        yield
        logger.info("Closing database connection")
        db.close()

    app = FastAPI(title="Entrepreneurship Club API", lifespan=lifespan)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(PortalError)
    async def portal_error_handler(request: Request, exc: PortalError):
        if isinstance(exc, WriteConflict):
            logger.error(f"Write conflict on {request.url.path}: {exc.context}")
        headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthenticated) else None
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)

    app.include_router(router)
    return app

app = create_app()
