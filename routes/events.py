"""Calendar Event Routes.

Endpoints:
- GET /api/events/ - List events
- GET /api/events/occurrences - Events in a window with recurrences expanded
- POST /api/events/ - Create an event
- GET/PATCH/DELETE /api/events/{event_id} - Single event
"""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy.orm import Session

import crud
from database import get_db
from schemas import Event, EventCreate, EventOccurrence, EventUpdate
from utils.error_handler import RecurrenceError
from utils.recurrence_expander import default_calendar_window

logger = logging.getLogger("app")

router = APIRouter()


def _naive(value: datetime) -> datetime:
    return value.replace(tzinfo=None) if value.tzinfo else value


def _check_times(start_time: Optional[datetime], end_time: Optional[datetime]):
    if start_time and end_time and _naive(end_time) < _naive(start_time):
        raise HTTPException(status_code=400, detail="Event end must not be before its start")


@router.get("/events/", response_model=List[Event])
async def get_events(project_id: Optional[int] = None, db: Session = Depends(get_db)):
    """Get all stored events (recurring events appear once, as their anchor)."""
    try:
        events = crud.get_events(db, project_id=project_id)
        logger.info(f"Retrieved {len(events)} events")
        return events
    except Exception as e:
        logger.error(f"Error retrieving events: {e}")
        raise HTTPException(status_code=500, detail="Error retrieving events")


@router.get("/events/occurrences", response_model=List[EventOccurrence])
async def get_event_occurrences(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    project_id: Optional[int] = None,
    db: Session = Depends(get_db)
):
    """Get everything to render in a calendar window.

    Without explicit bounds the window runs from one month before to three
    months after now.
    """
    default_start, default_end = default_calendar_window()
    window_start = start or default_start
    window_end = end or default_end
    if _naive(window_end) < _naive(window_start):
        raise HTTPException(status_code=400, detail="Window end must not be before its start")

    try:
        return crud.list_calendar_occurrences(db, window_start, window_end, project_id=project_id)
    except Exception as e:
        logger.error(f"Error expanding events: {e}")
        raise HTTPException(status_code=500, detail="Error retrieving calendar")


@router.get("/events/{event_id}", response_model=Event)
async def get_event(event_id: int, db: Session = Depends(get_db)):
    """Get a specific event by ID."""
    event = crud.get_event(db, event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    return event


@router.post("/events/", response_model=Event)
async def create_event(event: EventCreate, db: Session = Depends(get_db)):
    """Create a new event."""
    _check_times(event.start_time, event.end_time)
    try:
        db_event = crud.create_event(db, event)
        logger.info(f"Created event: {db_event.id} - {db_event.title}")
        return db_event
    except RecurrenceError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except Exception as e:
        logger.error(f"Error creating event: {e}")
        raise HTTPException(status_code=500, detail="Error creating event")


@router.patch("/events/{event_id}", response_model=Event)
async def update_event(event_id: int, event_update: EventUpdate, db: Session = Depends(get_db)):
    """Update an event (partial update)."""
    try:
        existing = crud.get_event(db, event_id)
        if not existing:
            raise HTTPException(status_code=404, detail="Event not found")
        _check_times(event_update.start_time or existing.start_time,
                     event_update.end_time or existing.end_time)

        event = crud.update_event(db, event_id, event_update)
        logger.info(f"Updated event: {event.id} - {event.title}")
        return event
    except HTTPException:
        raise
    except RecurrenceError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=e.message)
    except Exception as e:
        logger.error(f"Error updating event {event_id}: {e}")
        raise HTTPException(status_code=500, detail="Error updating event")


@router.delete("/events/{event_id}")
async def delete_event(event_id: int, db: Session = Depends(get_db)):
    """Delete an event together with its whole series."""
    try:
        event = crud.delete_event(db, event_id)
        if not event:
            raise HTTPException(status_code=404, detail="Event not found")
        logger.info(f"Deleted event: {event_id}")
        return {"message": "Event deleted successfully", "id": event_id}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting event {event_id}: {e}")
        raise HTTPException(status_code=500, detail="Error deleting event")
