import logging
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy.orm import Session

import models, schemas
from utils.error_handler import RecurrenceError
from utils.recurrence_calculator import get_next_occurrence
from utils.recurrence_expander import RecurrenceAnchor, expand_stored_recurrence, window_contains
from utils.recurrence_parser import serialize_recurrence
from utils.validators import validate_recurrence

logger = logging.getLogger("app")

EVENT_PAYLOAD_FIELDS = ("title", "description", "location", "project_id", "all_day")


def _serialize_valid_recurrence(raw: Optional[Mapping[str, Any]]) -> Optional[str]:
    """Validate an editor-supplied rule and encode it for storage.

    Raises:
        RecurrenceError: if the rule is invalid
    """
    if not raw:
        return None
    result = validate_recurrence(raw)
    if not result.valid:
        raise RecurrenceError(result.error, code="INVALID_RECURRENCE")
    return serialize_recurrence(raw)


def _apply_update(db_obj, update_data: Dict[str, Any]):
    if "recurrence" in update_data:
        update_data["recurrence"] = _serialize_valid_recurrence(update_data["recurrence"])
    for key, value in update_data.items():
        setattr(db_obj, key, value)


# ========================================================================
# Tasks
# ========================================================================

def get_task(db: Session, task_id: int):
    return db.query(models.Task).filter(models.Task.id == task_id).first()


def get_tasks(db: Session, project_id: Optional[int] = None, completed: Optional[bool] = None,
              skip: int = 0, limit: int = 100):
    query = db.query(models.Task)
    if project_id is not None:
        query = query.filter(models.Task.project_id == project_id)
    if completed is not None:
        query = query.filter(models.Task.completed == completed)
    return query.order_by(models.Task.created_at.desc()).offset(skip).limit(limit).all()


def create_task(db: Session, task: schemas.TaskCreate):
    data = task.model_dump()
    data["recurrence"] = _serialize_valid_recurrence(data.get("recurrence"))
    try:
        db_task = models.Task(**data)
        db.add(db_task)
        db.commit()
        db.refresh(db_task)
        return db_task
    except Exception as e:
        logger.error(f"Error creating task: {e}")
        db.rollback()
        raise e


def update_task(db: Session, task_id: int, task: schemas.TaskUpdate):
    db_task = get_task(db, task_id)
    if db_task:
        _apply_update(db_task, task.model_dump(exclude_unset=True))
        try:
            db.commit()
            db.refresh(db_task)
        except Exception as e:
            logger.error(f"Error updating task: {e}")
            db.rollback()
            raise e
    return db_task


def delete_task(db: Session, task_id: int) -> Tuple[Optional[models.Task], int]:
    """Delete a task, first turning its child tasks into top-level tasks.

    Returns:
        Tuple of (deleted task or None, number of detached children)
    """
    db_task = get_task(db, task_id)
    if not db_task:
        return None, 0
    try:
        detached = (
            db.query(models.Task)
            .filter(models.Task.parent_task_id == task_id)
            .update({models.Task.parent_task_id: None}, synchronize_session=False)
        )
        db.delete(db_task)
        db.commit()
        return db_task, detached
    except Exception as e:
        logger.error(f"Error deleting task: {e}")
        db.rollback()
        raise e


def create_next_task_instance(db: Session, task: models.Task) -> Optional[models.Task]:
    """Persist the next occurrence of a recurring parent task.

    Returns:
        The new task, or None if the rule is unusable or the series has ended
    """
    current_due = task.due_date or date.today()
    next_due = get_next_occurrence(current_due, task.recurrence)
    if next_due is None:
        logger.warning(f"Task {task.id} has no further occurrence after {current_due}")
        return None

    next_instance = models.Task(
        project_id=task.project_id,
        text=task.text,
        description=task.description,
        priority=task.priority,
        assignee_id=task.assignee_id,
        tags=task.tags,
        due_date=next_due,
        recurrence=task.recurrence,
        parent_task_id=task.id,
        is_recurring_instance=True,
        completed=False,
    )
    db.add(next_instance)
    db.commit()
    db.refresh(next_instance)
    logger.info(f"Created next instance {next_instance.id} of task {task.id} due {next_due}")
    return next_instance


def complete_task(db: Session, task_id: int) -> Tuple[Optional[models.Task], Optional[models.Task]]:
    """Mark a task completed; a recurring parent spawns exactly one next instance.

    Returns:
        Tuple of (task or None if not found, next instance or None)
    """
    db_task = get_task(db, task_id)
    if not db_task:
        return None, None

    was_completed = bool(db_task.completed)
    try:
        db_task.completed = True
        db.commit()
        db.refresh(db_task)
    except Exception as e:
        logger.error(f"Error completing task: {e}")
        db.rollback()
        raise e

    next_instance = None
    if not was_completed and db_task.recurrence and not db_task.is_recurring_instance:
        try:
            next_instance = create_next_task_instance(db, db_task)
        except Exception as e:
            # completion stands even if the next instance cannot be created
            logger.error(f"Error generating next instance of task {task_id}: {e}")
            db.rollback()

    return db_task, next_instance


def uncomplete_task(db: Session, task_id: int):
    db_task = get_task(db, task_id)
    if db_task:
        try:
            db_task.completed = False
            db.commit()
            db.refresh(db_task)
        except Exception as e:
            logger.error(f"Error uncompleting task: {e}")
            db.rollback()
            raise e
    return db_task


# ========================================================================
# Events
# ========================================================================

def get_event(db: Session, event_id: int):
    return db.query(models.Event).filter(models.Event.id == event_id).first()


def get_events(db: Session, project_id: Optional[int] = None):
    query = db.query(models.Event)
    if project_id is not None:
        query = query.filter(models.Event.project_id == project_id)
    return query.order_by(models.Event.start_time).all()


def create_event(db: Session, event: schemas.EventCreate):
    data = event.model_dump()
    data["recurrence"] = _serialize_valid_recurrence(data.get("recurrence"))
    try:
        db_event = models.Event(**data)
        db.add(db_event)
        db.commit()
        db.refresh(db_event)
        return db_event
    except Exception as e:
        logger.error(f"Error creating event: {e}")
        db.rollback()
        raise e


def update_event(db: Session, event_id: int, event: schemas.EventUpdate):
    db_event = get_event(db, event_id)
    if db_event:
        _apply_update(db_event, event.model_dump(exclude_unset=True))
        try:
            db.commit()
            db.refresh(db_event)
        except Exception as e:
            logger.error(f"Error updating event: {e}")
            db.rollback()
            raise e
    return db_event


def delete_event(db: Session, event_id: int):
    db_event = get_event(db, event_id)
    if db_event:
        try:
            db.delete(db_event)
            db.commit()
        except Exception as e:
            logger.error(f"Error deleting event: {e}")
            db.rollback()
            raise e
    return db_event


def list_calendar_occurrences(
    db: Session,
    window_start: datetime,
    window_end: datetime,
    project_id: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Events to render in a window, with recurring events expanded."""
    rendered = []
    for event in get_events(db, project_id=project_id):
        payload = {field: getattr(event, field) for field in EVENT_PAYLOAD_FIELDS}
        if event.recurrence:
            anchor = RecurrenceAnchor(
                id=event.id, start=event.start_time, end=event.end_time, payload=payload,
            )
            occurrences = expand_stored_recurrence(anchor, event.recurrence, window_start, window_end)
            rendered.extend(o.to_dict() for o in occurrences)
        elif window_contains(event.start_time, window_start, window_end):
            rendered.append({
                **payload,
                "id": str(event.id),
                "start_time": event.start_time,
                "end_time": event.end_time,
                "is_recurring_instance": False,
                "parent_event_id": None,
            })

    rendered.sort(key=lambda item: _sort_key(item["start_time"]))
    logger.info(f"Rendered {len(rendered)} calendar entries")
    return rendered


def _sort_key(value: datetime) -> datetime:
    # mixed naive/aware starts are ordered by wall clock
    return value.replace(tzinfo=None)
