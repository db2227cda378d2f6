from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, List, Optional
from datetime import date, datetime

from utils.recurrence_parser import parse_recurrence


def _decode_recurrence(v):
    """Stored rules are JSON strings; expose them as objects.

    Anything that is not a usable rule object (legacy strings like "daily",
    lists, numbers) is shown as no recurrence.
    """
    rule = parse_recurrence(v)
    return rule.to_dict() if rule is not None else None


class TaskBase(BaseModel):
    text: str
    description: Optional[str] = None
    project_id: Optional[int] = None
    priority: str = "medium"
    assignee_id: Optional[str] = None
    tags: Optional[List[str]] = None
    due_date: Optional[date] = None
    recurrence: Optional[Dict[str, Any]] = None

    @field_validator('text')
    @classmethod
    def validate_text(cls, v):
        if not v.strip():
            raise ValueError('Task text cannot be empty')
        return v


class TaskCreate(TaskBase):
    pass


class TaskUpdate(BaseModel):
    text: Optional[str] = None
    description: Optional[str] = None
    project_id: Optional[int] = None
    completed: Optional[bool] = None
    priority: Optional[str] = None
    assignee_id: Optional[str] = None
    tags: Optional[List[str]] = None
    due_date: Optional[date] = None
    recurrence: Optional[Dict[str, Any]] = None


class Task(TaskBase):
    id: int
    completed: bool
    parent_task_id: Optional[int] = None
    is_recurring_instance: bool = False
    created_at: datetime

    @field_validator('recurrence', mode='before')
    @classmethod
    def decode_recurrence(cls, v):
        return _decode_recurrence(v)

    class Config:
        from_attributes = True


class CompleteTaskResponse(BaseModel):
    success: bool
    task: Task
    is_recurring: bool
    next_occurrence: Optional[Task] = None


class DeleteTaskResponse(BaseModel):
    message: str
    id: int
    detached_subtasks: int = 0


class EventBase(BaseModel):
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    project_id: Optional[int] = None
    start_time: datetime
    end_time: datetime
    all_day: bool = False
    recurrence: Optional[Dict[str, Any]] = None


class EventCreate(EventBase):
    pass


class EventUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    project_id: Optional[int] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    all_day: Optional[bool] = None
    recurrence: Optional[Dict[str, Any]] = None


class Event(EventBase):
    id: int
    created_at: datetime

    @field_validator('recurrence', mode='before')
    @classmethod
    def decode_recurrence(cls, v):
        return _decode_recurrence(v)

    class Config:
        from_attributes = True


class EventOccurrence(BaseModel):
    """An event as rendered on the calendar; recurring ones carry a synthetic id."""
    id: str
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    project_id: Optional[int] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    all_day: bool = False
    is_recurring_instance: bool = False
    parent_event_id: Optional[int] = None


class RecurrenceValidationResponse(BaseModel):
    valid: bool
    error: Optional[str] = None


class RecurrenceDescribeRequest(BaseModel):
    recurrence: Optional[Dict[str, Any]] = None
    due_date: Optional[date] = None


class RecurrenceDescribeResponse(BaseModel):
    description: str
    end_condition: str
    next_occurrence: Optional[str] = None


class RecurrencePreviewRequest(BaseModel):
    recurrence: Dict[str, Any]
    start: datetime
    end: Optional[datetime] = None
    window_start: datetime
    window_end: datetime
    max_iterations: Optional[int] = Field(None, ge=1, le=10000)


class OccurrencePreview(BaseModel):
    id: str
    start: datetime
    end: Optional[datetime] = None


class RecurrencePreviewResponse(BaseModel):
    description: str
    occurrences: List[OccurrencePreview]
