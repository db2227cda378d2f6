"""Recurrence Rule Routes used by the task and event editors.

Endpoints:
- POST /api/recurrence/validate - Validate a rule before saving
- POST /api/recurrence/describe - Human-readable summary of a rule
- POST /api/recurrence/preview - Occurrences of a rule for an anchor and window
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, HTTPException

from config.settings import settings
from schemas import (
    OccurrencePreview,
    RecurrenceDescribeRequest,
    RecurrenceDescribeResponse,
    RecurrencePreviewRequest,
    RecurrencePreviewResponse,
    RecurrenceValidationResponse,
)
from utils.recurrence_expander import RecurrenceAnchor, expand_occurrences
from utils.recurrence_calculator import get_next_occurrence
from utils.recurrence_formatter import format_end_condition, format_next_occurrence, format_recurrence_pattern
from utils.recurrence_parser import RecurrenceRule
from utils.validators import validate_recurrence

logger = logging.getLogger("app")

router = APIRouter()

PREVIEW_ANCHOR_ID = "preview"


def _naive(value):
    return value.replace(tzinfo=None) if value.tzinfo else value


@router.post("/recurrence/validate", response_model=RecurrenceValidationResponse)
async def validate_rule(rule: Dict[str, Any]):
    """Validate a raw recurrence rule; never fails the request."""
    return validate_recurrence(rule).to_dict()


@router.post("/recurrence/describe", response_model=RecurrenceDescribeResponse)
async def describe_rule(request: RecurrenceDescribeRequest):
    """Describe a rule the way task and event lists show it.

    With a due date, also label when the next instance would be due.
    """
    next_label = None
    if request.due_date is not None:
        next_label = format_next_occurrence(get_next_occurrence(request.due_date, request.recurrence))

    return RecurrenceDescribeResponse(
        description=format_recurrence_pattern(request.recurrence),
        end_condition=format_end_condition(request.recurrence),
        next_occurrence=next_label,
    )


@router.post("/recurrence/preview", response_model=RecurrencePreviewResponse)
async def preview_rule(request: RecurrencePreviewRequest):
    """Expand an unsaved rule so the editor can show upcoming dates."""
    result = validate_recurrence(request.recurrence)
    if not result.valid:
        raise HTTPException(status_code=400, detail=result.error)
    if request.end is not None and _naive(request.end) < _naive(request.start):
        raise HTTPException(status_code=400, detail="End must not be before start")

    rule = RecurrenceRule.from_dict(request.recurrence)
    anchor = RecurrenceAnchor(id=PREVIEW_ANCHOR_ID, start=request.start, end=request.end)
    try:
        occurrences = expand_occurrences(
            anchor,
            rule,
            request.window_start,
            request.window_end,
            max_iterations=request.max_iterations or settings.RECURRENCE_MAX_ITERATIONS,
        )
    except ArithmeticError as e:
        logger.warning(f"Preview window out of range: {e}")
        raise HTTPException(status_code=400, detail="Window is outside the supported date range")
    logger.info(f"Previewed {len(occurrences)} occurrences of {rule.pattern} rule")

    return RecurrencePreviewResponse(
        description=format_recurrence_pattern(rule),
        occurrences=[OccurrencePreview(id=o.id, start=o.start, end=o.end) for o in occurrences],
    )
