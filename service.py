from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy.orm import Session
from typing import Optional, List
import logging

import crud
from database import get_db
from schemas import CompleteTaskResponse, DeleteTaskResponse, Task, TaskCreate, TaskUpdate
from utils.error_handler import RecurrenceError

logger = logging.getLogger("app")

router = APIRouter()


# API Routes
@router.get("/tasks/", response_model=List[Task])
async def get_tasks(
    project_id: Optional[int] = None,
    completed: Optional[bool] = None,
    db: Session = Depends(get_db)
):
    """Get all tasks, optionally filtered by project and completion status."""
    try:
        tasks = crud.get_tasks(db, project_id=project_id, completed=completed)
        logger.info(f"Retrieved {len(tasks)} tasks")
        return tasks
    except Exception as e:
        logger.error(f"Error retrieving tasks: {e}")
        raise HTTPException(status_code=500, detail="Error retrieving tasks")


@router.get("/tasks/{task_id}", response_model=Task)
async def get_task(task_id: int, db: Session = Depends(get_db)):
    """Get a specific task by ID."""
    try:
        task = crud.get_task(db, task_id)
        if not task:
            raise HTTPException(status_code=404, detail="Task not found")
        return task
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error retrieving task {task_id}: {e}")
        raise HTTPException(status_code=500, detail="Error retrieving task")


@router.post("/tasks/", response_model=Task)
async def create_task(task: TaskCreate, db: Session = Depends(get_db)):
    """Create a new task."""
    try:
        db_task = crud.create_task(db, task)
        logger.info(f"Created task: {db_task.id} - {db_task.text}")
        return db_task
    except RecurrenceError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except Exception as e:
        logger.error(f"Error creating task: {e}")
        raise HTTPException(status_code=500, detail="Error creating task")


@router.patch("/tasks/{task_id}", response_model=Task)
async def update_task(
    task_id: int,
    task_update: TaskUpdate,
    db: Session = Depends(get_db)
):
    """Update a task (partial update)."""
    try:
        task = crud.update_task(db, task_id, task_update)
        if not task:
            raise HTTPException(status_code=404, detail="Task not found")
        logger.info(f"Updated task: {task.id} - {task.text}")
        return task
    except HTTPException:
        raise
    except RecurrenceError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=e.message)
    except Exception as e:
        logger.error(f"Error updating task {task_id}: {e}")
        raise HTTPException(status_code=500, detail="Error updating task")


@router.delete("/tasks/{task_id}", response_model=DeleteTaskResponse)
async def delete_task(task_id: int, db: Session = Depends(get_db)):
    """Delete a task; its subtasks and recurring instances become top-level tasks."""
    try:
        task, detached = crud.delete_task(db, task_id)
        if not task:
            raise HTTPException(status_code=404, detail="Task not found")
        logger.info(f"Deleted task: {task_id} (detached {detached})")
        return DeleteTaskResponse(message="Task deleted successfully", id=task_id, detached_subtasks=detached)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting task {task_id}: {e}")
        raise HTTPException(status_code=500, detail="Error deleting task")


@router.post("/tasks/{task_id}/complete", response_model=CompleteTaskResponse)
async def complete_task(task_id: int, db: Session = Depends(get_db)):
    """Mark a task as completed, creating the next instance of a recurring task."""
    try:
        task, next_instance = crud.complete_task(db, task_id)
        if not task:
            raise HTTPException(status_code=404, detail="Task not found")
        logger.info(f"Completed task: {task.id}")
        return CompleteTaskResponse(
            success=True,
            task=Task.model_validate(task),
            is_recurring=bool(task.recurrence),
            next_occurrence=Task.model_validate(next_instance) if next_instance else None,
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error completing task {task_id}: {e}")
        raise HTTPException(status_code=500, detail="Error completing task")


@router.post("/tasks/{task_id}/uncomplete", response_model=Task)
async def uncomplete_task(task_id: int, db: Session = Depends(get_db)):
    """Mark a task as not completed."""
    try:
        task = crud.uncomplete_task(db, task_id)
        if not task:
            raise HTTPException(status_code=404, detail="Task not found")
        logger.info(f"Uncompleted task: {task.id}")
        return task
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error uncompleting task {task_id}: {e}")
        raise HTTPException(status_code=500, detail="Error uncompleting task")
