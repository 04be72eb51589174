from fastapi import APIRouter, HTTPException, Depends, Query
from typing import List, Optional
from datetime import datetime

from shared.enums import TaskStatus
from shared.models import TaskSpec, WorkflowResult, WorkflowStatistics, WorkflowTask
from brokerage.core.dependencies import get_engine, get_task_store
from brokerage.core.task_store import TaskStore
from brokerage.core.workflow_engine import WorkflowEngine

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.get("", response_model=List[WorkflowTask])
async def list_tasks(status: Optional[TaskStatus] = None,
                     order_id: Optional[str] = None,
                     tasks: TaskStore = Depends(get_task_store)):
    """List tasks, optionally filtered by status and order"""
    return await tasks.list_tasks(status=status, order_id=order_id)


@router.post("", response_model=WorkflowResult)
async def schedule_task(spec: TaskSpec,
                        engine: WorkflowEngine = Depends(get_engine)):
    """Schedule a task directly; conditions and dependencies are checked at execution"""
    result = await engine.schedule_task(spec)
    if not result.success:
        raise HTTPException(status_code=400, detail=result.error)
    return result


@router.get("/statistics", response_model=WorkflowStatistics)
async def statistics(start: Optional[datetime] = None,
                     end: Optional[datetime] = None,
                     engine: WorkflowEngine = Depends(get_engine)):
    """Task counts and rates over a creation time window"""
    return await engine.get_workflow_statistics(start, end)


@router.post("/cleanup")
async def cleanup(days_old: int = Query(30, ge=0),
                  engine: WorkflowEngine = Depends(get_engine)):
    """Delete completed tasks older than ``days_old`` days"""
    removed = await engine.cleanup_old_tasks(days_old)
    return {"removed": removed, "days_old": days_old}


@router.get("/{task_id}", response_model=WorkflowTask)
async def get_task(task_id: str, tasks: TaskStore = Depends(get_task_store)):
    """Get a specific task"""
    task = await tasks.get(task_id)
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


@router.post("/{task_id}/cancel", response_model=WorkflowResult)
async def cancel_task(task_id: str,
                      engine: WorkflowEngine = Depends(get_engine),
                      tasks: TaskStore = Depends(get_task_store)):
    """Cancel a pending task"""
    if await tasks.get(task_id) is None:
        raise HTTPException(status_code=404, detail="Task not found")

    result = await engine.cancel_task(task_id)
    if not result.success:
        raise HTTPException(status_code=409, detail=result.error)
    return result
