"""
API v1 routes.
"""

from fastapi import APIRouter

from taskgate.api.v1 import auth, tasks, users

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(users.router, prefix="/users", tags=["Users"])
# /tasks/audit-log is declared before /tasks/{task_id} inside the router
router.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
