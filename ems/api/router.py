"""
Main API router
"""
from fastapi import APIRouter

from ems.api.v1 import (
    health,
    version,
    auth,
    accounts,
    employees,
    leaves,
    attendance,
    activity,
)

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(version.router, tags=["version"])
api_router.include_router(auth.router, prefix="/auth", tags=["authentication"])
api_router.include_router(accounts.router, prefix="/accounts", tags=["accounts"])
api_router.include_router(employees.router, prefix="/employees", tags=["employees"])
api_router.include_router(leaves.router, prefix="/leaves", tags=["leaves"])
api_router.include_router(attendance.router, prefix="/attendance", tags=["attendance"])
api_router.include_router(activity.router, prefix="/activity", tags=["activity"])
