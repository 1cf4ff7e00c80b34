# app/api/v1/router.py
from fastapi import APIRouter
from app.api.v1 import (
    students,
    events,
    scanning,
    attendance,
)

api_router = APIRouter()

api_router.include_router(events.router,      prefix="/events",     tags=["events"])
api_router.include_router(students.router,    prefix="/students",   tags=["students"])
api_router.include_router(scanning.router,    prefix="/scanning",   tags=["scanning"])
api_router.include_router(attendance.router,  prefix="/attendance", tags=["attendance"])
