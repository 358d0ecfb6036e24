# app/api/v1/router.py
from fastapi import APIRouter

from .endpoints import health, revisions

api_router = APIRouter()
api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(revisions.router, prefix="/revisions", tags=["revisions"])
