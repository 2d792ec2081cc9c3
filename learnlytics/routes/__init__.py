"""
learnlytics/routes/__init__.py
Route registration
"""
from fastapi import APIRouter
from learnlytics.routes import analytics

router = APIRouter()

router.include_router(analytics.router)
