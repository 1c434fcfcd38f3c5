# services/api/routers/assessment.py
"""
Assessment form endpoints: batches, items, photos and database setup.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from typing import Annotated
import logging

from main import get_assessment_service  # DI from main
from core.assessment import AssessmentService
from core.errors import AssessmentError
from schemas.assessment import ItemPayload, NewBatchRequest, SavePhotosRequest

logger = logging.getLogger(__name__)
router = APIRouter(tags=["assessment"])

# DI alias (no default!)
Service = Annotated[AssessmentService, Depends(get_assessment_service)]


def _http_error(e: AssessmentError) -> HTTPException:
    if e.status_code >= 500:
        logger.error(f"{type(e).__name__}: {e}")
    return HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/batches", response_model=dict, status_code=status.HTTP_201_CREATED)
def create_batch(data: NewBatchRequest, service: Service):
    """Open a new assessment batch for a client."""
    try:
        return service.new_batch(data.client, data.assessor_name)
    except AssessmentError as e:
        raise _http_error(e)


@router.post("/items", response_model=dict, status_code=status.HTTP_201_CREATED)
def save_item(data: ItemPayload, service: Service):
    """Save one item with its condition selections."""
    try:
        return service.save_item(data)
    except AssessmentError as e:
        raise _http_error(e)


@router.post("/batches/{batch_id}/items/{item_id}/photos", response_model=dict)
def save_photos(batch_id: str, item_id: str, data: SavePhotosRequest, service: Service):
    """Store data-URL photos for an item. `saved` may be less than the number sent."""
    try:
        return service.save_photos_data_urls(batch_id, item_id, data.photos)
    except AssessmentError as e:
        raise _http_error(e)


@router.post("/admin/initialize-database", response_model=dict)
def initialize_database(service: Service):
    """Create / repair all sheets. Safe to call any number of times."""
    try:
        return service.initialize_database()
    except AssessmentError as e:
        raise _http_error(e)
