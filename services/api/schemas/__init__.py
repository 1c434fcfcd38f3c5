"""
Pydantic schemas for request validation.
"""
from .assessment import (
    NewBatchRequest,
    SelectionIn,
    ItemPayload,
    PhotoIn,
    SavePhotosRequest,
)

__all__ = [
    "NewBatchRequest",
    "SelectionIn",
    "ItemPayload",
    "PhotoIn",
    "SavePhotosRequest",
]
