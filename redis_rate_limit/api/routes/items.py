from __future__ import annotations

from fastapi import APIRouter

router = APIRouter(tags=["Items"])


@router.get("/items")
def list_items() -> dict:
    """Item index, a cheap endpoint for exercising the global limiter."""

    return {"message": "Item Index"}


@router.get("/items/{item_id}")
def get_item(item_id: str) -> dict:
    """Single item. Ids in the path collapse into one counter key."""

    return {"message": f"Item {item_id}"}
