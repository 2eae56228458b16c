"""
Wardrobe routes. Every write answers with the full, freshly read listing.
"""
from fastapi import APIRouter, Depends, HTTPException

from app.auth.dependencies import get_current_session, get_record_store
from app.connectors.protocols import RecordStore
from app.core.errors import InputValidationError, ItemNotFoundError, OperationError
from app.models.auth import AuthSession
from app.models.wardrobe import Category, ClothItemFields, MoveRequest, MutationResult, WardrobeListing
from app.services.wardrobe import WardrobeItemManager

router = APIRouter()


def get_wardrobe_manager(
    session: AuthSession = Depends(get_current_session),
    store: RecordStore = Depends(get_record_store),
) -> WardrobeItemManager:
    return WardrobeItemManager(store=store, session=session)


@router.get("", response_model=WardrobeListing)
async def list_clothes(manager: WardrobeItemManager = Depends(get_wardrobe_manager)):
    """All of the user's items, split into fresh / wearing / dirty."""
    try:
        return manager.list_items()
    except OperationError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/{category}", response_model=MutationResult, status_code=201)
async def add_item(
    category: Category,
    fields: ClothItemFields,
    manager: WardrobeItemManager = Depends(get_wardrobe_manager),
):
    """Add an item to the given category."""
    try:
        return manager.add(category, fields)
    except InputValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except OperationError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.put("/{item_id}", response_model=MutationResult)
async def edit_item(
    item_id: str,
    fields: ClothItemFields,
    manager: WardrobeItemManager = Depends(get_wardrobe_manager),
):
    try:
        return manager.edit(item_id, fields)
    except InputValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except ItemNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except OperationError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/{item_id}", response_model=MutationResult)
async def delete_item(item_id: str, manager: WardrobeItemManager = Depends(get_wardrobe_manager)):
    """Remove an item for good."""
    try:
        return manager.delete(item_id)
    except ItemNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except OperationError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/{item_id}/move", response_model=MutationResult)
async def move_item(
    item_id: str,
    body: MoveRequest,
    manager: WardrobeItemManager = Depends(get_wardrobe_manager),
):
    """Move an item to another category."""
    try:
        return manager.move(item_id, body.category)
    except ItemNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except OperationError as e:
        raise HTTPException(status_code=500, detail=str(e))
