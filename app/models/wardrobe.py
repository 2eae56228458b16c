"""
Pydantic models for wardrobe items and profiles.
"""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class Category(str, Enum):
    """The three buckets an item can be in. An item is in exactly one at a time."""
    FRESH = "fresh"
    WEARING = "wearing"
    DIRTY = "dirty"


CATEGORY_DESCRIPTIONS = {
    Category.FRESH: "Clean clothes ready to wear",
    Category.WEARING: "Currently wearing these items",
    Category.DIRTY: "Items that need washing",
}


class ClothItem(BaseModel):
    """A row of the `clothes` collection."""
    id: str
    user_id: str
    name: str
    category: Category
    color: Optional[str] = None
    type: Optional[str] = None
    brand: Optional[str] = None
    size: Optional[str] = None
    notes: Optional[str] = None
    image_url: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class ClothItemFields(BaseModel):
    """The user-editable fields of an item, as submitted by the add and edit forms."""
    name: str = Field("", description="Item name (required)")
    color: str = ""
    type: str = ""
    brand: str = ""
    size: str = ""
    notes: str = ""


class MoveRequest(BaseModel):
    category: Category


class WardrobeListing(BaseModel):
    """All of a user's items, partitioned by category, newest first."""
    fresh: List[ClothItem] = Field(default_factory=list)
    wearing: List[ClothItem] = Field(default_factory=list)
    dirty: List[ClothItem] = Field(default_factory=list)

    def partition(self, category: Category) -> List[ClothItem]:
        return getattr(self, category.value)


class MutationResult(BaseModel):
    """Outcome of a write; `wardrobe` is a fresh read of the store taken after it."""
    message: str
    wardrobe: WardrobeListing


class Profile(BaseModel):
    """A row of the `profiles` collection (one per user)."""
    id: str
    email: str = ""
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class ProfileUpdateRequest(BaseModel):
    full_name: str = ""


class PasswordChangeRequest(BaseModel):
    current_password: str
    new_password: str
    confirm_password: str


class DashboardResponse(BaseModel):
    user: Profile
    wardrobe: WardrobeListing
