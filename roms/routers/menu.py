from fastapi import APIRouter, Depends
from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import List, Optional

from roms.db import get_db
from roms.deps import Principal, require_staff
from roms.models.core import MenuItem
from roms.schemas.menu import MenuItemIn, MenuItemOut

router = APIRouter(prefix="/menu", tags=["menu"])


def _item_out(m: MenuItem) -> MenuItemOut:
    return MenuItemOut(
        id=m.id,
        name=m.name,
        category=m.category,
        price=float(m.price),
        image_url=m.image_url or "",
        details=m.details,
        is_available=bool(m.is_available),
    )


@router.get("/items", response_model=List[MenuItemOut])
def list_items(
    category: Optional[str] = None,
    search: Optional[str] = None,
    include_unavailable: bool = False,
    db: Session = Depends(get_db),
):
    """
    Menu catalog for the customer app and the POS grid.

    Query params:
      - category: exact category match, case-insensitive
      - search:   substring of name or details
      - include_unavailable: also return items switched off by staff
    """
    q = db.query(MenuItem).filter(MenuItem.deleted_at.is_(None))
    if not include_unavailable:
        q = q.filter(MenuItem.is_available.is_(True))
    if category:
        q = q.filter(MenuItem.category.ilike(category.strip()))
    if search and search.strip():
        like = f"%{search.strip()}%"
        q = q.filter(or_(MenuItem.name.ilike(like), MenuItem.details.ilike(like)))

    return [_item_out(m) for m in q.order_by(MenuItem.category, MenuItem.name).all()]


@router.post("/items", response_model=MenuItemOut)
def create_item(
    body: MenuItemIn,
    db: Session = Depends(get_db),
    me: Principal = Depends(require_staff),
):
    it = MenuItem(**body.model_dump())
    db.add(it)
    db.commit()
    db.refresh(it)
    return _item_out(it)
