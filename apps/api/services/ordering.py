"""Display-order helpers shared by projects and tasks."""
from typing import List, Type
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from core.exceptions import NotFoundError


def next_display_order(db: Session, model: Type, user_id: UUID) -> int:
    """Position after the user's last row."""
    current = db.query(func.max(model.display_order)).filter(model.user_id == user_id).scalar()
    return 0 if current is None else current + 1


def apply_reorder(db: Session, model: Type, user_id: UUID, ids: List[UUID]) -> list:
    """
    Set display_order to each id's position in `ids`.

    Every id must belong to the user. Rows not listed keep their relative
    order and are moved after the listed ones.
    """
    rows = db.query(model).filter(model.user_id == user_id).order_by(model.display_order, model.created_at).all()
    by_id = {row.id: row for row in rows}

    missing = [i for i in ids if i not in by_id]
    if missing:
        raise NotFoundError(model.__name__, missing[0])

    listed = set(ids)
    ordered = [by_id[i] for i in ids] + [row for row in rows if row.id not in listed]
    for position, row in enumerate(ordered):
        row.display_order = position
    db.flush()
    return ordered
