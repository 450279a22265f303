from typing import Optional

from sqlalchemy.orm import Session

from lams.core.exceptions import NotFoundError


class BaseService:
    """Common plumbing for services bound to one request-scoped session."""

    def __init__(self, db: Session):
        self.db = db

    def get_or_404(self, model, entity_id, label: Optional[str] = None, for_update: bool = False):
        """
        Fetch a row by primary key. ``for_update`` re-reads the latest
        committed row and locks it where the dialect supports it.
        """
        if for_update:
            obj = self.db.get(model, entity_id, populate_existing=True, with_for_update=True)
        else:
            obj = self.db.get(model, entity_id)
        if obj is None:
            raise NotFoundError(f"{label or model.__name__} not found")
        return obj
