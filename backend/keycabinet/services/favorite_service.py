from __future__ import annotations

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from keycabinet.models.favorite import Favorite
from keycabinet.models.key import Key
from keycabinet.models.user import User
from keycabinet.services.access_policy import Actor, require_active
from keycabinet.utils.exceptions import FaultError, NotFoundError


class FavoriteService:
    """Per-user bookmarks of keys."""

    def __init__(self, db: Session):
        self.db = db

    def _get(self, user_id: str, key_id: str):
        return self.db.query(Favorite).filter(
            Favorite.user_id == user_id, Favorite.key_id == key_id
        ).first()

    def add(self, actor: Actor, key_id: str) -> Favorite:
        require_active(actor)
        if self.db.query(Key.id).filter(Key.id == key_id).first() is None:
            raise NotFoundError("Key", key_id)
        if self.db.query(User.id).filter(User.id == actor.user_id).first() is None:
            raise NotFoundError("User", actor.user_id)

        existing = self._get(actor.user_id, key_id)
        if existing:
            return existing

        favorite = Favorite(user_id=actor.user_id, key_id=key_id)
        self.db.add(favorite)
        try:
            self.db.commit()
        except IntegrityError as exc:
            # Same favorite added concurrently, or the key was deleted meanwhile.
            self.db.rollback()
            existing = self._get(actor.user_id, key_id)
            if existing:
                return existing
            if self.db.query(Key.id).filter(Key.id == key_id).first() is None:
                raise NotFoundError("Key", key_id) from exc
            raise FaultError("add_favorite", type(exc).__name__) from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise FaultError("add_favorite", type(exc).__name__) from exc
        self.db.refresh(favorite)
        return favorite

    def remove(self, actor: Actor, key_id: str) -> None:
        require_active(actor)
        favorite = self._get(actor.user_id, key_id)
        if favorite is None:
            raise NotFoundError("Favorite", key_id)
        self.db.delete(favorite)
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise FaultError("remove_favorite", type(exc).__name__) from exc

    def list_for_user(self, user_id: str) -> list[Favorite]:
        return (
            self.db.query(Favorite)
            .filter(Favorite.user_id == user_id)
            .order_by(Favorite.created_at.desc())
            .all()
        )
