import pytest


def test_add_favorite_is_idempotent(db, make_key, alice):
    from keycabinet.services.favorite_service import FavoriteService

    key = make_key()
    service = FavoriteService(db)
    first = service.add(alice, key.id)
    second = service.add(alice, key.id)

    assert first.id == second.id
    assert [f.key_id for f in service.list_for_user(alice.user_id)] == [key.id]


def test_favorites_are_per_user(db, make_key, alice, bob):
    from keycabinet.services.favorite_service import FavoriteService

    lab = make_key(name="Lab")
    office = make_key(name="Office")
    service = FavoriteService(db)
    service.add(alice, lab.id)
    service.add(bob, office.id)

    assert [f.key.name for f in service.list_for_user(alice.user_id)] == ["Lab"]
    assert [f.key.name for f in service.list_for_user(bob.user_id)] == ["Office"]


def test_add_favorite_for_unknown_key(db, alice):
    from keycabinet.services.favorite_service import FavoriteService
    from keycabinet.utils.exceptions import NotFoundError

    with pytest.raises(NotFoundError):
        FavoriteService(db).add(alice, "missing-key")


def test_remove_favorite(db, make_key, alice):
    from keycabinet.services.favorite_service import FavoriteService
    from keycabinet.utils.exceptions import NotFoundError

    key = make_key()
    service = FavoriteService(db)
    service.add(alice, key.id)
    service.remove(alice, key.id)

    assert service.list_for_user(alice.user_id) == []
    with pytest.raises(NotFoundError):
        service.remove(alice, key.id)


def test_favorite_does_not_affect_key_state(db, make_key, alice, bob):
    from keycabinet.services.checkout_service import CheckoutService
    from keycabinet.services.favorite_service import FavoriteService

    key = make_key()
    CheckoutService(db).borrow(alice, key.id)
    favorite = FavoriteService(db).add(bob, key.id)

    assert favorite.key.status == "borrowed"
    assert favorite.key.holder_id == alice.user_id


def test_inactive_user_cannot_change_favorites(db, make_key, make_user):
    from keycabinet.services.favorite_service import FavoriteService
    from keycabinet.utils.exceptions import PermissionDeniedError

    key = make_key()
    inactive = make_user(is_active=False)
    with pytest.raises(PermissionDeniedError):
        FavoriteService(db).add(inactive, key.id)


def test_add_favorite_for_key_deleted_before_commit(db, session_factory, make_key, alice, monkeypatch):
    """A key deleted between the existence check and the insert is NotFound"""
    from sqlalchemy.exc import IntegrityError
    from keycabinet.models.key import Key
    from keycabinet.services.favorite_service import FavoriteService
    from keycabinet.utils.exceptions import NotFoundError

    key_id = make_key().id

    def delete_key_then_fail():
        other = session_factory()
        try:
            other.query(Key).filter(Key.id == key_id).delete()
            other.commit()
        finally:
            other.close()
        raise IntegrityError("INSERT", {}, Exception("FOREIGN KEY constraint failed"))

    monkeypatch.setattr(db, "commit", delete_key_then_fail)
    with pytest.raises(NotFoundError):
        FavoriteService(db).add(alice, key_id)


def test_add_favorite_integrity_failure_is_fault(db, make_key, alice, monkeypatch):
    from sqlalchemy.exc import IntegrityError
    from keycabinet.services.favorite_service import FavoriteService
    from keycabinet.utils.exceptions import FaultError

    key_id = make_key().id

    def failing_commit():
        raise IntegrityError("INSERT", {}, Exception("CHECK constraint failed"))

    monkeypatch.setattr(db, "commit", failing_commit)
    with pytest.raises(FaultError) as exc_info:
        FavoriteService(db).add(alice, key_id)
    assert exc_info.value.details["retryable"] is True
