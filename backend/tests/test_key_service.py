import pytest


def test_create_key_requires_admin(db, alice):
    from keycabinet.services.key_service import KeyService
    from keycabinet.utils.exceptions import PermissionDeniedError

    with pytest.raises(PermissionDeniedError):
        KeyService(db).create_key(alice, name="Lab 7")


def test_create_key_starts_available_and_is_audited(db, admin):
    from keycabinet.services.audit_service import AuditService
    from keycabinet.services.key_service import KeyService

    key = KeyService(db).create_key(admin, name="  Lab 7 ", description="  east wing  ")

    assert key.name == "Lab 7"
    assert key.description == "east wing"
    assert key.status == "available"
    assert key.holder_id is None
    assert key.created_by == admin.user_id

    entries = AuditService(db).list_for_entity("key", key.id)
    assert [entry.action for entry in entries] == ["created"]


def test_create_key_rejects_blank_name(db, admin):
    from keycabinet.services.key_service import KeyService
    from keycabinet.utils.exceptions import ValidationError

    with pytest.raises(ValidationError) as exc_info:
        KeyService(db).create_key(admin, name="   ")
    assert exc_info.value.field == "name"


def test_update_key_edits_name_but_not_status(db, make_key, admin, alice):
    from keycabinet.services.checkout_service import CheckoutService
    from keycabinet.services.key_service import KeyService

    key = make_key(name="Old name")
    CheckoutService(db).borrow(alice, key.id)

    updated = KeyService(db).update_key(admin, key.id, name="New name", description="")
    assert updated.name == "New name"
    assert updated.description is None
    assert updated.status == "borrowed"
    assert updated.holder_id == alice.user_id


def test_update_key_requires_admin(db, make_key, alice):
    from keycabinet.services.key_service import KeyService
    from keycabinet.utils.exceptions import PermissionDeniedError

    key = make_key()
    with pytest.raises(PermissionDeniedError):
        KeyService(db).update_key(alice, key.id, name="Mine now")


def test_list_keys_filters_by_status_and_search(db, make_key, alice):
    from keycabinet.services.checkout_service import CheckoutService
    from keycabinet.services.key_service import KeyService

    lab = make_key(name="Chemistry lab")
    make_key(name="Boiler room", description="basement")
    make_key(name="Physics lab")
    CheckoutService(db).borrow(alice, lab.id)

    service = KeyService(db)
    assert [k.name for k in service.list_keys(status="borrowed")] == ["Chemistry lab"]
    assert sorted(k.name for k in service.list_keys(search="LAB")) == ["Chemistry lab", "Physics lab"]
    assert [k.name for k in service.list_keys(search="basement")] == ["Boiler room"]
    assert len(service.list_keys()) == 3


def test_list_keys_rejects_unknown_status(db):
    from keycabinet.services.key_service import KeyService
    from keycabinet.utils.exceptions import ValidationError

    with pytest.raises(ValidationError) as exc_info:
        KeyService(db).list_keys(status="lost")
    assert exc_info.value.field == "status"


def test_delete_borrowed_key_is_refused(db, make_key, admin, alice):
    from keycabinet.services.checkout_service import CheckoutService
    from keycabinet.services.key_service import KeyService
    from keycabinet.utils.exceptions import ConflictError

    key = make_key()
    CheckoutService(db).borrow(alice, key.id)

    with pytest.raises(ConflictError) as exc_info:
        KeyService(db).delete_key(admin, key.id)
    assert exc_info.value.code == "KEY_IN_USE"
    assert exc_info.value.details["holder_id"] == alice.user_id

    db.expire_all()
    assert KeyService(db).get_key(key.id).status == "borrowed"


def test_delete_key_keeps_loan_history_and_drops_favorites(db, make_key, admin, alice):
    from keycabinet.models.favorite import Favorite
    from keycabinet.services.checkout_service import CheckoutService
    from keycabinet.services.favorite_service import FavoriteService
    from keycabinet.services.key_service import KeyService
    from keycabinet.services.loan_ledger import LoanLedger
    from keycabinet.utils.exceptions import NotFoundError

    key = make_key(name="Attic")
    key_id = key.id
    service = CheckoutService(db)
    service.borrow(alice, key_id)
    service.return_key(alice, key_id)
    FavoriteService(db).add(alice, key_id)

    KeyService(db).delete_key(admin, key_id)

    with pytest.raises(NotFoundError):
        KeyService(db).get_key(key_id)
    assert db.query(Favorite).filter(Favorite.key_id == key_id).count() == 0
    history = LoanLedger(db).list_by_key(key_id)
    assert history["total"] == 1
    assert history["items"][0].key_name == "Attic"


def test_force_delete_returns_open_loan_first(db, make_key, admin, alice):
    from keycabinet.services.audit_service import AuditService
    from keycabinet.services.checkout_service import CheckoutService
    from keycabinet.services.key_service import KeyService
    from keycabinet.services.loan_ledger import LoanLedger

    key = make_key()
    key_id = key.id
    loan = CheckoutService(db).borrow(alice, key_id)

    KeyService(db).delete_key(admin, key_id, force=True)

    db.expire_all()
    closed = LoanLedger(db).get(loan.id)
    assert closed.status == "returned"
    assert closed.force_returned is True
    assert closed.returned_by == admin.user_id
    actions = [entry.action for entry in AuditService(db).list_for_entity("key", key_id)]
    assert actions == ["deleted", "created"]


def test_delete_unknown_key_is_not_found(db, admin):
    from keycabinet.services.key_service import KeyService
    from keycabinet.utils.exceptions import NotFoundError

    with pytest.raises(NotFoundError):
        KeyService(db).delete_key(admin, "missing-key")


def test_delete_key_requires_admin(db, make_key, alice):
    from keycabinet.services.key_service import KeyService
    from keycabinet.utils.exceptions import PermissionDeniedError

    key = make_key()
    with pytest.raises(PermissionDeniedError):
        KeyService(db).delete_key(alice, key.id)


def test_force_delete_after_holder_returned(db, make_key, admin, alice, monkeypatch):
    """The holder returns the key after delete read it as borrowed"""
    from keycabinet.services.checkout_service import CheckoutService
    from keycabinet.services.key_service import KeyService
    from keycabinet.services.loan_ledger import LoanLedger
    from keycabinet.utils.exceptions import NotFoundError

    key = make_key()
    key_id = key.id
    loan_id = CheckoutService(db).borrow(alice, key_id).id

    original_get = KeyService.get_key

    def get_then_return(self, requested_id):
        found = original_get(self, requested_id)
        assert found.status == "borrowed"
        CheckoutService(self.db).return_key(alice, requested_id)
        return found

    monkeypatch.setattr(KeyService, "get_key", get_then_return)
    KeyService(db).delete_key(admin, key_id, force=True)
    monkeypatch.undo()

    with pytest.raises(NotFoundError):
        KeyService(db).get_key(key_id)
    db.expire_all()
    loan = LoanLedger(db).get(loan_id)
    assert loan.status == "returned"
    assert loan.returned_by == alice.user_id
    assert loan.force_returned is False


def test_force_delete_of_available_key(db, make_key, admin):
    from keycabinet.services.key_service import KeyService
    from keycabinet.utils.exceptions import NotFoundError

    key_id = make_key().id
    KeyService(db).delete_key(admin, key_id, force=True)

    with pytest.raises(NotFoundError):
        KeyService(db).get_key(key_id)
