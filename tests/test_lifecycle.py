from datetime import datetime

import mongomock
import pytest
from bson import ObjectId
from werkzeug.exceptions import NotFound

from gomint.services.invoices import claim_invoice, release_invoice, sync_cashback_request
from gomint.services.lifecycle import (
    APPROVED,
    CANCELLED,
    IN_PROCESS,
    PAID,
    PENDING,
    REJECTED,
    TRANSITIONS,
    TransitionError,
    can_transition,
    is_terminal,
    link_invoice,
    transition_request,
)


@pytest.fixture
def db():
    return mongomock.MongoClient()["lifecycle"]


def _insert_request(db, status=PENDING, **extra):
    doc = {
        "requestNumber": "REQ-1",
        "requestStatus": status,
        "paymentStatus": "pending",
        "amount": 10.0,
        "history": [],
        "createdAt": datetime.utcnow(),
    }
    doc.update(extra)
    return db["cashback_requests"].insert_one(doc).inserted_id


def test_terminal_states_have_no_exits():
    for status in (PAID, REJECTED, CANCELLED):
        assert is_terminal(status)
        assert TRANSITIONS[status] == ()


@pytest.mark.parametrize(
    "current,target,allowed",
    [
        (PENDING, IN_PROCESS, True),
        (PENDING, PAID, False),
        (IN_PROCESS, PAID, True),
        (APPROVED, PAID, True),
        (REJECTED, PAID, False),
        (CANCELLED, IN_PROCESS, False),
        (PAID, REJECTED, False),
    ],
)
def test_can_transition(current, target, allowed):
    assert can_transition(current, target) is allowed


def test_transition_records_history(db):
    request_id = _insert_request(db)
    updated, changed = transition_request(
        db["cashback_requests"], request_id, IN_PROCESS, actor="Olive", reason="looks fine"
    )
    assert changed is True
    assert updated["requestStatus"] == IN_PROCESS
    assert updated["history"][-1]["from"] == PENDING
    assert updated["history"][-1]["to"] == IN_PROCESS
    assert updated["history"][-1]["actor"] == "Olive"


def test_paid_sets_payment_lane(db):
    request_id = _insert_request(db, status=IN_PROCESS)
    updated, _ = transition_request(db["cashback_requests"], request_id, PAID)
    assert updated["paymentStatus"] == "paid"


def test_rejected_request_cannot_be_paid(db):
    request_id = _insert_request(db, status=REJECTED)
    with pytest.raises(TransitionError) as excinfo:
        transition_request(db["cashback_requests"], request_id, PAID)
    assert excinfo.value.current == REJECTED
    assert db["cashback_requests"].find_one({"_id": request_id})["paymentStatus"] == "pending"


def test_same_state_is_a_noop(db):
    request_id = _insert_request(db, status=IN_PROCESS)
    doc, changed = transition_request(db["cashback_requests"], request_id, IN_PROCESS)
    assert changed is False
    assert doc["history"] == []


def test_payment_lane_must_match_status(db):
    request_id = _insert_request(db, status=IN_PROCESS)
    with pytest.raises(ValueError):
        transition_request(db["cashback_requests"], request_id, CANCELLED, payment_status="paid")


def test_missing_request(db):
    with pytest.raises(NotFound):
        transition_request(db["cashback_requests"], ObjectId(), IN_PROCESS)


def test_concurrent_change_is_detected(db):
    request_id = _insert_request(db, status=IN_PROCESS)
    collection = db["cashback_requests"]

    class RacingCollection:
        """Lets another writer reject the request between the read and the write."""

        def find_one(self, *args, **kwargs):
            doc = collection.find_one(*args, **kwargs)
            collection.update_one({"_id": request_id}, {"$set": {"requestStatus": REJECTED}})
            return doc

        def find_one_and_update(self, *args, **kwargs):
            return collection.find_one_and_update(*args, **kwargs)

    with pytest.raises(TransitionError):
        transition_request(RacingCollection(), request_id, PAID)
    assert collection.find_one({"_id": request_id})["requestStatus"] == REJECTED


def test_link_invoice_advances_in_process(db):
    request_id = _insert_request(db, status=IN_PROCESS)
    invoice_id = ObjectId()
    doc = db["cashback_requests"].find_one({"_id": request_id})
    updated = link_invoice(db["cashback_requests"], doc, invoice_id)
    assert updated["requestStatus"] == APPROVED
    assert updated["invoiceId"] == invoice_id


def test_link_invoice_keeps_pending(db):
    request_id = _insert_request(db)
    doc = db["cashback_requests"].find_one({"_id": request_id})
    updated = link_invoice(db["cashback_requests"], doc, ObjectId())
    assert updated["requestStatus"] == PENDING


def test_link_invoice_refused_after_payment(db):
    request_id = _insert_request(db, status=PAID)
    doc = db["cashback_requests"].find_one({"_id": request_id})
    with pytest.raises(TransitionError):
        link_invoice(db["cashback_requests"], doc, ObjectId())


def test_invoice_sync_paid(db):
    request_id = _insert_request(db, status=APPROVED)
    invoice = {"invoiceNumber": "INV-9", "paymentStatus": "paid", "cashbackRequestId": request_id}
    result = sync_cashback_request(db, invoice, "pending")
    assert result == {"applied": True, "status": PAID}
    stored = db["cashback_requests"].find_one({"_id": request_id})
    assert stored["paymentStatus"] == "paid"


def test_invoice_sync_failed_rejects(db):
    request_id = _insert_request(db, status=IN_PROCESS)
    invoice = {"invoiceNumber": "INV-9", "paymentStatus": "failed", "cashbackRequestId": request_id}
    result = sync_cashback_request(db, invoice, "pending")
    assert result["status"] == REJECTED
    stored = db["cashback_requests"].find_one({"_id": request_id})
    assert stored["paymentStatus"] == "failed"


def test_invoice_sync_skips_illegal_moves(db):
    request_id = _insert_request(db, status=CANCELLED)
    invoice = {"invoiceNumber": "INV-9", "paymentStatus": "paid", "cashbackRequestId": request_id}
    result = sync_cashback_request(db, invoice, "pending")
    assert result["applied"] is False
    assert result["status"] == CANCELLED
    assert db["cashback_requests"].find_one({"_id": request_id})["requestStatus"] == CANCELLED


def test_invoice_sync_ignores_unchanged_status(db):
    request_id = _insert_request(db)
    invoice = {"invoiceNumber": "INV-9", "paymentStatus": "pending", "cashbackRequestId": request_id}
    assert sync_cashback_request(db, invoice, "pending") is None


def test_invoice_failure_marks_already_rejected_request(db):
    request_id = _insert_request(db, status=REJECTED)
    invoice = {"invoiceNumber": "INV-9", "paymentStatus": "failed", "cashbackRequestId": request_id}
    result = sync_cashback_request(db, invoice, "pending")
    assert result == {"applied": True, "status": REJECTED}
    stored = db["cashback_requests"].find_one({"_id": request_id})
    assert stored["requestStatus"] == REJECTED
    assert stored["paymentStatus"] == "failed"
    assert stored["history"] == []


def test_claim_invoice_is_exclusive(db):
    invoices = db["invoices"]
    invoice_id = invoices.insert_one({"invoiceNumber": "INV-9"}).inserted_id
    first, second = ObjectId(), ObjectId()

    assert claim_invoice(invoices, invoice_id, first)["cashbackRequestId"] == first
    assert claim_invoice(invoices, invoice_id, first) is not None
    assert claim_invoice(invoices, invoice_id, second) is None
    assert claim_invoice(invoices, ObjectId(), first) is None

    release_invoice(invoices, invoice_id, second)
    assert invoices.find_one({"_id": invoice_id})["cashbackRequestId"] == first
    release_invoice(invoices, invoice_id, first)
    assert "cashbackRequestId" not in invoices.find_one({"_id": invoice_id})
    assert claim_invoice(invoices, invoice_id, second)["cashbackRequestId"] == second
