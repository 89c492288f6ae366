import pytest

from app.application import activity
from app.application.schemas import ItemCreate, OfferPayload, RequestCreate
from app.application.service import RequestService
from app.domain.exceptions import NotFoundError
from app.domain.models import RequestStatus


def _create(db):
    return RequestService(db).create(RequestCreate(
        user_id="user-1",
        source={"city": "Jeddah"},
        destination={"city": "Riyadh"},
        items=[ItemCreate(name="Crate")],
    ))


def test_offer_descriptions():
    entry = activity.offer_submitted("CMP-1", "Fast Ship", 120.0, "Two days")
    assert entry.action == "offer_submitted"
    assert entry.description == "Fast Ship submitted an offer of $120"
    assert entry.details == {"companyId": "CMP-1", "comment": "Two days"}

    entry = activity.offer_accepted("CMP-1", "Fast Ship", 99.5, "4.5")
    assert entry.description == "Client accepted offer from Fast Ship for $99.5"
    assert entry.company_rate == "4.5"


def test_status_descriptions():
    entry = activity.status_changed("Pending", "Accepted")
    assert entry.description == 'Request status changed from "Pending" to "Accepted"'
    assert entry.details == {"oldStatus": "Pending", "newStatus": "Accepted"}

    entry = activity.warehouse_assigned("WH-1", "Jeddah Hub", "source")
    assert entry.description == 'Warehouse "Jeddah Hub" assigned as source location'


def test_add_activity_log(db):
    request = _create(db)
    updated = activity.add_activity_log(db, request.id, activity.request_rejected_by_company("CMP-3", "Other Co"))
    assert [a.action for a in updated.activity_history] == ["request_rejected_by_company"]
    assert updated.activity_history[0].description == "Other Co rejected this request"
    assert updated.activity_history[0].timestamp is not None


def test_add_activity_log_missing_request(db):
    with pytest.raises(NotFoundError):
        activity.add_activity_log(db, 12345, activity.status_changed("Pending", "Accepted"))


def test_activity_is_kept_in_order(db):
    request = _create(db)
    service = RequestService(db)
    service.update_status(request.id, request_status=RequestStatus.ACCEPTED)
    service.add_offer(request.id, "CMP-1", OfferPayload(cost=150))
    service.accept_offer(request.id, "CMP-1")

    actions = [a.action for a in service.get(request.id).activity_history]
    assert actions == ["status_changed", "offer_submitted", "offer_accepted"]
