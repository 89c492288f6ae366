from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.application.schemas import ItemCreate, OfferPayload, RequestCreate
from app.application.service import RequestService
from app.domain.exceptions import ConflictError
from app.domain.models import Base, CostOffer, RequestStatus, ShippingRequest


@pytest.fixture
def file_sessions(tmp_path):
    """Two independent sessions over one on-disk database."""
    engine = create_engine(f"sqlite:///{tmp_path / 'shiphub.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
    first, second = factory(), factory()
    yield first, second
    first.close()
    second.close()
    engine.dispose()


def _open_request(db):
    service = RequestService(db)
    request = service.create(RequestCreate(
        user_id="user-1",
        source={"city": "Jeddah"},
        destination={"city": "Riyadh"},
        items=[ItemCreate(name="Crate")],
    ))
    service.update_status(request.id, request_status=RequestStatus.ACCEPTED)
    service.add_offer(request.id, "CMP-1", OfferPayload(cost=100))
    service.add_offer(request.id, "CMP-2", OfferPayload(cost=90))
    return request.id


def _load_fully(service, request_id):
    request = service.get(request_id)
    for collection in (request.cost_offers, request.status_history, request.activity_history, request.items):
        list(collection)
    return request


def test_stale_status_update_conflicts(file_sessions):
    first, second = file_sessions
    request_id = _open_request(first)
    stale = _load_fully(RequestService(second), request_id)
    version = stale.version

    RequestService(first).update_status(request_id, request_status=RequestStatus.IN_PROGRESS)

    with pytest.raises(ConflictError):
        RequestService(second).update_status(request_id, request_status=RequestStatus.CANCELLED)

    first.expire_all()
    current = RequestService(first).get(request_id)
    assert current.request_status == RequestStatus.IN_PROGRESS.value
    assert current.version == version + 1


def test_racing_acceptances_assign_one_company(file_sessions):
    first, second = file_sessions
    request_id = _open_request(first)
    _load_fully(RequestService(second), request_id)

    RequestService(first).accept_offer(request_id, "CMP-1")

    with pytest.raises(ConflictError):
        RequestService(second).accept_offer(request_id, "CMP-2")

    first.expire_all()
    current = RequestService(first).get(request_id)
    assert current.assigned_company_id == "CMP-1"
    assert [o.company_id for o in current.cost_offers if o.selected] == ["CMP-1"]
    assert [a.action for a in current.activity_history].count("offer_accepted") == 1


def test_racing_offers_from_two_companies(file_sessions):
    first, second = file_sessions
    request_id = _open_request(first)
    _load_fully(RequestService(second), request_id)

    RequestService(first).add_offer(request_id, "CMP-3", OfferPayload(cost=80))

    with pytest.raises(ConflictError):
        RequestService(second).add_offer(request_id, "CMP-4", OfferPayload(cost=70))

    first.expire_all()
    current = RequestService(first).get(request_id)
    assert sorted(o.company_id for o in current.cost_offers) == ["CMP-1", "CMP-2", "CMP-3"]
    actions = [a.action for a in current.activity_history]
    assert actions.count("offer_submitted") == 3


def test_duplicate_first_offer_hits_unique_constraint(file_sessions):
    first, second = file_sessions
    request_id = _open_request(first)
    _load_fully(RequestService(second), request_id)

    # Inserted behind the request's back: no version bump on the parent row
    first.add(CostOffer(request_id=request_id, company_id="CMP-9", company_name="Late Ship", cost=50))
    first.commit()

    with pytest.raises(ConflictError):
        RequestService(second).add_offer(request_id, "CMP-9", OfferPayload(cost=40))

    first.expire_all()
    offers = [o for o in RequestService(first).get(request_id).cost_offers if o.company_id == "CMP-9"]
    assert len(offers) == 1
    assert float(offers[0].cost) == 50


def _stored_request(number):
    return ShippingRequest(request_number=number, user_id="legacy", source={}, destination={})


def test_create_skips_taken_request_number(db):
    year = datetime.now().year
    db.add(_stored_request(f"REQ-{year}-00002"))
    db.commit()

    request = RequestService(db).create(RequestCreate(
        user_id="user-1",
        source={"city": "Jeddah"},
        destination={"city": "Riyadh"},
        items=[ItemCreate(name="Crate")],
    ))

    assert request.request_number == f"REQ-{year}-00003"
    assert db.query(ShippingRequest).count() == 2


def test_create_gives_up_after_repeated_collisions(db):
    year = datetime.now().year
    for n in (4, 5, 6):
        db.add(_stored_request(f"REQ-{year}-{n:05d}"))
    db.commit()

    with pytest.raises(ConflictError):
        RequestService(db).create(RequestCreate(
            user_id="user-1",
            source={"city": "Jeddah"},
            destination={"city": "Riyadh"},
            items=[ItemCreate(name="Crate")],
        ))
    assert db.query(ShippingRequest).count() == 3
