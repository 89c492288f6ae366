from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from datetime import datetime
from typing import Optional, Tuple
import math

from shared.core import get_logger
from app.domain.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    RequestAlreadyAssignedError,
    ValidationError,
)
from app.domain.models import (
    Assignment,
    AssignmentStatus,
    CostOffer,
    DeliveryStatus,
    OfferStatus,
    OPEN_FOR_OFFERS,
    PickupMode,
    RequestItem,
    RequestStatus,
    ShippingRequest,
    StatusHistory,
    VehicleStatus,
)
from . import activity
from .audit import record_audit
from .company_service import CompanyService
from .fleet_service import FleetService
from .schemas import AssignmentCreate, CompanyAction, CompanyInfo, OfferPayload, OperatorUpdate, RequestCreate

logger = get_logger(__name__)

# Requests in these states can no longer be handed to a company
CLOSED_STATUSES = {
    RequestStatus.REJECTED.value,
    RequestStatus.CANCELLED.value,
    RequestStatus.COMPLETED.value,
}

WAREHOUSE_SIDES = ("source", "destination")

# A driver can only be dispatched once a company has taken the request
DISPATCHABLE_STATUSES = (
    RequestStatus.ASSIGNED_TO_COMPANY.value,
    RequestStatus.IN_PROGRESS.value,
)

REQUEST_NUMBER_ATTEMPTS = 3


class RequestService:
    def __init__(self, db: Session):
        self.db = db
        self.companies = CompanyService(db)
        self.fleet = FleetService(db)

    def _generate_request_number(self, offset: int = 0) -> str:
        """Generate a request number in format REQ-YYYY-NNNNN"""
        year = datetime.now().year
        count = self.db.query(ShippingRequest).filter(
            ShippingRequest.request_number.like(f"REQ-{year}-%")
        ).count()
        return f"REQ-{year}-{(count + 1 + offset):05d}"

    def _commit(self, request: ShippingRequest) -> ShippingRequest:
        request_id = request.id
        try:
            self.db.commit()
        except StaleDataError:
            self.db.rollback()
            logger.warning(f"Version conflict on request {request_id}, update discarded")
            raise ConflictError()
        except IntegrityError:
            # One offer per company, one dispatch per request
            self.db.rollback()
            logger.warning(f"Integrity conflict on request {request_id}, update discarded")
            raise ConflictError()
        self.db.refresh(request)
        return request

    # ---- reads ----

    def list(self, user_id: Optional[str] = None, request_status: Optional[str] = None):
        query = self.db.query(ShippingRequest)
        if user_id:
            query = query.filter(ShippingRequest.user_id == user_id)
        if request_status:
            query = query.filter(ShippingRequest.request_status == request_status)
        return query.order_by(ShippingRequest.created_at.desc(), ShippingRequest.id.desc()).all()

    def get(self, request_id: int) -> ShippingRequest:
        request = self.db.get(ShippingRequest, request_id)
        if request is None:
            raise NotFoundError("Request not found")
        return request

    def visible_to_company(self, company_id: str):
        """Requests ``company_id`` may bid on."""
        candidates = self.db.query(ShippingRequest).filter(
            ShippingRequest.request_status.in_(OPEN_FOR_OFFERS),
            or_(
                ShippingRequest.assigned_company_id.is_(None),
                ShippingRequest.assigned_company_id == company_id,
            ),
        ).order_by(ShippingRequest.created_at.desc(), ShippingRequest.id.desc()).all()
        # rejectedByCompanies is a JSON list, filtered here rather than in SQL
        return [r for r in candidates if r.visible_to(company_id)]

    def assigned_to_company(self, company_id: str):
        ids = {company_id}
        company = self.companies.find(company_id)
        if company is not None:
            ids.add(company.id)
        return self.db.query(ShippingRequest).filter(
            ShippingRequest.assigned_company_id.in_(ids)
        ).order_by(ShippingRequest.updated_at.desc()).all()

    # ---- intake ----

    def create(self, data: RequestCreate) -> ShippingRequest:
        """
        Store a new Pending request.

        Numbers are derived from a count, so a concurrent create (or an
        imported request) can already hold the next one. The insert is then
        retried with the following number; after the last attempt the
        caller gets a 409.
        """
        for attempt in range(REQUEST_NUMBER_ATTEMPTS):
            request = self._build_request(data, self._generate_request_number(offset=attempt))
            self.db.add(request)
            try:
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                logger.warning(f"Request number {request.request_number} already taken, retrying")
                continue
            self.db.refresh(request)
            logger.info(
                f"Request {request.request_number} created",
                extra={"extra_fields": {"request_id": request.id, "user_id": request.user_id}},
            )
            return request
        raise ConflictError("Could not allocate a request number, retry")

    def _build_request(self, data: RequestCreate, request_number: str) -> ShippingRequest:
        now = datetime.utcnow()
        request = ShippingRequest(
            request_number=request_number,
            user_id=data.user_id,
            source=data.source,
            destination=data.destination,
            source_pickup_mode=data.source_pickup_mode.value if data.source_pickup_mode else None,
            destination_pickup_mode=data.destination_pickup_mode.value if data.destination_pickup_mode else None,
            delivery_type=data.delivery_type,
            comment=data.comment,
            estimated_cost=data.estimated_cost,
            request_status=RequestStatus.PENDING.value,
            delivery_status=DeliveryStatus.PENDING.value,
            rejected_by_companies=[],
            order_flow=[RequestStatus.PENDING.value],
            delivery_flow=[DeliveryStatus.PENDING.value],
            created_at=now,
            updated_at=now,
        )
        for item in data.items:
            request.items.append(RequestItem(
                name=item.name,
                category=item.category,
                dimensions=item.dimensions,
                weight=item.weight,
                quantity=item.quantity,
                note=item.note,
            ))
        return request

    # ---- status transitions ----

    def _set_request_status(
        self,
        request: ShippingRequest,
        new_status: str,
        *,
        changed_by: Optional[str],
        role: str,
        note: Optional[str] = None,
        log_activity: bool = True,
    ) -> None:
        old_status = request.request_status
        request.request_status = new_status
        request.status_history.append(StatusHistory(
            kind="request", status=new_status, changed_by=changed_by, role=role, note=note,
        ))
        request.order_flow = [*(request.order_flow or []), new_status]
        if log_activity:
            activity.record_activity(request, activity.status_changed(old_status, new_status))
        logger.info(f"Request {request.id} status {old_status!r} -> {new_status!r} by {role}")

    def _set_delivery_status(
        self,
        request: ShippingRequest,
        new_status: str,
        *,
        changed_by: Optional[str],
        role: str,
        note: Optional[str] = None,
    ) -> None:
        old_status = request.delivery_status
        request.delivery_status = new_status
        request.status_history.append(StatusHistory(
            kind="delivery", status=new_status, changed_by=changed_by, role=role, note=note,
        ))
        request.delivery_flow = [*(request.delivery_flow or []), new_status]
        activity.record_activity(request, activity.delivery_status_changed(old_status, new_status))
        logger.info(f"Request {request.id} delivery {old_status!r} -> {new_status!r} by {role}")

    def _apply_statuses(self, request, request_status, delivery_status, changed_by, role, note) -> bool:
        changed = False
        if request_status is not None and request_status.value != request.request_status:
            self._set_request_status(request, request_status.value, changed_by=changed_by, role=role, note=note)
            changed = True
        if delivery_status is not None and delivery_status.value != request.delivery_status:
            self._set_delivery_status(request, delivery_status.value, changed_by=changed_by, role=role, note=note)
            changed = True
        return changed

    def update_status(
        self,
        request_id: int,
        request_status: Optional[RequestStatus] = None,
        delivery_status: Optional[DeliveryStatus] = None,
        changed_by: Optional[str] = None,
        role: str = "admin",
        note: Optional[str] = None,
    ) -> ShippingRequest:
        """
        Apply a requested and/or delivery status change.

        Values equal to the stored ones are ignored. Any transition between
        known values is accepted; the new value, a status-history row and an
        activity entry are written in one commit.
        """
        request = self.get(request_id)
        before = (request.request_status, request.delivery_status)
        if not self._apply_statuses(request, request_status, delivery_status, changed_by, role, note):
            return request
        self._audit_status_change(request, before, changed_by, role)
        request.updated_at = datetime.utcnow()
        return self._commit(request)

    def _audit_status_change(self, request: ShippingRequest, before, changed_by, role) -> None:
        changes = {}
        if before[0] != request.request_status:
            changes["requestStatus"] = f"{before[0]} -> {request.request_status}"
        if before[1] != request.delivery_status:
            changes["deliveryStatus"] = f"{before[1]} -> {request.delivery_status}"
        if changes:
            record_audit(
                self.db, "REQUEST_STATUS_UPDATED", "Request", request.id,
                actor=changed_by, role=role, description=f"Updated request {request.request_number}",
                changes=changes,
            )

    def operator_update(self, request_id: int, data: OperatorUpdate) -> ShippingRequest:
        """Operator edit: merge priced offers and/or change statuses."""
        request = self.get(request_id)
        before = (request.request_status, request.delivery_status)
        changed = False
        if data.cost_offers:
            # Offers close once a company holds the request
            if request.assigned_company_id:
                raise RequestAlreadyAssignedError()
            for offer in data.cost_offers:
                self._upsert_offer(request, offer.company_id, offer, offer.company)
            if request.request_status == RequestStatus.ACCEPTED.value:
                self._set_request_status(
                    request,
                    RequestStatus.ACTION_NEEDED.value,
                    changed_by=data.changed_by,
                    role="operator",
                    note=f"Cost offers set by operator with {len(request.cost_offers)} offer(s)",
                    log_activity=False,
                )
            record_audit(
                self.db, "COST_OFFERS_SET", "Request", request.id,
                actor=data.changed_by, role="operator",
                description=f"Set {len(data.cost_offers)} cost offer(s) on request {request.request_number}",
                changes={o.company_id: o.cost for o in data.cost_offers},
            )
            changed = True
        if self._apply_statuses(request, data.request_status, data.delivery_status, data.changed_by, "operator", data.note):
            changed = True
        if not changed:
            return request
        self._audit_status_change(request, before, data.changed_by, "operator")
        request.updated_at = datetime.utcnow()
        return self._commit(request)

    # ---- offers ----

    def _company_snapshot(self, company_id: str, info: Optional[CompanyInfo]) -> dict:
        company = self.companies.find(company_id)
        if company is not None:
            return {
                "id": company.id,
                "name": company.name,
                "phone": company.phone_number,
                "email": company.email,
                "address": company.address,
                "rate": company.rate or "N/A",
            }
        info = info or CompanyInfo()
        return {
            "id": info.id or company_id,
            "name": info.name or "Unknown Company",
            "phone": info.phone_number or "",
            "email": info.email or "",
            "address": info.address or "",
            "rate": info.rate or "N/A",
        }

    @staticmethod
    def _valid_cost(cost) -> bool:
        if isinstance(cost, bool) or not isinstance(cost, (int, float)):
            return False
        return math.isfinite(cost) and cost > 0

    def _upsert_offer(
        self,
        request: ShippingRequest,
        company_id: str,
        payload: Optional[OfferPayload],
        info: Optional[CompanyInfo],
    ) -> CostOffer:
        if payload is None or not self._valid_cost(payload.cost):
            raise ValidationError("Valid cost amount is required")
        snapshot = self._company_snapshot(company_id, info)
        cost = float(payload.cost)
        comment = payload.comment or ""
        offer = request.offer_for(company_id)
        if offer is None:
            offer = CostOffer(company_id=company_id)
            request.cost_offers.append(offer)
            entry = activity.offer_submitted(company_id, snapshot["name"], cost, comment)
        else:
            entry = activity.offer_updated(company_id, snapshot["name"], cost, comment)
        offer.company_name = snapshot["name"]
        offer.company_phone = snapshot["phone"]
        offer.company_email = snapshot["email"]
        offer.company_address = snapshot["address"]
        offer.company_rate = snapshot["rate"]
        offer.cost = cost
        offer.comment = comment
        offer.selected = False
        offer.status = OfferStatus.PENDING.value
        offer.created_at = datetime.utcnow()
        offer.accepted_at = None
        offer.rejected_at = None
        activity.record_activity(request, entry)
        return offer

    def add_offer(
        self,
        request_id: int,
        company_id: str,
        payload: Optional[OfferPayload],
        info: Optional[CompanyInfo] = None,
    ) -> ShippingRequest:
        """Submit or replace ``company_id``'s offer on a request."""
        request = self.get(request_id)
        if request.assigned_company_id and request.assigned_company_id != company_id:
            raise RequestAlreadyAssignedError("This request has already been assigned to another company")
        if request.assigned_company_id:
            raise RequestAlreadyAssignedError()
        offer = self._upsert_offer(request, company_id, payload, info)
        record_audit(
            self.db, "OFFER_SUBMITTED", "Request", request.id,
            actor=company_id, role="company",
            description=f"{offer.company_name} offered ${offer.cost:g} on request {request.request_number}",
            changes={"cost": offer.cost},
        )
        if request.request_status == RequestStatus.ACCEPTED.value:
            self._set_request_status(
                request,
                RequestStatus.ACTION_NEEDED.value,
                changed_by=company_id,
                role="company",
                note="First cost offer received",
                log_activity=False,
            )
        request.updated_at = datetime.utcnow()
        return self._commit(request)

    def reject_request(self, request_id: int, company_id: str, info: Optional[CompanyInfo] = None) -> ShippingRequest:
        """Hide a request from ``company_id``; repeated calls change nothing."""
        request = self.get(request_id)
        if request.assigned_company_id and request.assigned_company_id != company_id:
            raise RequestAlreadyAssignedError("This request has already been assigned to another company")
        if company_id in (request.rejected_by_companies or []):
            return request
        request.rejected_by_companies = [*(request.rejected_by_companies or []), company_id]
        snapshot = self._company_snapshot(company_id, info)
        activity.record_activity(request, activity.request_rejected_by_company(company_id, snapshot["name"]))
        record_audit(
            self.db, "REQUEST_REJECTED_BY_COMPANY", "Request", request.id,
            actor=company_id, role="company", description=f"{snapshot['name']} rejected request {request.request_number}",
        )
        request.updated_at = datetime.utcnow()
        logger.info(f"Company {company_id} rejected request {request.id}")
        return self._commit(request)

    def handle_company_action(self, data: CompanyAction) -> str:
        if not data.action or data.request_id is None or not data.company_id:
            raise ValidationError("action, requestId, and companyId are required")
        if data.action == "add-offer":
            self.add_offer(data.request_id, data.company_id, data.offer, data.company)
            return "Offer submitted successfully"
        if data.action == "reject-request":
            self.reject_request(data.request_id, data.company_id, data.company)
            return "Request rejected"
        raise ValidationError("Invalid action")

    # ---- acceptance ----

    def _accept(self, request: ShippingRequest, offer: CostOffer, changed_by: Optional[str]) -> ShippingRequest:
        now = datetime.utcnow()
        for other in request.cost_offers:
            if other is offer:
                other.selected = True
                other.status = OfferStatus.ACCEPTED.value
                other.accepted_at = now
                other.rejected_at = None
            else:
                other.selected = False
                other.status = OfferStatus.REJECTED.value
                other.rejected_at = now
        cost = float(offer.cost)
        request.assigned_company_id = offer.company_id
        request.selected_company = {
            "id": offer.company_id,
            "name": offer.company_name,
            "rate": offer.company_rate,
            "cost": cost,
        }
        request.cost = cost
        self._set_request_status(
            request,
            RequestStatus.ASSIGNED_TO_COMPANY.value,
            changed_by=changed_by or request.user_id,
            role="client",
            note=f"Assigned to {offer.company_name}",
            log_activity=False,
        )
        activity.record_activity(
            request,
            activity.offer_accepted(offer.company_id, offer.company_name, cost, offer.company_rate),
        )
        record_audit(
            self.db, "OFFER_ACCEPTED", "Request", request.id,
            actor=changed_by or request.user_id, role="client",
            description=f"Request {request.request_number} assigned to {offer.company_name}",
            changes={"assignedCompanyId": offer.company_id, "cost": cost},
        )
        request.updated_at = now
        return self._commit(request)

    def _check_acceptable(self, request: ShippingRequest) -> None:
        if request.assigned_company_id:
            raise RequestAlreadyAssignedError()
        if request.request_status in CLOSED_STATUSES:
            raise ValidationError(f"Request is {request.request_status} and can no longer be assigned")

    @staticmethod
    def needs_warehouse_assignment(request: ShippingRequest) -> bool:
        return (
            request.source_pickup_mode == PickupMode.SELF.value
            or (request.source or {}).get("pickupMode") == PickupMode.SELF.value
        )

    def accept_offer(self, request_id: int, company_id: str, changed_by: Optional[str] = None) -> Tuple[ShippingRequest, bool]:
        """Accept ``company_id``'s offer; every other offer is rejected."""
        request = self.get(request_id)
        self._check_acceptable(request)
        offer = request.offer_for(company_id)
        if offer is None:
            raise NotFoundError("Selected offer not found")
        request = self._accept(request, offer, changed_by)
        logger.info(f"Request {request.id} assigned to company {company_id}")
        return request, self.needs_warehouse_assignment(request)

    def submit_offer(self, request_id: int, offer_id, changed_by: Optional[str] = None) -> Tuple[ShippingRequest, bool]:
        """Requester-side acceptance; ``offer_id`` is a company id or an offer id."""
        if offer_id is None or str(offer_id) == "":
            raise ValidationError("offerId is required")
        request = self.get(request_id)
        self._check_acceptable(request)
        key = str(offer_id)
        offer = request.offer_for(key)
        if offer is None:
            offer = next((o for o in request.cost_offers if str(o.id) == key), None)
        if offer is None:
            raise NotFoundError("Selected offer not found")
        return self.accept_offer(request_id, offer.company_id, changed_by)

    # ---- warehouses ----

    def assign_warehouse(self, request_id: int, company_id: str, warehouse_id: str, side: str = "source") -> dict:
        if side not in WAREHOUSE_SIDES:
            raise ValidationError("type must be source or destination")
        company = self.companies.get(company_id)
        warehouse = next((w for w in company.warehouses if w.id == warehouse_id), None)
        if warehouse is None:
            raise ValidationError("Warehouse not found or does not belong to this company")
        request = self.get(request_id)
        if request.assigned_company_id not in (company_id, company.id):
            raise ForbiddenError("This request is not assigned to your company")
        pickup_mode = request.source_pickup_mode if side == "source" else request.destination_pickup_mode
        address = (request.source if side == "source" else request.destination) or {}
        if PickupMode.SELF.value not in (pickup_mode, address.get("pickupMode")):
            raise ValidationError(f"Warehouse assignment is only required for self-pickup {side} locations")
        if getattr(request, f"{side}_warehouse_id"):
            raise ValidationError(f"A {side} warehouse has already been assigned to this request")

        now = datetime.utcnow()
        snapshot = {**warehouse.snapshot(), "assignedAt": now.isoformat()}
        setattr(request, f"{side}_warehouse_id", warehouse.id)
        setattr(request, f"{side}_warehouse", snapshot)
        activity.record_activity(request, activity.warehouse_assigned(warehouse.id, warehouse.name, side))
        record_audit(
            self.db, "WAREHOUSE_ASSIGNED", "Request", request.id,
            actor=company_id, role="company", description=f"Warehouse {warehouse.name} assigned as {side}",
            changes={f"{side}WarehouseId": warehouse.id},
        )
        request.updated_at = now
        self._commit(request)
        logger.info(f"Warehouse {warehouse.id} assigned as {side} of request {request.id}")
        return snapshot

    def warehouse_assignment_status(self, request_id: int, company_id: str, side: str = "source") -> dict:
        if side not in WAREHOUSE_SIDES:
            raise ValidationError("type must be source or destination")
        request = self.get(request_id)
        pickup_mode = request.source_pickup_mode if side == "source" else request.destination_pickup_mode
        address = (request.source if side == "source" else request.destination) or {}
        if PickupMode.SELF.value not in (pickup_mode, address.get("pickupMode")):
            return {
                "needs_assignment": False,
                "message": "Warehouse assignment not required for this request",
            }
        current = getattr(request, f"{side}_warehouse")
        if current:
            return {"needs_assignment": False, "already_assigned": True, "warehouse": current}
        warehouses = self.companies.list_warehouses(company_id)
        return {
            "needs_assignment": True,
            "warehouses": warehouses,
            "message": (
                "Please add a warehouse to your company profile first"
                if not warehouses else "Please select a warehouse for client pickup"
            ),
        }

    # ---- dispatch ----

    def assign_driver(self, data: AssignmentCreate) -> Assignment:
        """Dispatch a driver and vehicle for a request a company has taken."""
        if data.request_id is None or not data.driver_id or not data.vehicle_id:
            raise ValidationError("requestId, driverId, and vehicleId are required")
        request = self.get(data.request_id)
        if request.request_status not in DISPATCHABLE_STATUSES:
            raise ValidationError("Request must be assigned to a company before a driver is dispatched")
        if self.fleet.assignment_for(request.id) is not None:
            raise ValidationError("Assignment already exists for this request")
        driver = self.fleet.get_driver(data.driver_id)
        vehicle = self.fleet.get_vehicle(data.vehicle_id)
        if vehicle.status != VehicleStatus.AVAILABLE.value:
            raise ValidationError(f"Vehicle {vehicle.plate_number} is not available")

        assignment = Assignment(
            request=request,
            driver=driver,
            vehicle=vehicle,
            status=AssignmentStatus.ASSIGNED.value,
            assigned_by=data.assigned_by,
            assigned_at=datetime.utcnow(),
            estimated_delivery=data.estimated_delivery,
        )
        self.db.add(assignment)
        vehicle.status = VehicleStatus.IN_USE.value
        if request.request_status == RequestStatus.ASSIGNED_TO_COMPANY.value:
            self._set_request_status(
                request,
                RequestStatus.IN_PROGRESS.value,
                changed_by=data.assigned_by,
                role="admin",
                note=f"Driver {driver.name} dispatched",
                log_activity=False,
            )
        activity.record_activity(
            request, activity.driver_assigned(driver.id, driver.name, vehicle.id, vehicle.plate_number),
        )
        record_audit(
            self.db, "DRIVER_ASSIGNED", "Request", request.id,
            actor=data.assigned_by, role="admin",
            description=f"Driver {driver.name} and vehicle {vehicle.plate_number} assigned to request {request.request_number}",
            changes={"driverId": driver.id, "vehicleId": vehicle.id},
        )
        request.updated_at = datetime.utcnow()
        self._commit(request)
        logger.info(f"Driver {driver.id} dispatched for request {request.id}")
        return assignment
