"""
Activity history for shipping requests.

Entries are built by the small factories below and attached to a
request either inside a larger unit of work (:func:`record_activity`,
committed by the caller together with the change it describes) or on
their own (:func:`add_activity_log`).
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from shared.core import get_logger
from app.domain.exceptions import NotFoundError
from app.domain.models import ActivityHistory, ShippingRequest

logger = get_logger(__name__)


@dataclass
class ActivityEntry:
    action: str
    description: Optional[str] = None
    company_name: Optional[str] = None
    company_rate: Optional[str] = None
    cost: Optional[float] = None
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: Optional[datetime] = None


def offer_submitted(company_id: str, company_name: str, cost: float, comment: str = "") -> ActivityEntry:
    return ActivityEntry(
        action="offer_submitted",
        description=f"{company_name} submitted an offer of ${cost:g}",
        company_name=company_name,
        cost=cost,
        details={"companyId": company_id, "comment": comment},
    )


def offer_updated(company_id: str, company_name: str, cost: float, comment: str = "") -> ActivityEntry:
    return ActivityEntry(
        action="offer_updated",
        description=f"{company_name} updated their offer to ${cost:g}",
        company_name=company_name,
        cost=cost,
        details={"companyId": company_id, "comment": comment},
    )


def offer_accepted(company_id: str, company_name: str, cost: float, rate: Optional[str] = None) -> ActivityEntry:
    return ActivityEntry(
        action="offer_accepted",
        description=f"Client accepted offer from {company_name} for ${cost:g}",
        company_name=company_name,
        company_rate=rate,
        cost=cost,
        details={"companyId": company_id},
    )


def request_rejected_by_company(company_id: str, company_name: str) -> ActivityEntry:
    return ActivityEntry(
        action="request_rejected_by_company",
        description=f"{company_name} rejected this request",
        company_name=company_name,
        details={"companyId": company_id},
    )


def warehouse_assigned(warehouse_id: str, warehouse_name: str, side: str) -> ActivityEntry:
    return ActivityEntry(
        action="warehouse_assigned",
        description=f'Warehouse "{warehouse_name}" assigned as {side} location',
        details={"warehouseId": warehouse_id, "type": side},
    )


def driver_assigned(driver_id: str, driver_name: str, vehicle_id: str, plate_number: str) -> ActivityEntry:
    return ActivityEntry(
        action="driver_assigned",
        description=f"Driver {driver_name} dispatched with vehicle {plate_number}",
        details={"driverId": driver_id, "vehicleId": vehicle_id},
    )


def status_changed(old_status: str, new_status: str) -> ActivityEntry:
    return ActivityEntry(
        action="status_changed",
        description=f'Request status changed from "{old_status}" to "{new_status}"',
        details={"oldStatus": old_status, "newStatus": new_status},
    )


def delivery_status_changed(old_status: str, new_status: str) -> ActivityEntry:
    return ActivityEntry(
        action="delivery_status_changed",
        description=f'Delivery status changed from "{old_status}" to "{new_status}"',
        details={"oldStatus": old_status, "newStatus": new_status},
    )


def record_activity(request: ShippingRequest, entry: ActivityEntry) -> ActivityHistory:
    """Append ``entry`` to the request without committing."""
    row = ActivityHistory(
        action=entry.action,
        timestamp=entry.timestamp or datetime.utcnow(),
        description=entry.description,
        company_name=entry.company_name,
        company_rate=entry.company_rate,
        cost=entry.cost,
        details=entry.details or None,
    )
    request.activity_history.append(row)
    return row


def add_activity_log(db: Session, request_id: int, entry: ActivityEntry) -> ShippingRequest:
    """Append one entry to a stored request and return the updated request."""
    request = db.get(ShippingRequest, request_id)
    if request is None:
        raise NotFoundError("Request not found")
    record_activity(request, entry)
    # Appending a child row leaves the request version untouched
    db.commit()
    db.refresh(request)
    logger.info(f"Activity '{entry.action}' logged for request {request_id}")
    return request
