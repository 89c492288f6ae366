from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Any, Dict, Literal, Optional, Union
from app.domain.models import RequestStatus, DeliveryStatus, PickupMode, VehicleType


class CamelModel(BaseModel):
    """Wire format is camelCase; snake_case names are accepted too."""
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# ---- inputs ----

class ItemCreate(CamelModel):
    name: str
    category: str = ""
    dimensions: str = ""
    weight: str = ""
    quantity: int = Field(1, ge=1)
    note: Optional[str] = None

class RequestCreate(CamelModel):
    user_id: str
    source: Dict[str, Any]
    destination: Dict[str, Any]
    items: list[ItemCreate] = Field(..., min_length=1)
    source_pickup_mode: Optional[PickupMode] = None
    destination_pickup_mode: Optional[PickupMode] = None
    delivery_type: Optional[Literal["Normal", "Urgent"]] = None
    estimated_cost: Optional[float] = Field(None, ge=0)
    comment: Optional[str] = None

class CompanyInfo(CamelModel):
    id: Optional[str] = None
    name: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    rate: Optional[str] = None

class OfferPayload(CamelModel):
    # Numbers only: strings, booleans and Infinity/NaN are refused
    cost: Optional[float] = Field(None, strict=True, allow_inf_nan=False)
    comment: Optional[str] = None

class OperatorOffer(OfferPayload):
    company_id: str
    company: Optional[CompanyInfo] = None

class StatusUpdate(CamelModel):
    request_id: int
    request_status: Optional[RequestStatus] = None
    delivery_status: Optional[DeliveryStatus] = None
    note: Optional[str] = None
    changed_by: Optional[str] = None

class OperatorUpdate(CamelModel):
    request_status: Optional[RequestStatus] = None
    delivery_status: Optional[DeliveryStatus] = None
    note: Optional[str] = None
    changed_by: Optional[str] = None
    cost_offers: Optional[list[OperatorOffer]] = None

class CompanyAction(CamelModel):
    action: Optional[str] = None
    request_id: Optional[int] = None
    company_id: Optional[str] = None
    company: Optional[CompanyInfo] = None
    offer: Optional[OfferPayload] = None

class SubmitOffer(CamelModel):
    offer_id: Optional[Union[str, int]] = None
    user_id: Optional[str] = None

class AcceptOffer(CamelModel):
    request_id: Optional[int] = None
    company_id: Optional[str] = None
    user_id: Optional[str] = None

class WarehouseAssign(CamelModel):
    request_id: Optional[int] = None
    company_id: Optional[str] = None
    warehouse_id: Optional[str] = None
    type: Literal["source", "destination"] = "source"

class CompanyCreate(CamelModel):
    id: Optional[str] = None
    user_id: Optional[str] = None
    name: str
    phone_number: str = ""
    email: str
    address: str = ""
    rate: str = "N/A"

class WarehouseCreate(CamelModel):
    id: Optional[str] = None
    name: str
    address: str = ""
    city: str = ""
    country: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None

class DriverCreate(CamelModel):
    id: Optional[str] = None
    user_id: Optional[str] = None
    name: str
    phone_number: str = ""
    license_number: str = ""
    country: str = ""
    created_by: Optional[str] = None

class VehicleCreate(CamelModel):
    id: Optional[str] = None
    name: str
    type: VehicleType
    model: str = ""
    capacity: str = ""
    plate_number: str
    country: str = ""
    created_by: Optional[str] = None

class AssignmentCreate(CamelModel):
    request_id: Optional[int] = None
    driver_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    assigned_by: Optional[str] = None


# ---- outputs ----

class ItemRead(CamelModel):
    id: int
    name: str
    category: str
    dimensions: str
    weight: str
    quantity: int
    note: Optional[str] = None

class CompanySnapshot(CamelModel):
    id: str
    name: str
    phone_number: str = ""
    email: str = ""
    address: str = ""
    rate: str = "N/A"

class CostOfferRead(CamelModel):
    id: int
    company_id: str
    company: CompanySnapshot
    cost: float
    comment: str
    selected: bool
    status: str
    created_at: datetime
    accepted_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None

class ActivityRead(CamelModel):
    action: str
    timestamp: datetime
    description: Optional[str] = None
    company_name: Optional[str] = None
    company_rate: Optional[str] = None
    cost: Optional[float] = None
    details: Optional[Dict[str, Any]] = None

class StatusHistoryRead(CamelModel):
    kind: str
    status: str
    changed_at: datetime
    changed_by: Optional[str] = None
    role: Optional[str] = None
    note: Optional[str] = None

class ShippingRequestRead(CamelModel):
    id: int
    request_number: str
    user_id: str
    source: Dict[str, Any]
    destination: Dict[str, Any]
    source_pickup_mode: Optional[str] = None
    destination_pickup_mode: Optional[str] = None
    delivery_type: Optional[str] = None
    comment: Optional[str] = None
    estimated_cost: Optional[float] = None
    cost: Optional[float] = None
    request_status: str
    delivery_status: str
    assigned_company_id: Optional[str] = None
    selected_company: Optional[Dict[str, Any]] = None
    rejected_by_companies: list[str] = []
    order_flow: list[str] = []
    delivery_flow: list[str] = []
    source_warehouse_id: Optional[str] = None
    source_warehouse: Optional[Dict[str, Any]] = None
    destination_warehouse_id: Optional[str] = None
    destination_warehouse: Optional[Dict[str, Any]] = None
    items: list[ItemRead]
    cost_offers: list[CostOfferRead]
    activity_history: list[ActivityRead]
    status_history: list[StatusHistoryRead]
    version: int
    created_at: datetime
    updated_at: datetime

class WarehouseRead(CamelModel):
    id: str
    company_id: str
    name: str
    address: str
    city: str
    country: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None

class CompanyRead(CamelModel):
    id: str
    user_id: Optional[str] = None
    name: str
    phone_number: str
    email: str
    address: str
    rate: str
    warehouses: list[WarehouseRead] = []

class DriverRead(CamelModel):
    id: str
    user_id: Optional[str] = None
    name: str
    phone_number: str
    license_number: str
    country: str

class VehicleRead(CamelModel):
    id: str
    name: str
    type: str
    model: str
    capacity: str
    plate_number: str
    status: str
    country: str

class AssignmentRead(CamelModel):
    id: int
    request_id: int
    driver_id: str
    vehicle_id: str
    status: str
    assigned_by: Optional[str] = None
    assigned_at: datetime
    estimated_delivery: Optional[datetime] = None
    driver: DriverRead
    vehicle: VehicleRead

class DriverOrder(AssignmentRead):
    request: ShippingRequestRead

class AuditLogRead(CamelModel):
    id: int
    action: str
    actor: Optional[str] = None
    role: Optional[str] = None
    description: Optional[str] = None
    resource_type: str
    resource_id: str
    changes: Optional[Dict[str, Any]] = None
    timestamp: datetime


# ---- envelopes ----

class RequestEnvelope(CamelModel):
    success: bool = True
    request: ShippingRequestRead

class RequestDetail(CamelModel):
    request: ShippingRequestRead

class RequestList(CamelModel):
    requests: list[ShippingRequestRead]

class ActivityList(CamelModel):
    activity_history: list[ActivityRead]

class ActionResult(CamelModel):
    success: bool = True
    message: str

class AcceptResult(CamelModel):
    success: bool = True
    message: str
    needs_warehouse_assignment: bool
    request: ShippingRequestRead

class WarehouseAssignResult(CamelModel):
    success: bool = True
    message: str
    warehouse: Dict[str, Any]

class WarehouseAssignmentCheck(CamelModel):
    needs_assignment: bool
    already_assigned: bool = False
    message: Optional[str] = None
    warehouse: Optional[Dict[str, Any]] = None
    warehouses: list[WarehouseRead] = []

class AssignmentResult(CamelModel):
    success: bool = True
    assignment: AssignmentRead

class AssignmentList(CamelModel):
    assignments: list[AssignmentRead]

class DriverOrderList(CamelModel):
    orders: list[DriverOrder]

class AuditLogList(CamelModel):
    logs: list[AuditLogRead]
