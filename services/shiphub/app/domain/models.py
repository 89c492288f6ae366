from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy import String, ForeignKey, Numeric, DateTime, Text, Boolean, JSON, Float, UniqueConstraint
from datetime import datetime
from enum import Enum
from typing import Optional


class RequestStatus(str, Enum):
    PENDING = "Pending"
    ACCEPTED = "Accepted"
    ACTION_NEEDED = "Action needed"
    ASSIGNED_TO_COMPANY = "Assigned to Company"
    REJECTED = "Rejected"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class DeliveryStatus(str, Enum):
    PENDING = "Pending"
    PICKED_UP_SOURCE = "Picked Up Source"
    WAREHOUSE_SOURCE_RECEIVED = "Warehouse Source Received"
    IN_TRANSIT = "In Transit"
    WAREHOUSE_DESTINATION_RECEIVED = "Warehouse Destination Received"
    SHIPMENT_DELIVER = "Shipment Deliver"
    DELIVERED = "Delivered"
    FAILED = "Failed"


class OfferStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class PickupMode(str, Enum):
    DELEGATE = "Delegate"
    SELF = "Self"


class VehicleType(str, Enum):
    TRUCK = "Truck"
    VAN = "Van"
    PICKUP = "Pickup"
    BOX_TRUCK = "Box Truck"
    CARGO_VAN = "Cargo Van"


class VehicleStatus(str, Enum):
    AVAILABLE = "available"
    IN_USE = "In Use"
    MAINTENANCE = "maintenance"
    RETIRED = "retired"


class AssignmentStatus(str, Enum):
    ASSIGNED = "Assigned"
    IN_TRANSIT = "In Transit"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


# Requests a company may still bid on
OPEN_FOR_OFFERS = (RequestStatus.ACCEPTED.value, RequestStatus.ACTION_NEEDED.value)


class Base(DeclarativeBase):
    pass


class ShippingRequest(Base):
    __tablename__ = "shipping_requests"
    id: Mapped[int] = mapped_column(primary_key=True)
    request_number: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    # Owning user lives in the auth service (no FK)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    # Address snapshots taken at submission time
    source: Mapped[dict] = mapped_column(JSON, default=dict)
    destination: Mapped[dict] = mapped_column(JSON, default=dict)
    source_pickup_mode: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    destination_pickup_mode: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    delivery_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    estimated_cost: Mapped[Optional[float]] = mapped_column(Numeric(10, 2), nullable=True)
    cost: Mapped[Optional[float]] = mapped_column(Numeric(10, 2), nullable=True)
    request_status: Mapped[str] = mapped_column(String(40), default=RequestStatus.PENDING.value, index=True)
    delivery_status: Mapped[str] = mapped_column(String(40), default=DeliveryStatus.PENDING.value)
    assigned_company_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    selected_company: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    rejected_by_companies: Mapped[list] = mapped_column(JSON, default=list)
    order_flow: Mapped[list] = mapped_column(JSON, default=list)
    delivery_flow: Mapped[list] = mapped_column(JSON, default=list)
    source_warehouse_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    source_warehouse: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    destination_warehouse_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    destination_warehouse: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    # Bumped on every UPDATE; a stale version makes the flush fail
    version: Mapped[int] = mapped_column(nullable=False)

    items: Mapped[list["RequestItem"]] = relationship(
        "RequestItem", back_populates="request", cascade="all, delete-orphan", order_by="RequestItem.id"
    )
    cost_offers: Mapped[list["CostOffer"]] = relationship(
        "CostOffer", back_populates="request", cascade="all, delete-orphan", order_by="CostOffer.id"
    )
    activity_history: Mapped[list["ActivityHistory"]] = relationship(
        "ActivityHistory", back_populates="request", cascade="all, delete-orphan", order_by="ActivityHistory.id"
    )
    status_history: Mapped[list["StatusHistory"]] = relationship(
        "StatusHistory", back_populates="request", cascade="all, delete-orphan", order_by="StatusHistory.id"
    )

    __mapper_args__ = {"version_id_col": version}

    def offer_for(self, company_id: str) -> Optional["CostOffer"]:
        for offer in self.cost_offers:
            if offer.company_id == company_id:
                return offer
        return None

    def visible_to(self, company_id: str) -> bool:
        """Whether ``company_id`` may see and act on this request."""
        if self.request_status not in OPEN_FOR_OFFERS:
            return False
        if self.assigned_company_id and self.assigned_company_id != company_id:
            return False
        return company_id not in (self.rejected_by_companies or [])


class RequestItem(Base):
    __tablename__ = "request_items"
    id: Mapped[int] = mapped_column(primary_key=True)
    request_id: Mapped[int] = mapped_column(ForeignKey("shipping_requests.id"))
    name: Mapped[str] = mapped_column(String(200))
    category: Mapped[str] = mapped_column(String(100), default="")
    dimensions: Mapped[str] = mapped_column(String(100), default="")
    weight: Mapped[str] = mapped_column(String(50), default="")
    quantity: Mapped[int] = mapped_column(default=1)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    request: Mapped[ShippingRequest] = relationship("ShippingRequest", back_populates="items")


class CostOffer(Base):
    __tablename__ = "cost_offers"
    __table_args__ = (UniqueConstraint("request_id", "company_id", name="uq_cost_offers_request_company"),)
    id: Mapped[int] = mapped_column(primary_key=True)
    request_id: Mapped[int] = mapped_column(ForeignKey("shipping_requests.id"))
    # Company identity snapshot (company may not be in the directory)
    company_id: Mapped[str] = mapped_column(String(64))
    company_name: Mapped[str] = mapped_column(String(200))
    company_phone: Mapped[str] = mapped_column(String(50), default="")
    company_email: Mapped[str] = mapped_column(String(255), default="")
    company_address: Mapped[str] = mapped_column(String(500), default="")
    company_rate: Mapped[str] = mapped_column(String(20), default="N/A")
    cost: Mapped[float] = mapped_column(Numeric(10, 2))
    comment: Mapped[str] = mapped_column(Text, default="")
    selected: Mapped[bool] = mapped_column(Boolean, default=False)
    status: Mapped[str] = mapped_column(String(20), default=OfferStatus.PENDING.value)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    request: Mapped[ShippingRequest] = relationship("ShippingRequest", back_populates="cost_offers")

    @property
    def company(self) -> dict:
        return {
            "id": self.company_id,
            "name": self.company_name,
            "phone_number": self.company_phone,
            "email": self.company_email,
            "address": self.company_address,
            "rate": self.company_rate,
        }


class ActivityHistory(Base):
    __tablename__ = "activity_history"
    id: Mapped[int] = mapped_column(primary_key=True)
    request_id: Mapped[int] = mapped_column(ForeignKey("shipping_requests.id"), index=True)
    action: Mapped[str] = mapped_column(String(50))
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    company_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    company_rate: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    cost: Mapped[Optional[float]] = mapped_column(Numeric(10, 2), nullable=True)
    details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    request: Mapped[ShippingRequest] = relationship("ShippingRequest", back_populates="activity_history")


class StatusHistory(Base):
    __tablename__ = "status_history"
    id: Mapped[int] = mapped_column(primary_key=True)
    request_id: Mapped[int] = mapped_column(ForeignKey("shipping_requests.id"), index=True)
    kind: Mapped[str] = mapped_column(String(20))  # request / delivery
    status: Mapped[str] = mapped_column(String(40))
    changed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    changed_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    role: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    request: Mapped[ShippingRequest] = relationship("ShippingRequest", back_populates="status_history")


class Company(Base):
    __tablename__ = "companies"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(200))
    phone_number: Mapped[str] = mapped_column(String(50), default="")
    email: Mapped[str] = mapped_column(String(255), unique=True)
    address: Mapped[str] = mapped_column(String(500), default="")
    rate: Mapped[str] = mapped_column(String(20), default="N/A")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    warehouses: Mapped[list["Warehouse"]] = relationship(
        "Warehouse", back_populates="company", cascade="all, delete-orphan", order_by="Warehouse.created_at"
    )


class Warehouse(Base):
    __tablename__ = "warehouses"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    company_id: Mapped[str] = mapped_column(ForeignKey("companies.id"), index=True)
    name: Mapped[str] = mapped_column(String(200))
    address: Mapped[str] = mapped_column(String(500), default="")
    city: Mapped[str] = mapped_column(String(100), default="")
    country: Mapped[str] = mapped_column(String(100), default="")
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    company: Mapped[Company] = relationship("Company", back_populates="warehouses")

    def snapshot(self) -> dict:
        coordinates = None
        if self.latitude is not None and self.longitude is not None:
            coordinates = {"latitude": self.latitude, "longitude": self.longitude}
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "city": self.city,
            "country": self.country,
            "coordinates": coordinates,
        }


class Driver(Base):
    __tablename__ = "drivers"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    # Driver's login in the auth service (no FK)
    user_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(200))
    phone_number: Mapped[str] = mapped_column(String(50), default="")
    license_number: Mapped[str] = mapped_column(String(50), default="")
    country: Mapped[str] = mapped_column(String(100), default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class Vehicle(Base):
    __tablename__ = "vehicles"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(200))
    type: Mapped[str] = mapped_column(String(20))
    model: Mapped[str] = mapped_column(String(100), default="")
    capacity: Mapped[str] = mapped_column(String(50), default="")
    plate_number: Mapped[str] = mapped_column(String(30), unique=True)
    status: Mapped[str] = mapped_column(String(20), default=VehicleStatus.AVAILABLE.value)
    country: Mapped[str] = mapped_column(String(100), default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class Assignment(Base):
    """A driver and vehicle dispatched for one request."""
    __tablename__ = "assignments"
    id: Mapped[int] = mapped_column(primary_key=True)
    # One dispatch per request
    request_id: Mapped[int] = mapped_column(ForeignKey("shipping_requests.id"), unique=True)
    driver_id: Mapped[str] = mapped_column(ForeignKey("drivers.id"), index=True)
    vehicle_id: Mapped[str] = mapped_column(ForeignKey("vehicles.id"))
    status: Mapped[str] = mapped_column(String(20), default=AssignmentStatus.ASSIGNED.value)
    assigned_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    assigned_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    estimated_delivery: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    request: Mapped[ShippingRequest] = relationship("ShippingRequest")
    driver: Mapped[Driver] = relationship("Driver")
    vehicle: Mapped[Vehicle] = relationship("Vehicle")


class AuditLog(Base):
    __tablename__ = "audit_logs"
    id: Mapped[int] = mapped_column(primary_key=True)
    action: Mapped[str] = mapped_column(String(50), index=True)
    actor: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    role: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    resource_type: Mapped[str] = mapped_column(String(30))
    resource_id: Mapped[str] = mapped_column(String(64), index=True)
    changes: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
