from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Optional

from shared.core import get_logger
from app.domain.exceptions import NotFoundError, ValidationError
from app.domain.models import Assignment, Driver, Vehicle, VehicleStatus
from .audit import record_audit
from .company_service import _new_id
from .schemas import DriverCreate, VehicleCreate

logger = get_logger(__name__)


class FleetService:
    """Drivers, vehicles and the dispatch assignments that use them."""

    def __init__(self, db: Session):
        self.db = db

    def list_drivers(self):
        return self.db.query(Driver).order_by(Driver.name).all()

    def get_driver(self, driver_id: str) -> Driver:
        driver = self.db.get(Driver, driver_id)
        if driver is None:
            raise NotFoundError("Driver not found")
        return driver

    def create_driver(self, data: DriverCreate, created_by: Optional[str] = None) -> Driver:
        driver = Driver(
            id=data.id or _new_id("DRV"),
            user_id=data.user_id,
            name=data.name,
            phone_number=data.phone_number,
            license_number=data.license_number,
            country=data.country,
        )
        self.db.add(driver)
        record_audit(
            self.db, "DRIVER_CREATED", "Driver", driver.id,
            actor=created_by, role="admin", description=f"Created driver {driver.name}",
        )
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ValidationError("A driver with this id already exists")
        self.db.refresh(driver)
        logger.info(f"Driver {driver.id} registered")
        return driver

    def list_vehicles(self, vehicle_status: Optional[str] = None):
        query = self.db.query(Vehicle)
        if vehicle_status:
            query = query.filter(Vehicle.status == vehicle_status)
        return query.order_by(Vehicle.name).all()

    def get_vehicle(self, vehicle_id: str) -> Vehicle:
        vehicle = self.db.get(Vehicle, vehicle_id)
        if vehicle is None:
            raise NotFoundError("Vehicle not found")
        return vehicle

    def create_vehicle(self, data: VehicleCreate, created_by: Optional[str] = None) -> Vehicle:
        vehicle = Vehicle(
            id=data.id or _new_id("VEH"),
            name=data.name,
            type=data.type.value,
            model=data.model,
            capacity=data.capacity,
            plate_number=data.plate_number,
            status=VehicleStatus.AVAILABLE.value,
            country=data.country,
        )
        self.db.add(vehicle)
        record_audit(
            self.db, "VEHICLE_CREATED", "Vehicle", vehicle.id,
            actor=created_by, role="admin", description=f"Created vehicle {vehicle.name}",
            changes={"type": vehicle.type, "plateNumber": vehicle.plate_number},
        )
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ValidationError("A vehicle with this id or plate number already exists")
        self.db.refresh(vehicle)
        logger.info(f"Vehicle {vehicle.id} registered")
        return vehicle

    def list_assignments(self):
        return self.db.query(Assignment).order_by(Assignment.assigned_at.desc(), Assignment.id.desc()).all()

    def assignment_for(self, request_id: int) -> Optional[Assignment]:
        return self.db.query(Assignment).filter(Assignment.request_id == request_id).first()

    def driver_orders(self, driver_id: str):
        """Assignments of one driver; accepts the driver id or the driver's user id."""
        driver = self.db.get(Driver, driver_id)
        if driver is None:
            driver = self.db.query(Driver).filter(Driver.user_id == driver_id).first()
        if driver is None:
            return []
        return self.db.query(Assignment).filter(
            Assignment.driver_id == driver.id
        ).order_by(Assignment.assigned_at.desc(), Assignment.id.desc()).all()
