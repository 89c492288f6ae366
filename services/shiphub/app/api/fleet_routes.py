from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from app.infrastructure.db import get_db
from app.application.audit import list_audit_logs
from app.application.fleet_service import FleetService
from app.application.service import RequestService
from app.application.schemas import (
    AssignmentCreate,
    AssignmentList,
    AssignmentResult,
    AuditLogList,
    DriverCreate,
    DriverOrderList,
    DriverRead,
    VehicleCreate,
    VehicleRead,
)
from app.domain.exceptions import ValidationError
from app.domain.models import VehicleStatus

admin_router = APIRouter(prefix="/admin", tags=["fleet"])
driver_router = APIRouter(prefix="/driver", tags=["driver"])


@admin_router.post("/assign", response_model=AssignmentResult, status_code=201)
def assign_driver(payload: AssignmentCreate, db: Session = Depends(get_db)):
    return {"success": True, "assignment": RequestService(db).assign_driver(payload)}

@admin_router.get("/assign", response_model=AssignmentList)
def list_assignments(db: Session = Depends(get_db)):
    return {"assignments": FleetService(db).list_assignments()}

@admin_router.get("/drivers", response_model=list[DriverRead])
def list_drivers(db: Session = Depends(get_db)):
    return FleetService(db).list_drivers()

@admin_router.post("/drivers", response_model=DriverRead, status_code=201)
def create_driver(payload: DriverCreate, db: Session = Depends(get_db)):
    return FleetService(db).create_driver(payload, created_by=payload.created_by)

@admin_router.get("/vehicles", response_model=list[VehicleRead])
def list_vehicles(
    vehicle_status: Optional[VehicleStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
):
    return FleetService(db).list_vehicles(vehicle_status.value if vehicle_status else None)

@admin_router.post("/vehicles", response_model=VehicleRead, status_code=201)
def create_vehicle(payload: VehicleCreate, db: Session = Depends(get_db)):
    return FleetService(db).create_vehicle(payload, created_by=payload.created_by)

@admin_router.get("/audit-logs", response_model=AuditLogList)
def audit_logs(
    user_id: Optional[str] = Query(None, alias="userId"),
    action: Optional[str] = None,
    resource_id: Optional[str] = Query(None, alias="resourceId"),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
):
    """Newest entries first, optionally narrowed to one actor, action or resource."""
    return {"logs": list_audit_logs(db, actor=user_id, action=action, resource_id=resource_id, limit=limit)}


@driver_router.get("/orders", response_model=DriverOrderList)
def driver_orders(driver_id: Optional[str] = Query(None, alias="driverId"), db: Session = Depends(get_db)):
    if not driver_id:
        raise ValidationError("Driver ID is required")
    return {"orders": FleetService(db).driver_orders(driver_id)}
