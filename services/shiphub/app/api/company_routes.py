from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Literal, Optional
from app.infrastructure.db import get_db
from app.application.service import RequestService
from app.application.company_service import CompanyService
from app.application.schemas import (
    AcceptOffer,
    AcceptResult,
    ActionResult,
    CompanyAction,
    CompanyRead,
    RequestList,
    WarehouseAssign,
    WarehouseAssignmentCheck,
    WarehouseAssignResult,
    WarehouseCreate,
    WarehouseRead,
)
from app.domain.exceptions import ValidationError

router = APIRouter(prefix="/company", tags=["company"])


def _require(**params) -> None:
    missing = [name for name, value in params.items() if value is None or value == ""]
    if missing:
        if len(missing) == 1:
            raise ValidationError(f"{missing[0]} is required")
        if len(missing) == 2:
            raise ValidationError(f"{missing[0]} and {missing[1]} are required")
        raise ValidationError(f"{', '.join(missing[:-1])}, and {missing[-1]} are required")


@router.get("/requests", response_model=RequestList)
def visible_requests(company_id: Optional[str] = Query(None, alias="companyId"), db: Session = Depends(get_db)):
    """Requests this company may still bid on."""
    _require(companyId=company_id)
    return {"requests": RequestService(db).visible_to_company(company_id)}

@router.post("/requests", response_model=ActionResult)
def company_action(payload: CompanyAction, db: Session = Depends(get_db)):
    return {"success": True, "message": RequestService(db).handle_company_action(payload)}

@router.post("/accept-offer", response_model=AcceptResult)
def accept_offer(payload: AcceptOffer, db: Session = Depends(get_db)):
    _require(requestId=payload.request_id, companyId=payload.company_id)
    request, needs_warehouse = RequestService(db).accept_offer(
        payload.request_id, payload.company_id, payload.user_id
    )
    return {
        "success": True,
        "message": "Offer accepted successfully",
        "needs_warehouse_assignment": needs_warehouse,
        "request": request,
    }

@router.get("/ongoing", response_model=RequestList)
def ongoing_requests(company_id: Optional[str] = Query(None, alias="companyId"), db: Session = Depends(get_db)):
    _require(companyId=company_id)
    return {"requests": RequestService(db).assigned_to_company(company_id)}

@router.post("/assign-warehouse", response_model=WarehouseAssignResult)
def assign_warehouse(payload: WarehouseAssign, db: Session = Depends(get_db)):
    _require(requestId=payload.request_id, companyId=payload.company_id, warehouseId=payload.warehouse_id)
    warehouse = RequestService(db).assign_warehouse(
        payload.request_id, payload.company_id, payload.warehouse_id, payload.type
    )
    return {"success": True, "message": "Warehouse assigned successfully", "warehouse": warehouse}

@router.get("/assign-warehouse", response_model=WarehouseAssignmentCheck, response_model_exclude_none=True)
def warehouse_assignment_status(
    request_id: Optional[int] = Query(None, alias="requestId"),
    company_id: Optional[str] = Query(None, alias="companyId"),
    side: Literal["source", "destination"] = Query("source", alias="type"),
    db: Session = Depends(get_db),
):
    _require(requestId=request_id, companyId=company_id)
    return RequestService(db).warehouse_assignment_status(request_id, company_id, side)

@router.get("/profile", response_model=CompanyRead)
def company_profile(company_id: Optional[str] = Query(None, alias="companyId"), db: Session = Depends(get_db)):
    _require(companyId=company_id)
    return CompanyService(db).get(company_id)

@router.get("/warehouses", response_model=list[WarehouseRead])
def list_warehouses(company_id: Optional[str] = Query(None, alias="companyId"), db: Session = Depends(get_db)):
    _require(companyId=company_id)
    return CompanyService(db).list_warehouses(company_id)

@router.post("/warehouses", response_model=WarehouseRead, status_code=201)
def add_warehouse(
    payload: WarehouseCreate,
    company_id: Optional[str] = Query(None, alias="companyId"),
    db: Session = Depends(get_db),
):
    _require(companyId=company_id)
    return CompanyService(db).add_warehouse(company_id, payload)
