from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from app.infrastructure.db import get_db
from app.application.service import RequestService
from app.application.company_service import CompanyService
from app.application.schemas import (
    AcceptResult,
    ActivityList,
    CompanyCreate,
    CompanyRead,
    OperatorUpdate,
    RequestCreate,
    RequestDetail,
    RequestEnvelope,
    RequestList,
    StatusUpdate,
    SubmitOffer,
)
from app.domain.models import RequestStatus

router = APIRouter(prefix="/requests", tags=["requests"])
admin_router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/", response_model=RequestList)
def list_requests(
    db: Session = Depends(get_db),
    user_id: Optional[str] = Query(None, alias="userId", description="Only requests owned by this user"),
    request_status: Optional[RequestStatus] = Query(None, alias="status"),
):
    status_value = request_status.value if request_status else None
    return {"requests": RequestService(db).list(user_id=user_id, request_status=status_value)}

@router.post("/", response_model=RequestEnvelope, status_code=201)
def create_request(payload: RequestCreate, db: Session = Depends(get_db)):
    return {"success": True, "request": RequestService(db).create(payload)}

@router.get("/{request_id}", response_model=RequestDetail)
def get_request(request_id: int, db: Session = Depends(get_db)):
    return {"request": RequestService(db).get(request_id)}

@router.get("/{request_id}/activity", response_model=ActivityList)
def get_activity(request_id: int, db: Session = Depends(get_db)):
    return {"activity_history": RequestService(db).get(request_id).activity_history}

@router.post("/{request_id}/submit-offer", response_model=AcceptResult)
def submit_offer(request_id: int, payload: SubmitOffer, db: Session = Depends(get_db)):
    """Requester accepts one offer; the request is assigned to its company."""
    request, needs_warehouse = RequestService(db).submit_offer(request_id, payload.offer_id, payload.user_id)
    return {
        "success": True,
        "message": "Offer accepted successfully! The request has been assigned to the company.",
        "needs_warehouse_assignment": needs_warehouse,
        "request": request,
    }


@admin_router.get("/orders", response_model=RequestList)
def list_orders(db: Session = Depends(get_db)):
    return {"requests": RequestService(db).list()}

@admin_router.put("/orders", response_model=RequestEnvelope)
def update_order_status(payload: StatusUpdate, db: Session = Depends(get_db)):
    request = RequestService(db).update_status(
        payload.request_id,
        request_status=payload.request_status,
        delivery_status=payload.delivery_status,
        changed_by=payload.changed_by,
        role="admin",
        note=payload.note,
    )
    return {"success": True, "request": request}

@admin_router.put("/requests/{request_id}", response_model=RequestEnvelope)
def operator_update(request_id: int, payload: OperatorUpdate, db: Session = Depends(get_db)):
    return {"success": True, "request": RequestService(db).operator_update(request_id, payload)}

@admin_router.get("/companies", response_model=list[CompanyRead])
def list_companies(db: Session = Depends(get_db)):
    return CompanyService(db).list()

@admin_router.post("/companies", response_model=CompanyRead, status_code=201)
def create_company(payload: CompanyCreate, db: Session = Depends(get_db)):
    return CompanyService(db).create(payload)
