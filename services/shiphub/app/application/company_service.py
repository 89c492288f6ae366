from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Optional
import uuid

from shared.core import get_logger
from app.domain.exceptions import NotFoundError, ValidationError
from app.domain.models import Company, Warehouse
from .schemas import CompanyCreate, WarehouseCreate

logger = get_logger(__name__)


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10].upper()}"


class CompanyService:
    def __init__(self, db: Session):
        self.db = db

    def list(self):
        return self.db.query(Company).order_by(Company.name).all()

    def find(self, company_id: str) -> Optional[Company]:
        """Look a company up by its own id or by the id of its owning user."""
        if not company_id:
            return None
        return self.db.query(Company).filter(
            or_(Company.id == company_id, Company.user_id == company_id)
        ).first()

    def get(self, company_id: str) -> Company:
        company = self.find(company_id)
        if company is None:
            raise NotFoundError("Company not found")
        return company

    def create(self, data: CompanyCreate) -> Company:
        company = Company(
            id=data.id or _new_id("CMP"),
            user_id=data.user_id,
            name=data.name,
            phone_number=data.phone_number,
            email=data.email,
            address=data.address,
            rate=data.rate,
        )
        self.db.add(company)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ValidationError("A company with this id or email already exists")
        self.db.refresh(company)
        logger.info(f"Company {company.id} registered", extra={"extra_fields": {"company_id": company.id}})
        return company

    def add_warehouse(self, company_id: str, data: WarehouseCreate) -> Warehouse:
        company = self.get(company_id)
        warehouse = Warehouse(
            id=data.id or _new_id("WH"),
            company_id=company.id,
            name=data.name,
            address=data.address,
            city=data.city,
            country=data.country,
            latitude=data.latitude,
            longitude=data.longitude,
        )
        self.db.add(warehouse)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ValidationError("A warehouse with this id already exists")
        self.db.refresh(warehouse)
        return warehouse

    def list_warehouses(self, company_id: str):
        company = self.find(company_id)
        return list(company.warehouses) if company else []
