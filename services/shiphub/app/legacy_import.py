"""
One-shot import of the legacy flat-JSON store into the database.

Reads ``requests.json`` and ``companies.json`` from the legacy data
directory. Rows whose id already exists are skipped, so the import can
be re-run safely. Run with ``python -m app.legacy_import [data_dir]``.
"""
import argparse
import json
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from sqlalchemy.orm import Session

from shared.core import get_logger, setup_logging
from app.core_settings import get_settings
from app.domain.models import (
    ActivityHistory,
    Company,
    CostOffer,
    DeliveryStatus,
    OfferStatus,
    RequestItem,
    RequestStatus,
    ShippingRequest,
    StatusHistory,
    Warehouse,
)

logger = get_logger(__name__)

REQUEST_STATUSES = {s.value for s in RequestStatus}
DELIVERY_STATUSES = {s.value for s in DeliveryStatus}


def _load(path: Path, key: str) -> list[dict]:
    if not path.exists():
        logger.info(f"Legacy file {path} not found; skipping")
        return []
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    return data.get(key, []) if isinstance(data, dict) else []


def _parse_dt(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).replace(tzinfo=None)
    except ValueError:
        return None


def _to_float(value: Any) -> Optional[float]:
    try:
        return float(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


def normalize_items(raw: dict) -> list[dict]:
    """Legacy requests carry either an ``items`` list or one flattened item."""
    if isinstance(raw.get("items"), list) and raw["items"]:
        return [
            {
                "name": it.get("name") or it.get("item") or "-",
                "category": it.get("category") or "",
                "dimensions": it.get("dimensions") or "",
                "weight": str(it.get("weight") or ""),
                "quantity": int(it.get("quantity") or 1),
                "note": it.get("note"),
            }
            for it in raw["items"]
        ]
    if any(raw.get(k) for k in ("item", "category", "dimensions", "weight", "quantity")):
        return [{
            "name": raw.get("item") or "-",
            "category": raw.get("category") or "",
            "dimensions": raw.get("dimensions") or "",
            "weight": str(raw.get("weight") or ""),
            "quantity": int(raw.get("quantity") or 1),
            "note": raw.get("note"),
        }]
    return []


def import_companies(db: Session, companies: list[dict]) -> int:
    imported = 0
    for raw in companies:
        company_id = raw.get("id")
        if not company_id or db.get(Company, company_id) is not None:
            continue
        company = Company(
            id=company_id,
            user_id=raw.get("userId"),
            name=raw.get("name") or "Unknown Company",
            phone_number=raw.get("phoneNumber") or "",
            email=raw.get("email") or f"{company_id}@legacy.invalid",
            address=raw.get("address") or "",
            rate=raw.get("rate") or "N/A",
        )
        for idx, wh in enumerate(raw.get("warehouses") or [], start=1):
            coords = wh.get("coordinates") or {}
            company.warehouses.append(Warehouse(
                id=wh.get("id") or f"WH-{company_id}-{idx}",
                name=wh.get("name") or "-",
                address=wh.get("address") or "",
                city=wh.get("city") or "",
                country=wh.get("country") or "",
                latitude=coords.get("latitude"),
                longitude=coords.get("longitude"),
            ))
        db.add(company)
        imported += 1
    db.commit()
    return imported


def _build_request(raw: dict) -> ShippingRequest:
    now = datetime.utcnow()
    request_status = raw.get("requestStatus") or raw.get("orderStatus") or RequestStatus.PENDING.value
    if request_status not in REQUEST_STATUSES:
        request_status = RequestStatus.PENDING.value
    delivery_status = raw.get("deliveryStatus") or DeliveryStatus.PENDING.value
    if delivery_status not in DELIVERY_STATUSES:
        delivery_status = DeliveryStatus.PENDING.value

    source_wh = raw.get("sourceWarehouse") or raw.get("pickupWarehouse") or raw.get("assignedWarehouse")
    destination_wh = raw.get("destinationWarehouse")
    request = ShippingRequest(
        request_number=raw["id"],
        user_id=raw.get("userId") or "unknown",
        source=raw.get("source") or raw.get("from") or {},
        destination=raw.get("destination") or raw.get("to") or {},
        source_pickup_mode=raw.get("sourcePickupMode"),
        destination_pickup_mode=raw.get("destinationPickupMode"),
        delivery_type=raw.get("deliveryType"),
        comment=raw.get("comment"),
        estimated_cost=_to_float(raw.get("primaryCost") or raw.get("estimatedCost")),
        cost=_to_float(raw.get("cost")),
        request_status=request_status,
        delivery_status=delivery_status,
        assigned_company_id=raw.get("assignedCompanyId"),
        selected_company=raw.get("selectedCompany"),
        rejected_by_companies=list(dict.fromkeys(raw.get("rejectedByCompanies") or [])),
        order_flow=raw.get("orderFlow") or [request_status],
        delivery_flow=raw.get("deliveryFlow") or [delivery_status],
        source_warehouse_id=(source_wh or {}).get("id") or raw.get("assignedWarehouseId"),
        source_warehouse=source_wh,
        destination_warehouse_id=(destination_wh or {}).get("id"),
        destination_warehouse=destination_wh,
        created_at=_parse_dt(raw.get("createdAt")) or now,
        updated_at=_parse_dt(raw.get("updatedAt")) or now,
    )
    for item in normalize_items(raw):
        request.items.append(RequestItem(**item))

    seen_companies = set()
    for offer in raw.get("costOffers") or []:
        company = offer.get("company") or {}
        company_id = company.get("id") or offer.get("companyId")
        cost = _to_float(offer.get("cost"))
        # Legacy files may hold duplicates; the first offer per company wins
        if not company_id or cost is None or company_id in seen_companies:
            continue
        seen_companies.add(company_id)
        status = offer.get("status") if offer.get("status") in {s.value for s in OfferStatus} else OfferStatus.PENDING.value
        request.cost_offers.append(CostOffer(
            company_id=company_id,
            company_name=company.get("name") or "Unknown Company",
            company_phone=company.get("phoneNumber") or "",
            company_email=company.get("email") or "",
            company_address=company.get("address") or "",
            company_rate=company.get("rate") or "N/A",
            cost=cost,
            comment=offer.get("comment") or "",
            selected=bool(offer.get("selected")),
            status=status,
            created_at=_parse_dt(offer.get("createdAt")) or now,
            accepted_at=_parse_dt(offer.get("acceptedAt")),
            rejected_at=_parse_dt(offer.get("rejectedAt")),
        ))

    for entry in raw.get("activityHistory") or []:
        request.activity_history.append(ActivityHistory(
            action=entry.get("action") or "unknown",
            timestamp=_parse_dt(entry.get("timestamp")) or now,
            description=entry.get("description"),
            company_name=entry.get("companyName"),
            company_rate=entry.get("companyRate"),
            cost=_to_float(entry.get("cost")),
            details=entry.get("details"),
        ))

    for kind, key in (("request", "requestStatusHistory"), ("delivery", "deliveryStatusHistory")):
        for entry in raw.get(key) or []:
            request.status_history.append(StatusHistory(
                kind=kind,
                status=entry.get("status") or "",
                changed_at=_parse_dt(entry.get("changedAt")) or now,
                changed_by=entry.get("changedBy"),
                role=entry.get("role"),
                note=entry.get("note"),
            ))
    return request


def import_requests(db: Session, requests: list[dict]) -> int:
    existing = {n for (n,) in db.query(ShippingRequest.request_number).all()}
    imported = 0
    for raw in requests:
        legacy_id = raw.get("id")
        if not legacy_id or legacy_id in existing:
            continue
        db.add(_build_request(raw))
        existing.add(legacy_id)
        imported += 1
    db.commit()
    return imported


def run_import(db: Session, data_dir: Path) -> dict:
    companies = import_companies(db, _load(data_dir / "companies.json", "companies"))
    requests = import_requests(db, _load(data_dir / "requests.json", "requests"))
    logger.info(
        "Legacy import finished",
        extra={"extra_fields": {"companies": companies, "requests": requests, "data_dir": str(data_dir)}},
    )
    return {"companies": companies, "requests": requests}


def main(argv: Optional[list[str]] = None) -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Import legacy ShipHub JSON files into the database")
    parser.add_argument("data_dir", nargs="?", default=settings.LEGACY_DATA_DIR)
    args = parser.parse_args(argv)

    setup_logging(service_name="shiphub-legacy-import", level=settings.LOG_LEVEL)

    from app.infrastructure.db import SessionLocal, init_models

    init_models()
    with SessionLocal() as db:
        run_import(db, Path(args.data_dir))


if __name__ == "__main__":
    main()
