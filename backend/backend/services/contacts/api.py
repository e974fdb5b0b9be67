from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.tenant import scoped
from app.db.models.projects import Company, Contact
from app.db.session import get_db
from services._crud import commit_refresh, get_or_404

router = APIRouter(prefix="/contacts", tags=["contacts"])


def company_out(c: Company) -> dict:
    return {"id": c.id, "name": c.name, "registration_no": c.registration_no, "address": c.address, "is_active": c.is_active}


def contact_out(c: Contact) -> dict:
    return {"id": c.id, "company_id": c.company_id, "name": c.name, "email": c.email, "phone": c.phone, "position": c.position}


@router.get("/companies")
def list_companies(db: Session = Depends(get_db), include_inactive: bool = False):
    q = scoped(db.query(Company), Company)
    if not include_inactive:
        q = q.filter(Company.is_active == True)  # noqa: E712
    return [company_out(c) for c in q.order_by(Company.name.asc()).all()]


@router.post("/companies", status_code=201)
def create_company(payload: dict, db: Session = Depends(get_db)):
    name = (payload.get("name") or "").strip()
    if not name:
        raise HTTPException(400, "name is required")
    dup = scoped(db.query(Company), Company).filter(Company.name == name).first()
    if dup:
        raise HTTPException(409, "A company with this name already exists")
    c = Company(name=name, registration_no=payload.get("registration_no"), address=payload.get("address"), is_active=True)
    return company_out(commit_refresh(db, c))


@router.get("/people")
def list_people(db: Session = Depends(get_db), company_id: str | None = None):
    q = scoped(db.query(Contact), Contact)
    if company_id:
        q = q.filter(Contact.company_id == company_id)
    return [contact_out(c) for c in q.order_by(Contact.name.asc()).all()]


@router.post("/people", status_code=201)
def create_person(payload: dict, db: Session = Depends(get_db)):
    company_id = payload.get("company_id")
    if not company_id:
        raise HTTPException(400, "company_id is required")
    get_or_404(db, Company, company_id, "Company")
    name = (payload.get("name") or "").strip()
    if not name:
        raise HTTPException(400, "name is required")
    c = Contact(
        company_id=company_id,
        name=name,
        email=(payload.get("email") or "").strip().lower() or None,
        phone=payload.get("phone"),
        position=payload.get("position"),
    )
    return contact_out(commit_refresh(db, c))
