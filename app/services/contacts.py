from __future__ import annotations

import re
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.models.contact import Contact
from app.services.messages import recent_messages_for_phone

PHONE_RE = re.compile(r"^\+?[1-9]\d{1,14}$")
CONTACT_FIELDS = ("first_name", "last_name", "email", "company", "job_title", "notes", "tags")


def normalize_phone(value: str) -> str:
    phone = re.sub(r"[\s\-()]", "", value or "")
    if not PHONE_RE.match(phone):
        raise ValueError("Invalid phone number")
    return phone


def phone_variants(phone: str) -> list[str]:
    """Both stored spellings of a number: with and without the leading "+"."""
    digits = phone.strip().lstrip("+")
    return [digits, f"+{digits}"]


def _base_query(db: Session, tenant_id: int):
    return db.query(Contact).filter(Contact.tenant_id == tenant_id, Contact.is_deleted.is_(False))


def _ensure_phone_available(db: Session, *, tenant_id: int, phone_number: str, exclude_id: int | None = None) -> None:
    query = _base_query(db, tenant_id).filter(Contact.phone_number.in_(phone_variants(phone_number)))
    if exclude_id is not None:
        query = query.filter(Contact.id != exclude_id)
    if query.first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Contact with this phone number already exists",
        )


def create_contact(db: Session, *, tenant_id: int, user_id: int, data: dict[str, Any]) -> Contact:
    _ensure_phone_available(db, tenant_id=tenant_id, phone_number=data["phone_number"])
    contact = Contact(
        phone_number=data["phone_number"],
        tenant_id=tenant_id,
        created_by=user_id,
        messages_sent=0,
        messages_received=0,
        is_deleted=False,
        **{field: data.get(field) for field in CONTACT_FIELDS if field != "tags"},
        tags=list(data.get("tags") or []),
    )
    db.add(contact)
    db.commit()
    db.refresh(contact)
    return contact


def list_contacts(
    db: Session,
    *,
    tenant_id: int,
    page: int = 1,
    limit: int = 10,
    search: str | None = None,
    tag: str | None = None,
) -> dict[str, Any]:
    query = _base_query(db, tenant_id)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(
                Contact.phone_number.ilike(pattern),
                Contact.first_name.ilike(pattern),
                Contact.last_name.ilike(pattern),
                Contact.email.ilike(pattern),
                Contact.company.ilike(pattern),
            )
        )
    contacts = query.order_by(Contact.created_at.desc(), Contact.id.desc()).all()
    if tag:
        # tags é JSON; filtro em Python para funcionar em SQLite e Postgres
        contacts = [contact for contact in contacts if tag in (contact.tags or [])]
    total = len(contacts)
    start = (page - 1) * limit
    return {"contacts": contacts[start : start + limit], "total": total, "page": page, "limit": limit}


def get_contact(db: Session, *, tenant_id: int, contact_id: int) -> Contact:
    contact = _base_query(db, tenant_id).filter(Contact.id == contact_id).first()
    if not contact:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contact not found")
    return contact


def update_contact(db: Session, *, tenant_id: int, contact_id: int, changes: dict[str, Any]) -> Contact:
    contact = get_contact(db, tenant_id=tenant_id, contact_id=contact_id)
    new_phone = changes.get("phone_number")
    if new_phone and new_phone != contact.phone_number:
        _ensure_phone_available(db, tenant_id=tenant_id, phone_number=new_phone, exclude_id=contact.id)
        contact.phone_number = new_phone
    for field in CONTACT_FIELDS:
        if changes.get(field) is not None:
            value = changes[field]
            setattr(contact, field, list(value) if field == "tags" else value)
    db.commit()
    db.refresh(contact)
    return contact


def delete_contact(db: Session, *, tenant_id: int, contact_id: int) -> dict[str, str]:
    contact = get_contact(db, tenant_id=tenant_id, contact_id=contact_id)
    contact.is_deleted = True
    db.commit()
    return {"message": "Contact deleted successfully"}


def contact_stats(db: Session, *, tenant_id: int, contact_id: int) -> dict[str, Any]:
    contact = get_contact(db, tenant_id=tenant_id, contact_id=contact_id)
    recent = recent_messages_for_phone(db, tenant_id=tenant_id, phone_numbers=phone_variants(contact.phone_number), limit=50)
    return {
        "contact_id": contact.id,
        "messages_sent": contact.messages_sent,
        "messages_received": contact.messages_received,
        "last_message_at": contact.last_message_at,
        "recent_messages": recent,
    }
