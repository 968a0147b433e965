# Overview: Service-layer operations for customers; user-scoped CRUD.

from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import Customer, Sale

CUSTOMER_MUTABLE_FIELDS = {"name", "email", "phone", "address"}


class CustomerNotFoundError(Exception):
    """Raised when a customer does not exist or belongs to another user."""
    pass


def get_customer(user_id: int, customer_id: int) -> Customer:
    customer = db.session.query(Customer).filter_by(id=customer_id, user_id=user_id).first()
    if customer is None:
        raise CustomerNotFoundError(f"Customer {customer_id} not found")
    return customer


def list_customers(user_id: int, search: str | None = None) -> list[Customer]:
    q = db.session.query(Customer).filter(Customer.user_id == user_id)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(or_(Customer.name.ilike(like), Customer.email.ilike(like), Customer.phone.ilike(like)))
    return q.order_by(Customer.created_at.desc(), Customer.id.desc()).all()


def create_customer(*, user_id: int, patch: dict) -> Customer:
    customer = Customer(user_id=user_id)
    for k, v in patch.items():
        if k in CUSTOMER_MUTABLE_FIELDS:
            setattr(customer, k, v)
    db.session.add(customer)
    db.session.commit()
    return customer


def update_customer(*, user_id: int, customer_id: int, patch: dict) -> Customer:
    customer = get_customer(user_id, customer_id)
    for k, v in patch.items():
        if k in CUSTOMER_MUTABLE_FIELDS:
            setattr(customer, k, v)
    db.session.commit()
    return customer


def delete_customer(*, user_id: int, customer_id: int) -> int:
    """
    Delete a customer. Their past sales are kept and become walk-in sales.

    Returns the number of sales that were detached.
    """
    customer = get_customer(user_id, customer_id)

    sales = db.session.query(Sale).filter_by(user_id=user_id, customer_id=customer.id).all()
    for sale in sales:
        sale.customer_id = None

    db.session.delete(customer)
    db.session.commit()
    return len(sales)
