from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z


class Product(db.Model):
    """
    Product or service master data, owned by one user.

    SERVICE DESIGN DECISION:
    is_service=True rows have unbounded stock. stock_quantity and
    low_stock_threshold are pinned to 0 on write and are never moved by
    sales or restocks. product_type mirrors the flag ("product"/"service").

    stock_quantity is a mutable counter; every change made by a sale or a
    restock receipt is also recorded as a StockTransaction.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("user_id", "sku", name="uq_products_user_sku"),
        db.Index("ix_products_user_name", "user_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=False)
    barcode = db.Column(db.String(64), nullable=True)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(128), nullable=True)

    price = db.Column(db.Numeric(12, 2), nullable=False)
    cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=5)

    product_type = db.Column(db.String(16), nullable=False, default="product")
    is_service = db.Column(db.Boolean, nullable=False, default=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r} user_id={self.user_id}>"

    @property
    def is_low_stock(self) -> bool:
        return not self.is_service and self.stock_quantity <= self.low_stock_threshold

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "sku": self.sku,
            "barcode": self.barcode,
            "description": self.description,
            "category": self.category,
            "price": money_str(self.price),
            "cost": money_str(self.cost),
            "stock_quantity": self.stock_quantity,
            "low_stock_threshold": self.low_stock_threshold,
            "product_type": self.product_type,
            "is_service": self.is_service,
            "is_low_stock": self.is_low_stock,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockTransaction(db.Model):
    """
    Append-only audit trail of stock_quantity changes.

    TRANSACTION TYPES:
    - sale: stock leaves with a sale (quantity_change < 0)
    - restock: stock arrives with a received restock order (quantity_change > 0)

    reference_type/reference_id point at the originating sale or restock order.
    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "stock_transactions"
    __table_args__ = (
        db.Index("ix_stock_txns_user_product_created", "user_id", "product_id", "created_at"),
        db.Index("ix_stock_txns_reference", "reference_type", "reference_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    transaction_type = db.Column(db.String(16), nullable=False, index=True)

    # Signed: negative for sales, positive for restocks
    quantity_change = db.Column(db.Integer, nullable=False)
    quantity_before = db.Column(db.Integer, nullable=False)
    quantity_after = db.Column(db.Integer, nullable=False)

    unit_cost = db.Column(db.Numeric(12, 2), nullable=True)
    total_cost = db.Column(db.Numeric(12, 2), nullable=True)

    reference_type = db.Column(db.String(32), nullable=True)
    reference_id = db.Column(db.Integer, nullable=True)

    notes = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    product = db.relationship("Product", backref=db.backref("stock_transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "product_id": self.product_id,
            "transaction_type": self.transaction_type,
            "quantity_change": self.quantity_change,
            "quantity_before": self.quantity_before,
            "quantity_after": self.quantity_after,
            "unit_cost": money_str(self.unit_cost),
            "total_cost": money_str(self.total_cost),
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }


class RestockOrder(db.Model):
    """
    Purchase order from a supplier.

    LIFECYCLE:
    1. pending: created with its items; no stock effect
    2. received: stock incremented per item (manual Receive only)
    3. cancelled: closed without stock effect

    No transition back out of received or cancelled.
    """
    __tablename__ = "restock_orders"
    __table_args__ = (
        db.UniqueConstraint("user_id", "order_number", name="uq_restock_orders_user_number"),
        db.Index("ix_restock_orders_user_status", "user_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    order_number = db.Column(db.String(64), nullable=False)
    supplier_name = db.Column(db.String(255), nullable=False)
    supplier_contact = db.Column(db.String(255), nullable=True)

    total_cost = db.Column(db.Numeric(12, 2), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    order_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    received_date = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "order_number": self.order_number,
            "supplier_name": self.supplier_name,
            "supplier_contact": self.supplier_contact,
            "total_cost": money_str(self.total_cost),
            "status": self.status,
            "order_date": to_utc_z(self.order_date),
            "received_date": to_utc_z(self.received_date) if self.received_date else None,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class RestockItem(db.Model):
    """Individual line items on a restock order."""
    __tablename__ = "restock_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    restock_order_id = db.Column(db.Integer, db.ForeignKey("restock_orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_cost = db.Column(db.Numeric(12, 2), nullable=False)
    total_cost = db.Column(db.Numeric(12, 2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    restock_order = db.relationship(
        "RestockOrder",
        backref=db.backref("items", lazy=True, cascade="all, delete-orphan", order_by="RestockItem.id"),
    )
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "restock_order_id": self.restock_order_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "unit_cost": money_str(self.unit_cost),
            "total_cost": money_str(self.total_cost),
            "created_at": to_utc_z(self.created_at),
        }
