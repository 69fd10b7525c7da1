"""Cart aggregate — a shopper's reserved units awaiting checkout.

One cart per shopper. Every line holds units already taken out of the
InventoryUnit's available quantity; removing a line or expiring the cart
gives them back. ``checkout_in_progress`` exempts the cart from the idle
sweep while a payment session is open.
"""

from protean.fields import Boolean, Date, DateTime, HasMany, Identifier, Integer, String

from marketplace.cart.events import (
    CartCheckoutStatusChanged,
    CartCleared,
    CartLineAdded,
    CartLineRemoved,
)
from marketplace.domain import marketplace
from marketplace.errors import NotFoundError
from marketplace.utils.clock import utc_now


@marketplace.entity(part_of="Cart")
class CartLine:
    product_item_id = Identifier(required=True)
    name = String(max_length=255)
    unit_price = Integer(required=True, min_value=0)  # minor units
    quantity = Integer(required=True, min_value=1)
    vendor_id = Identifier(required=True)
    product_date = Date()
    start_time = String(max_length=5)
    duration_minutes = Integer()

    @property
    def subtotal(self) -> int:
        return self.unit_price * self.quantity


@marketplace.aggregate
class Cart:
    user_id = Identifier(required=True, unique=True)
    lines = HasMany(CartLine)
    checkout_in_progress = Boolean(default=False)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, user_id):
        now = utc_now()
        return cls(
            user_id=user_id,
            checkout_in_progress=False,
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    @property
    def total(self) -> int:
        return sum(line.subtotal for line in self.lines or [])

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines or [])

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def line_for(self, product_item_id):
        return next(
            (line for line in self.lines or [] if str(line.product_item_id) == str(product_item_id)),
            None,
        )

    # -------------------------------------------------------------------
    # Line management
    # -------------------------------------------------------------------
    def add_line(self, unit, quantity: int):
        """Record ``quantity`` reserved units of ``unit``, merging into an existing line."""
        existing = self.line_for(unit.id)
        if existing:
            existing.quantity += quantity
            line_quantity = existing.quantity
        else:
            self.add_lines(
                CartLine(
                    product_item_id=str(unit.id),
                    name=unit.name,
                    unit_price=unit.unit_price,
                    quantity=quantity,
                    vendor_id=str(unit.vendor_id),
                    product_date=unit.product_date,
                    start_time=unit.start_time,
                    duration_minutes=unit.duration_minutes,
                )
            )
            line_quantity = quantity

        self.updated_at = utc_now()
        self.raise_(
            CartLineAdded(
                cart_id=str(self.id),
                user_id=str(self.user_id),
                product_item_id=str(unit.id),
                quantity=quantity,
                line_quantity=line_quantity,
            )
        )

    def remove_line(self, product_item_id):
        """Drop a line and return it so the caller can release its units."""
        line = self.line_for(product_item_id)
        if line is None:
            raise NotFoundError(
                f"Item {product_item_id} is not in the cart",
                cart_id=str(self.id),
                product_item_id=str(product_item_id),
            )

        self.remove_lines(line)
        self.updated_at = utc_now()
        self.raise_(
            CartLineRemoved(
                cart_id=str(self.id),
                user_id=str(self.user_id),
                product_item_id=str(product_item_id),
                quantity=line.quantity,
            )
        )
        return line

    def clear(self):
        """Drop every line. Returns ``(product_item_id, quantity)`` pairs to release."""
        released = [(str(line.product_item_id), line.quantity) for line in self.lines or []]
        for line in list(self.lines or []):
            self.remove_lines(line)

        self.updated_at = utc_now()
        self.raise_(
            CartCleared(
                cart_id=str(self.id),
                user_id=str(self.user_id),
                released_units=sum(quantity for _, quantity in released),
            )
        )
        return released

    # -------------------------------------------------------------------
    # Checkout flag
    # -------------------------------------------------------------------
    def set_checkout_status(self, in_progress: bool):
        """Toggle the checkout flag. Either way the idle timer restarts."""
        self.checkout_in_progress = in_progress
        self.updated_at = utc_now()
        self.raise_(
            CartCheckoutStatusChanged(
                cart_id=str(self.id),
                user_id=str(self.user_id),
                checkout_in_progress=in_progress,
            )
        )

    def summary(self) -> dict:
        return {
            "cart_id": str(self.id),
            "user_id": str(self.user_id),
            "checkout_in_progress": bool(self.checkout_in_progress),
            "total": self.total,
            "item_count": self.item_count,
            "lines": [
                {
                    "product_item_id": str(line.product_item_id),
                    "name": line.name,
                    "unit_price": line.unit_price,
                    "quantity": line.quantity,
                    "vendor_id": str(line.vendor_id),
                    "product_date": line.product_date.isoformat() if line.product_date else None,
                    "start_time": line.start_time,
                    "duration_minutes": line.duration_minutes,
                }
                for line in self.lines or []
            ],
        }
