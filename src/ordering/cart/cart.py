"""Shopping Cart aggregate (CQRS): the buyer's working cart.

One cart per buyer. Placing an order empties it; a cart that had been
flagged abandoned is marked recovered at that point so recovery campaigns
can be measured.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String

from ordering.cart.events import (
    CartAbandoned,
    CartCheckedOut,
    CartItemAdded,
    CartItemRemoved,
    CartQuantityUpdated,
)
from ordering.domain import ordering


class CartStatus(Enum):
    ACTIVE = "Active"
    ABANDONED = "Abandoned"
    RECOVERED = "Recovered"


@ordering.entity(part_of="ShoppingCart")
class CartItem:
    product_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    size = String(max_length=20)
    quantity = Integer(required=True, min_value=1, max_value=99)
    price = Float(min_value=0.0)
    added_at = DateTime()


@ordering.aggregate
class ShoppingCart:
    buyer_id = Identifier(required=True)
    items = HasMany(CartItem)
    status = String(choices=CartStatus, default=CartStatus.ACTIVE.value)
    created_at = DateTime()
    updated_at = DateTime()
    abandoned_at = DateTime()
    recovered_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, buyer_id):
        now = datetime.now(UTC)
        return cls(
            buyer_id=buyer_id,
            status=CartStatus.ACTIVE.value,
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def _touch(self):
        now = datetime.now(UTC)
        # Any activity on an abandoned or recovered cart starts a new session
        if CartStatus(self.status) != CartStatus.ACTIVE:
            self.status = CartStatus.ACTIVE.value
            self.abandoned_at = None
        self.updated_at = now
        return now

    def add_item(self, product_id, name, quantity, price=None, size=None):
        """Add an item to the cart (or increase quantity if already present)."""
        existing = next(
            (
                i
                for i in self.items
                if str(i.product_id) == str(product_id) and (i.size or None) == (size or None)
            ),
            None,
        )

        now = self._touch()

        if existing:
            if existing.quantity + quantity > 99:
                raise ValidationError({"quantity": ["Maximum 99 units per item"]})
            existing.quantity += quantity
            item_id = str(existing.id)
        else:
            item = CartItem(
                product_id=product_id,
                name=name,
                size=size,
                quantity=quantity,
                price=price,
                added_at=now,
            )
            self.add_items(item)
            item_id = str(item.id)

        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                item_id=item_id,
                product_id=str(product_id),
                quantity=quantity,
            )
        )

    def update_item_quantity(self, item_id, new_quantity):
        item = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise ValidationError({"item_id": ["Item not found in cart"]})

        previous_quantity = item.quantity
        item.quantity = new_quantity
        self._touch()

        self.raise_(
            CartQuantityUpdated(
                cart_id=str(self.id),
                item_id=str(item_id),
                previous_quantity=previous_quantity,
                new_quantity=new_quantity,
            )
        )

    def remove_item(self, item_id):
        item = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise ValidationError({"item_id": ["Item not found in cart"]})

        self.remove_items(item)
        self._touch()

        self.raise_(CartItemRemoved(cart_id=str(self.id), item_id=str(item_id)))

    # -------------------------------------------------------------------
    # Cart lifecycle
    # -------------------------------------------------------------------
    def check_out(self):
        """Empty the cart after an order was placed from it."""
        recovered = CartStatus(self.status) == CartStatus.ABANDONED
        now = datetime.now(UTC)

        for item in list(self.items):
            self.remove_items(item)

        if recovered:
            self.status = CartStatus.RECOVERED.value
            self.recovered_at = now
        self.updated_at = now

        self.raise_(
            CartCheckedOut(
                cart_id=str(self.id),
                buyer_id=str(self.buyer_id),
                recovered=recovered,
                checked_out_at=now,
            )
        )
        return recovered

    def abandon(self):
        if CartStatus(self.status) != CartStatus.ACTIVE:
            raise ValidationError({"status": ["Only active carts can be abandoned"]})
        if not self.items:
            raise ValidationError({"cart": ["Empty carts are not abandoned"]})

        now = datetime.now(UTC)
        self.status = CartStatus.ABANDONED.value
        self.abandoned_at = now
        self.updated_at = now

        self.raise_(
            CartAbandoned(
                cart_id=str(self.id),
                buyer_id=str(self.buyer_id),
                item_count=len(self.items),
                abandoned_at=now,
            )
        )
