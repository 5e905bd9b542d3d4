"""Domain events for the ShoppingCart aggregate."""

from protean.fields import Boolean, DateTime, Identifier, Integer

from ordering.domain import ordering


@ordering.event(part_of="ShoppingCart")
class CartItemAdded:
    """A product was added to the shopping cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True)


@ordering.event(part_of="ShoppingCart")
class CartQuantityUpdated:
    """The quantity of a cart item was changed."""

    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@ordering.event(part_of="ShoppingCart")
class CartItemRemoved:
    """An item was removed from the shopping cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)


@ordering.event(part_of="ShoppingCart")
class CartCheckedOut:
    """The buyer placed an order and the cart was emptied."""

    __version__ = 1

    cart_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    recovered = Boolean(default=False)
    checked_out_at = DateTime(required=True)


@ordering.event(part_of="ShoppingCart")
class CartAbandoned:
    """A cart sat idle with items past the abandonment threshold."""

    __version__ = 1

    cart_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    item_count = Integer(required=True)
    abandoned_at = DateTime(required=True)
