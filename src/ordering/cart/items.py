"""Cart item management: commands and handler.

Carts are addressed by buyer; the first write for a buyer creates the cart.
"""

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from ordering.cart.cart import ShoppingCart
from ordering.domain import ordering


def find_cart(buyer_id) -> ShoppingCart | None:
    """Return the buyer's cart, or None if they never had one."""
    carts = (
        current_domain.repository_for(ShoppingCart)._dao.query.filter(buyer_id=str(buyer_id)).limit(1).all().items
    )
    return carts[0] if carts else None


@ordering.command(part_of="ShoppingCart")
class AddToCart:
    buyer_id = Identifier(required=True)
    product_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    size = String(max_length=20)
    quantity = Integer(required=True, min_value=1, max_value=99)
    price = Float(min_value=0.0)


@ordering.command(part_of="ShoppingCart")
class UpdateCartQuantity:
    buyer_id = Identifier(required=True)
    item_id = Identifier(required=True)
    new_quantity = Integer(required=True, min_value=1, max_value=99)


@ordering.command(part_of="ShoppingCart")
class RemoveFromCart:
    buyer_id = Identifier(required=True)
    item_id = Identifier(required=True)


@ordering.command(part_of="ShoppingCart")
class CheckOutCart:
    """Empty the buyer's cart once an order has been placed from it."""

    buyer_id = Identifier(required=True)


@ordering.command_handler(part_of=ShoppingCart)
class ManageCartItemsHandler:
    @handle(AddToCart)
    def add_to_cart(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = find_cart(command.buyer_id) or ShoppingCart.create(buyer_id=command.buyer_id)
        cart.add_item(
            product_id=command.product_id,
            name=command.name,
            size=command.size,
            quantity=command.quantity,
            price=command.price,
        )
        repo.add(cart)
        return str(cart.id)

    @handle(UpdateCartQuantity)
    def update_cart_quantity(self, command):
        cart = self._existing_cart(command.buyer_id)
        cart.update_item_quantity(item_id=command.item_id, new_quantity=command.new_quantity)
        current_domain.repository_for(ShoppingCart).add(cart)

    @handle(RemoveFromCart)
    def remove_from_cart(self, command):
        cart = self._existing_cart(command.buyer_id)
        cart.remove_item(item_id=command.item_id)
        current_domain.repository_for(ShoppingCart).add(cart)

    @handle(CheckOutCart)
    def check_out_cart(self, command):
        cart = find_cart(command.buyer_id)
        if cart is None:
            return False
        recovered = cart.check_out()
        current_domain.repository_for(ShoppingCart).add(cart)
        return recovered

    @staticmethod
    def _existing_cart(buyer_id):
        cart = find_cart(buyer_id)
        if cart is None:
            raise ObjectNotFoundError(f"No cart for buyer {buyer_id}")
        return cart
