"""Cart API routes.

The cart lives server-side, keyed by the cart session token from the
``X-Cart-Session`` header or the cart cookie.
"""

import logging

from fastapi import APIRouter, Depends, status

from src.api.deps import CartSession
from src.api.middleware.error_handler import BusinessRuleError, NotFoundError
from src.core.config import get_settings
from src.models.product import ProductStatus, effective_price
from src.schemas.cart import (
    CartItemAdd,
    CartItemUpdate,
    CartLineResponse,
    CartResponse,
    CartTotalsResponse,
)
from src.services.cart_store import Cart, CartLine, CartStore, get_cart_store
from src.services.pricing import PricingRules, to_money
from src.services.product_service import ProductService, get_product_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cart", tags=["cart"])


def build_cart_response(cart: Cart) -> CartResponse:
    """Render a cart with its derived totals."""
    rules = PricingRules.from_settings()
    totals = cart.totals(rules)
    return CartResponse(
        items=[
            CartLineResponse(
                line_id=line.line_id,
                product_id=line.product_id,
                name=line.name,
                sku=line.sku,
                price=line.price,
                original_price=line.original_price,
                quantity=line.quantity,
                line_total=line.line_total,
                image=line.image,
                category=line.category,
                customizations=line.customizations,
            )
            for line in cart.lines
        ],
        total_items=cart.total_items,
        totals=CartTotalsResponse(
            **totals.as_dict(),
            free_shipping_threshold=rules.free_shipping_threshold,
            currency=get_settings().currency,
        ),
    )


@router.get(
    "",
    response_model=CartResponse,
    summary="Get cart",
    description="Returns the current cart with totals. Mints a cart session when none is supplied.",
)
async def get_cart(
    cart_session: CartSession,
    cart_store: CartStore = Depends(get_cart_store),
) -> CartResponse:
    """Get the cart for the current cart session."""
    return build_cart_response(cart_store.get(cart_session))


@router.post(
    "/items",
    response_model=CartResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add to cart",
    description="Adds a product to the cart. The same product and personalisation merges into one line.",
)
async def add_cart_item(
    data: CartItemAdd,
    cart_session: CartSession,
    cart_store: CartStore = Depends(get_cart_store),
    product_service: ProductService = Depends(get_product_service),
) -> CartResponse:
    """Add a product to the cart at its current catalogue price.

    Raises:
        NotFoundError: If the product does not exist or is not for sale.
        BusinessRuleError: If managed stock cannot cover the cart quantity.
    """
    product = await product_service.get_product(data.product_id)
    if not product or product.get("status") != ProductStatus.ACTIVE.value:
        raise NotFoundError("Product not found")

    customizations = data.customizations.model_dump(exclude_none=True) if data.customizations else {}
    line = CartLine(
        product_id=str(product["id"]),
        name=product["name"],
        price=effective_price(product),
        quantity=data.quantity,
        sku=product.get("sku"),
        original_price=to_money(product["regular_price"]) if product.get("sale_price") is not None else None,
        image=product.get("featured_image"),
        category=product.get("category"),
        customizations=customizations,
    )

    if product.get("manage_stock", True):
        existing = cart_store.get(cart_session).get_line(line.line_id)
        wanted = line.quantity + (existing.quantity if existing else 0)
        if wanted > (product.get("stock") or 0):
            raise BusinessRuleError(
                f"Only {product.get('stock') or 0} of {product['name']} in stock",
                details=[{"loc": ["body", "quantity"], "msg": "Insufficient stock", "type": "insufficient_stock"}],
            )

    cart = cart_store.add_item(cart_session, line)
    logger.debug("Added %s x%d to cart %s", line.product_id, line.quantity, cart_session[:8])
    return build_cart_response(cart)


@router.patch(
    "/items/{line_id}",
    response_model=CartResponse,
    summary="Update cart line quantity",
    description="Sets a line's quantity. Zero removes the line.",
)
async def update_cart_item(
    line_id: str,
    data: CartItemUpdate,
    cart_session: CartSession,
    cart_store: CartStore = Depends(get_cart_store),
) -> CartResponse:
    """Change a cart line's quantity.

    Raises:
        NotFoundError: If the line is not in the cart.
    """
    try:
        cart = cart_store.update_quantity(cart_session, line_id, data.quantity)
    except KeyError as e:
        raise NotFoundError("Cart item not found") from e
    return build_cart_response(cart)


@router.delete(
    "/items/{line_id}",
    response_model=CartResponse,
    summary="Remove cart line",
)
async def remove_cart_item(
    line_id: str,
    cart_session: CartSession,
    cart_store: CartStore = Depends(get_cart_store),
) -> CartResponse:
    """Remove a line from the cart.

    Raises:
        NotFoundError: If the line is not in the cart.
    """
    try:
        cart = cart_store.remove_item(cart_session, line_id)
    except KeyError as e:
        raise NotFoundError("Cart item not found") from e
    return build_cart_response(cart)


@router.delete(
    "",
    response_model=CartResponse,
    summary="Clear cart",
)
async def clear_cart(
    cart_session: CartSession,
    cart_store: CartStore = Depends(get_cart_store),
) -> CartResponse:
    """Empty the cart."""
    cart_store.clear(cart_session)
    return build_cart_response(cart_store.get(cart_session))
