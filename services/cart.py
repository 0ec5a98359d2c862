import logging

from sqlalchemy.ext.asyncio import AsyncSession

from db import session_commit
from enums.product_type import ProductType
from exceptions.base import ValidationException
from exceptions.cart import CartItemNotFoundException, EmptyCartException
from exceptions.order import InsufficientStockException
from exceptions.product import ProductNotFoundException
from models.cart import CartDTO, CartLineDTO, CartSummaryDTO, CheckoutSummaryDTO
from models.cartItem import CartItemDTO
from models.product import ProductDTO, ProductRef
from models.user import PrincipalDTO
from repositories.cartItem import CartItemRepository
from repositories.product import ProductRepository
from services.inventory import InventoryService
from services.pricing import PricingService


def _to_line(cart_item: CartItemDTO, product: ProductDTO) -> CartLineDTO:
    return CartLineDTO(
        cart_item_id=cart_item.id,
        product_type=cart_item.product_type,
        product_id=cart_item.product_id,
        name=product.name,
        unit_price=product.unit_price,
        quantity=cart_item.quantity,
        available_quantity=product.quantity,
        weight=product.weight,
        images=product.images,
        line_total=round(product.unit_price * cart_item.quantity, 2),
        available=product.is_active and cart_item.quantity <= product.quantity,
    )


def _validate_quantity(quantity: int) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationException("quantity", f"must be a positive integer, got {quantity!r}")


class CartService:

    @staticmethod
    async def _load_lines(user_id: int, session: AsyncSession) -> list[CartLineDTO]:
        cart_items = await CartItemRepository.get_by_user(user_id, session)
        products = await ProductRepository.get_many(
            [ProductRef(item.product_type, item.product_id) for item in cart_items], session
        )
        lines = []
        for cart_item in cart_items:
            product = products.get(ProductRef(cart_item.product_type, cart_item.product_id))
            if product is None:
                logging.warning(f"⚠️ Cart item {cart_item.id} points to missing product "
                                f"{cart_item.product_type.value}:{cart_item.product_id}")
                continue
            lines.append(_to_line(cart_item, product))
        return lines

    @staticmethod
    async def get_cart(user: PrincipalDTO, session: AsyncSession) -> CartDTO:
        """
        Cart lines joined to the live catalog plus a tier-discounted summary.

        The discount is display only; orders are charged the undiscounted subtotal.
        """
        lines = await CartService._load_lines(user.id, session)
        subtotal = round(sum(line.line_total for line in lines), 2)
        summary = CartSummaryDTO(
            subtotal=subtotal,
            item_count=len(lines),
            total_quantity=sum(line.quantity for line in lines),
            has_unavailable_items=not all(line.available for line in lines),
            **PricingService.summarize(subtotal, user.membership_tier),
        )
        return CartDTO(user_id=user.id, items=lines, summary=summary)

    @staticmethod
    async def add_or_increment(user_id: int, product_type: ProductType | str, product_id: int, quantity: int,
                               session: AsyncSession) -> int:
        """
        Add a product to the cart, merging with an existing line.

        Args:
            user_id: Cart owner
            product_type: part or merch
            product_id: Product ID within its table
            quantity: Quantity to add (>= 1)
            session: Database session

        Returns:
            The line's new quantity

        Raises:
            ValidationException: Unknown product type or quantity < 1
            ProductNotFoundException: Product missing or inactive
            InsufficientStockException: Combined quantity exceeds stock (carries available)
        """
        _validate_quantity(quantity)
        try:
            product_type = ProductType(product_type)
        except ValueError:
            raise ValidationException("product_type", f"unknown product type {product_type!r}")

        product = await ProductRepository.get(ProductRef(product_type, product_id), session)
        if product is None or not product.is_active:
            raise ProductNotFoundException(product_type.value, product_id)

        existing = await CartItemRepository.get_by_product(user_id, product_type, product_id, session)
        new_quantity = quantity + (existing.quantity if existing else 0)
        if new_quantity > product.quantity:
            raise InsufficientStockException(product.name, new_quantity, product.quantity)

        if existing:
            await CartItemRepository.update_quantity(existing.id, new_quantity, session)
        else:
            await CartItemRepository.create(
                CartItemDTO(user_id=user_id, product_type=product_type, product_id=product_id, quantity=quantity),
                session
            )
        await session_commit(session)
        logging.info(f"🛒 User {user_id} cart: {product_type.value}:{product_id} x{new_quantity}")
        return new_quantity

    @staticmethod
    async def update_quantity(user_id: int, cart_item_id: int, quantity: int, session: AsyncSession) -> int:
        _validate_quantity(quantity)
        cart_item = await CartItemRepository.get_by_id(cart_item_id, user_id, session)
        if cart_item is None:
            raise CartItemNotFoundException(cart_item_id)

        product = await ProductRepository.get(ProductRef(cart_item.product_type, cart_item.product_id), session)
        if product is None or not product.is_active:
            raise ProductNotFoundException(cart_item.product_type.value, cart_item.product_id)
        if quantity > product.quantity:
            raise InsufficientStockException(product.name, quantity, product.quantity)

        await CartItemRepository.update_quantity(cart_item_id, quantity, session)
        await session_commit(session)
        return quantity

    @staticmethod
    async def remove_item(user_id: int, cart_item_id: int, session: AsyncSession) -> None:
        cart_item = await CartItemRepository.get_by_id(cart_item_id, user_id, session)
        if cart_item is None:
            raise CartItemNotFoundException(cart_item_id)
        await CartItemRepository.remove_from_cart(cart_item_id, session)
        await session_commit(session)
        logging.info(f"🗑️ User {user_id} removed cart item {cart_item_id}")

    @staticmethod
    async def clear(user_id: int, session: AsyncSession) -> int:
        removed = await CartItemRepository.clear(user_id, session)
        await session_commit(session)
        return removed

    @staticmethod
    async def load_checkout_lines(user_id: int, session: AsyncSession,
                                  for_update: bool = False) -> list[CartLineDTO]:
        """
        Cart lines re-validated against live stock.

        Shared by checkout_summary and OrderService.create_order so both
        apply the same rules.

        Raises:
            EmptyCartException: No cart lines
            ProductNotFoundException: A line's product is gone or inactive
            InsufficientStockException: First line exceeding stock
        """
        cart_items = await CartItemRepository.get_by_user(user_id, session)
        if not cart_items:
            raise EmptyCartException(user_id)

        products = await InventoryService.check_availability(
            [(ProductRef(item.product_type, item.product_id), item.quantity) for item in cart_items],
            session,
            for_update=for_update,
        )
        return [_to_line(item, products[ProductRef(item.product_type, item.product_id)]) for item in cart_items]

    @staticmethod
    async def checkout_summary(user: PrincipalDTO, session: AsyncSession) -> CheckoutSummaryDTO:
        lines = await CartService.load_checkout_lines(user.id, session)
        subtotal = round(sum(line.line_total for line in lines), 2)
        return CheckoutSummaryDTO(
            user_id=user.id,
            items=lines,
            subtotal=subtotal,
            total_weight=round(sum(line.weight * line.quantity for line in lines), 3),
            item_count=len(lines),
            total_quantity=sum(line.quantity for line in lines),
            points_earned=PricingService.points_earned(subtotal, user.membership_tier),
            **PricingService.summarize(subtotal, user.membership_tier),
        )
