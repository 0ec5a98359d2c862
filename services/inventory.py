import logging

from sqlalchemy.ext.asyncio import AsyncSession

from enums.product_type import ProductType
from exceptions.order import InsufficientStockException
from exceptions.product import ProductNotFoundException
from models.product import ProductDTO, ProductRef
from repositories.product import ProductRepository


def _merge_quantities(items: list[tuple[ProductRef, int]]) -> dict[ProductRef, int]:
    merged: dict[ProductRef, int] = {}
    for ref, quantity in items:
        ref = ProductRef(ProductType(ref[0]), ref[1])
        merged[ref] = merged.get(ref, 0) + quantity
    return merged


class InventoryService:
    """
    Stock reservation for order placement and release on cancellation.

    Both operations write inside the caller's transaction and never commit;
    the Order Orchestrator owns commit/rollback.
    """

    @staticmethod
    async def check_availability(items: list[tuple[ProductRef, int]], session: AsyncSession,
                                 for_update: bool = False) -> dict[ProductRef, ProductDTO]:
        """
        Verify every line against live stock.

        Args:
            items: (ProductRef, quantity) pairs
            session: Database session
            for_update: Lock the product rows until the transaction ends

        Returns:
            Loaded products keyed by ref

        Raises:
            ProductNotFoundException: A ref does not resolve to an active product
            InsufficientStockException: First line whose quantity exceeds stock
        """
        requested = _merge_quantities(items)
        products = await ProductRepository.get_many(list(requested), session, for_update=for_update)
        for ref, quantity in requested.items():
            product = products.get(ref)
            if product is None or not product.is_active:
                raise ProductNotFoundException(ref.product_type.value, ref.product_id)
            if product.quantity < quantity:
                raise InsufficientStockException(product.name, quantity, product.quantity)
        return products

    @staticmethod
    async def reserve(items: list[tuple[ProductRef, int]], session: AsyncSession) -> dict[ProductRef, ProductDTO]:
        """
        Decrement stock for every line, all or nothing.

        Rows are locked in a stable (type, id) order, every line is checked
        before the first write, and each decrement is guarded by
        quantity >= requested so a concurrent writer can't drive stock negative.
        On any shortfall the exception propagates and the caller's
        transaction rolls back the decrements already issued.

        Raises:
            ProductNotFoundException, InsufficientStockException
        """
        products = await InventoryService.check_availability(items, session, for_update=True)
        requested = _merge_quantities(items)
        for ref in sorted(requested, key=lambda r: (r.product_type.value, r.product_id)):
            quantity = requested[ref]
            if not await ProductRepository.decrement_stock(ref, quantity, session):
                current = await ProductRepository.get(ref, session)
                available = current.quantity if current is not None else 0
                logging.warning(f"⚠️ Stock for {ref.product_type.value}:{ref.product_id} changed during reservation "
                                f"(requested {quantity}, available {available})")
                raise InsufficientStockException(products[ref].name, quantity, available)
        logging.info(f"📦 Reserved stock for {len(requested)} product(s)")
        return products

    @staticmethod
    async def release(items: list[tuple[ProductRef, int]], session: AsyncSession) -> None:
        """
        Return stock for every line.

        Not idempotent: call exactly once per transition into cancelled.
        """
        requested = _merge_quantities(items)
        for ref in sorted(requested, key=lambda r: (r.product_type.value, r.product_id)):
            await ProductRepository.increment_stock(ref, requested[ref], session)
        logging.info(f"♻️ Released stock for {len(requested)} product(s)")
