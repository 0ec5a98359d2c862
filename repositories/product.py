import json
import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db import session_execute
from enums.product_type import ProductType
from models.brand import Brand
from models.merchandise import Merchandise
from models.part import Part
from models.product import ProductDTO, ProductRef

logger = logging.getLogger(__name__)

# product_type -> table holding the stock row
PRODUCT_MODELS = {
    ProductType.PART: Part,
    ProductType.MERCH: Merchandise,
}


def _parse_images(raw: str | None) -> list[str]:
    if not raw:
        return []
    try:
        images = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Malformed images column: {raw[:50]}")
        return []
    return [str(image) for image in images] if isinstance(images, list) else []


def _part_to_dto(part: Part, brand_name: str | None) -> ProductDTO:
    return ProductDTO(
        product_type=ProductType.PART,
        product_id=part.id,
        name=part.name,
        unit_price=part.selling_price,
        quantity=part.quantity,
        weight=part.weight or 0.0,
        images=_parse_images(part.images),
        brand_name=brand_name,
        is_active=part.is_active,
    )


def _merch_to_dto(merch: Merchandise) -> ProductDTO:
    return ProductDTO(
        product_type=ProductType.MERCH,
        product_id=merch.id,
        name=merch.name,
        unit_price=merch.price,
        quantity=merch.quantity,
        weight=merch.weight or 0.0,
        images=_parse_images(merch.images),
        is_active=merch.is_active,
    )


class ProductRepository:
    """
    Resolves ProductRef values against the parts and merchandise tables.

    Callers never branch on product_type themselves; every read comes back
    as a ProductDTO and every stock write goes through the same guarded update.
    """

    @staticmethod
    async def get(ref: ProductRef, session: AsyncSession, for_update: bool = False) -> ProductDTO | None:
        products = await ProductRepository.get_many([ref], session, for_update=for_update)
        return products.get(ProductRef(ProductType(ref[0]), ref[1]))

    @staticmethod
    async def get_many(refs: list[ProductRef], session: AsyncSession,
                       for_update: bool = False) -> dict[ProductRef, ProductDTO]:
        """
        Batch load products, one query per product table.

        Args:
            refs: Product references (duplicates allowed)
            session: Database session
            for_update: Lock the rows (SELECT ... FOR UPDATE) in id order

        Returns:
            Dict mapping ProductRef -> ProductDTO (missing products are absent)
        """
        part_ids = sorted({ref[1] for ref in refs if ref[0] == ProductType.PART})
        merch_ids = sorted({ref[1] for ref in refs if ref[0] == ProductType.MERCH})
        products: dict[ProductRef, ProductDTO] = {}

        if part_ids:
            stmt = (select(Part, Brand.name)
                    .outerjoin(Brand, Part.brand_id == Brand.id)
                    .where(Part.id.in_(part_ids))
                    .order_by(Part.id)
                    .execution_options(populate_existing=True))
            if for_update:
                stmt = stmt.with_for_update(of=Part)
            result = await session_execute(stmt, session)
            for part, brand_name in result.all():
                dto = _part_to_dto(part, brand_name)
                products[dto.ref] = dto

        if merch_ids:
            stmt = (select(Merchandise).where(Merchandise.id.in_(merch_ids)).order_by(Merchandise.id)
                    .execution_options(populate_existing=True))
            if for_update:
                stmt = stmt.with_for_update()
            result = await session_execute(stmt, session)
            for merch in result.scalars().all():
                dto = _merch_to_dto(merch)
                products[dto.ref] = dto

        return products

    @staticmethod
    async def decrement_stock(ref: ProductRef, quantity: int, session: AsyncSession) -> bool:
        """
        Decrement stock only if enough is left.

        Returns:
            False when the row is missing or quantity < requested (nothing written)
        """
        model = PRODUCT_MODELS[ref[0]]
        stmt = (update(model)
                .where(model.id == ref[1], model.quantity >= quantity)
                .values(quantity=model.quantity - quantity)
                .execution_options(synchronize_session=False))
        result = await session_execute(stmt, session)
        return result.rowcount == 1

    @staticmethod
    async def increment_stock(ref: ProductRef, quantity: int, session: AsyncSession) -> None:
        model = PRODUCT_MODELS[ref[0]]
        stmt = (update(model)
                .where(model.id == ref[1])
                .values(quantity=model.quantity + quantity)
                .execution_options(synchronize_session=False))
        await session_execute(stmt, session)
