"""
API router for the storefront core.

Thin HTTP adapters over the cart, order and payment services. Handlers
only parse input, call one service and map ShopException subclasses to
status codes (see utils.error_handler).

Authentication is owned by the hosting app: it overrides get_principal
with its own dependency. Until it does, every route answers 401.
"""

import logging
import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from db import get_db_session
from enums.membership_tier import MembershipTier
from enums.order_filter import OrderFilterType
from enums.order_payment_status import OrderPaymentStatus
from enums.order_status import OrderStatus
from enums.payment_method import PaymentMethod
from enums.payment_status import PaymentStatus
from enums.product_type import ProductType
from exceptions.base import ShopException
from models.address import AddressDTO
from models.user import PrincipalDTO
from services.address import AddressService
from services.cart import CartService
from services.order import OrderService
from services.order_management import OrderManagementService
from services.payment import PaymentService
from services.user import UserService
from utils.error_handler import handle_service_error, handle_unexpected_error

logger = logging.getLogger(__name__)

api_router = APIRouter(prefix="/api", tags=["api"])


def generate_correlation_id() -> str:
    """Generate unique correlation ID for request tracing."""
    return f"{datetime.now().strftime('%Y%m%d-%H%M%S')}-{uuid.uuid4().hex[:8]}"


async def get_session():
    async with get_db_session() as session:
        yield session


async def get_principal() -> PrincipalDTO:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication is not configured")


async def require_admin(principal: PrincipalDTO = Depends(get_principal)) -> PrincipalDTO:
    if not principal.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return principal


async def run_service(awaitable, route: str):
    """Await a service call, translating service errors into HTTPException."""
    correlation_id = generate_correlation_id()
    try:
        return await awaitable
    except ShopException as e:
        status_code, body = handle_service_error(e)
        logger.info(f"[{correlation_id}] {route} -> {status_code} {body['error']}")
        raise HTTPException(status_code=status_code, detail=body)
    except Exception as e:
        status_code, body = handle_unexpected_error(e)
        logger.error(f"[{correlation_id}] {route} failed unexpectedly")
        raise HTTPException(status_code=status_code, detail={**body, "correlation_id": correlation_id})


# ============================================================================
# Payloads
# ============================================================================

class AddToCartPayload(BaseModel):
    product_type: ProductType
    product_id: int = Field(..., gt=0)
    quantity: int = Field(1, ge=1)


class UpdateCartItemPayload(BaseModel):
    quantity: int = Field(..., ge=1)


class CreateOrderPayload(BaseModel):
    shipping_address_id: int = Field(..., gt=0)
    payment_method: PaymentMethod
    notes: str | None = Field(None, max_length=1000)


class ProcessPaymentPayload(BaseModel):
    order_id: int = Field(..., gt=0)
    payment_method: PaymentMethod
    payment_data: dict = Field(default_factory=dict)


class RefundPayload(BaseModel):
    amount: float | None = Field(None, gt=0)
    reason: str | None = Field(None, max_length=500)


class UpdateOrderStatusPayload(BaseModel):
    status: OrderStatus
    tracking_number: str | None = Field(None, max_length=100)


class UpdateMembershipPayload(BaseModel):
    membership_tier: MembershipTier
    membership_points: int | None = Field(None, ge=0)


class AddressPayload(BaseModel):
    label: str | None = None
    full_name: str | None = None
    phone: str | None = None
    country: str
    city: str
    street: str
    postal_code: str | None = None
    is_default: bool = False


# ============================================================================
# Cart
# ============================================================================

@api_router.get("/cart")
async def get_cart(principal: PrincipalDTO = Depends(get_principal), session: AsyncSession = Depends(get_session)):
    return await run_service(CartService.get_cart(principal, session), "GET /cart")


@api_router.post("/cart/items", status_code=status.HTTP_201_CREATED)
async def add_to_cart(payload: AddToCartPayload, principal: PrincipalDTO = Depends(get_principal),
                      session: AsyncSession = Depends(get_session)):
    quantity = await run_service(
        CartService.add_or_increment(principal.id, payload.product_type, payload.product_id, payload.quantity,
                                     session),
        "POST /cart/items"
    )
    return {"product_type": payload.product_type, "product_id": payload.product_id, "quantity": quantity}


@api_router.put("/cart/items/{cart_item_id}")
async def update_cart_item(cart_item_id: int, payload: UpdateCartItemPayload,
                           principal: PrincipalDTO = Depends(get_principal),
                           session: AsyncSession = Depends(get_session)):
    quantity = await run_service(
        CartService.update_quantity(principal.id, cart_item_id, payload.quantity, session),
        "PUT /cart/items"
    )
    return {"cart_item_id": cart_item_id, "quantity": quantity}


@api_router.delete("/cart/items/{cart_item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_cart_item(cart_item_id: int, principal: PrincipalDTO = Depends(get_principal),
                           session: AsyncSession = Depends(get_session)):
    await run_service(CartService.remove_item(principal.id, cart_item_id, session), "DELETE /cart/items")


@api_router.delete("/cart", status_code=status.HTTP_204_NO_CONTENT)
async def clear_cart(principal: PrincipalDTO = Depends(get_principal), session: AsyncSession = Depends(get_session)):
    await run_service(CartService.clear(principal.id, session), "DELETE /cart")


@api_router.get("/cart/checkout")
async def checkout_summary(principal: PrincipalDTO = Depends(get_principal),
                           session: AsyncSession = Depends(get_session)):
    return await run_service(CartService.checkout_summary(principal, session), "GET /cart/checkout")


# ============================================================================
# Orders
# ============================================================================

@api_router.post("/orders", status_code=status.HTTP_201_CREATED)
async def create_order(payload: CreateOrderPayload, principal: PrincipalDTO = Depends(get_principal),
                       session: AsyncSession = Depends(get_session)):
    order, payment = await run_service(
        OrderService.create_order(principal, payload.shipping_address_id, payload.payment_method, payload.notes,
                                  session),
        "POST /orders"
    )
    return {"order": order, "payment": payment}


@api_router.get("/orders")
async def list_orders(order_status: OrderStatus | None = Query(None, alias="status"),
                      page: int = Query(1, ge=1), limit: int | None = Query(None, ge=1, le=100),
                      principal: PrincipalDTO = Depends(get_principal),
                      session: AsyncSession = Depends(get_session)):
    return await run_service(
        OrderService.list_orders(principal.id, session, status=order_status, page=page, limit=limit),
        "GET /orders"
    )


@api_router.get("/orders/{order_id}")
async def get_order(order_id: int, principal: PrincipalDTO = Depends(get_principal),
                    session: AsyncSession = Depends(get_session)):
    return await run_service(OrderService.get_order(order_id, principal.id, session), "GET /orders/{id}")


@api_router.get("/orders/{order_id}/track")
async def track_order(order_id: int, principal: PrincipalDTO = Depends(get_principal),
                      session: AsyncSession = Depends(get_session)):
    return await run_service(OrderService.track_order(order_id, principal.id, session), "GET /orders/{id}/track")


@api_router.post("/orders/{order_id}/cancel")
async def cancel_order(order_id: int, principal: PrincipalDTO = Depends(get_principal),
                       session: AsyncSession = Depends(get_session)):
    return await run_service(OrderService.cancel_order(order_id, principal.id, session), "POST /orders/{id}/cancel")


# ============================================================================
# Payments
# ============================================================================

@api_router.get("/payments/methods")
async def payment_methods():
    return PaymentService.get_payment_methods()


@api_router.post("/payments/process")
async def process_payment(payload: ProcessPaymentPayload, principal: PrincipalDTO = Depends(get_principal),
                          session: AsyncSession = Depends(get_session)):
    payment, order = await run_service(
        PaymentService.process_payment(payload.order_id, principal, payload.payment_method, payload.payment_data,
                                       session),
        "POST /payments/process"
    )
    return {"payment": payment, "order": order}


@api_router.get("/payments/history")
async def payment_history(payment_status: PaymentStatus | None = Query(None, alias="status"),
                          page: int = Query(1, ge=1), limit: int | None = Query(None, ge=1, le=100),
                          principal: PrincipalDTO = Depends(get_principal),
                          session: AsyncSession = Depends(get_session)):
    return await run_service(
        PaymentService.list_payments(principal.id, session, status=payment_status, page=page, limit=limit),
        "GET /payments/history"
    )


# ============================================================================
# Addresses
# ============================================================================

@api_router.get("/addresses")
async def list_addresses(principal: PrincipalDTO = Depends(get_principal),
                         session: AsyncSession = Depends(get_session)):
    return await run_service(AddressService.list_addresses(principal.id, session), "GET /addresses")


@api_router.post("/addresses", status_code=status.HTTP_201_CREATED)
async def add_address(payload: AddressPayload, principal: PrincipalDTO = Depends(get_principal),
                      session: AsyncSession = Depends(get_session)):
    return await run_service(
        AddressService.add_address(principal.id, AddressDTO(**payload.model_dump()), session), "POST /addresses"
    )


@api_router.put("/addresses/{address_id}")
async def update_address(address_id: int, payload: AddressPayload, principal: PrincipalDTO = Depends(get_principal),
                         session: AsyncSession = Depends(get_session)):
    return await run_service(
        AddressService.update_address(principal.id, address_id, AddressDTO(**payload.model_dump()), session),
        "PUT /addresses/{id}"
    )


@api_router.delete("/addresses/{address_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_address(address_id: int, principal: PrincipalDTO = Depends(get_principal),
                         session: AsyncSession = Depends(get_session)):
    await run_service(AddressService.delete_address(principal.id, address_id, session), "DELETE /addresses/{id}")


# ============================================================================
# Admin
# ============================================================================

@api_router.get("/admin/orders")
async def admin_list_orders(filter_type: OrderFilterType = Query(OrderFilterType.ALL),
                            payment_status: OrderPaymentStatus | None = Query(None),
                            user_id: int | None = Query(None), page: int = Query(1, ge=1),
                            limit: int | None = Query(None, ge=1, le=100),
                            admin: PrincipalDTO = Depends(require_admin),
                            session: AsyncSession = Depends(get_session)):
    return await run_service(
        OrderManagementService.list_orders(session, filter_type=filter_type, payment_status=payment_status,
                                           user_id=user_id, page=page, limit=limit),
        "GET /admin/orders"
    )


@api_router.put("/admin/orders/{order_id}/status")
async def admin_update_order_status(order_id: int, payload: UpdateOrderStatusPayload,
                                    admin: PrincipalDTO = Depends(require_admin),
                                    session: AsyncSession = Depends(get_session)):
    return await run_service(
        OrderManagementService.update_status(order_id, payload.status, admin.id, session,
                                             tracking_number=payload.tracking_number),
        "PUT /admin/orders/{id}/status"
    )


@api_router.post("/admin/payments/{payment_id}/confirm")
async def admin_confirm_payment(payment_id: int, admin: PrincipalDTO = Depends(require_admin),
                                session: AsyncSession = Depends(get_session)):
    payment, order = await run_service(
        PaymentService.confirm_payment(payment_id, admin.id, session), "POST /admin/payments/{id}/confirm"
    )
    return {"payment": payment, "order": order}


@api_router.post("/admin/payments/{payment_id}/refund")
async def admin_refund_payment(payment_id: int, payload: RefundPayload, admin: PrincipalDTO = Depends(require_admin),
                               session: AsyncSession = Depends(get_session)):
    payment, outcome = await run_service(
        PaymentService.refund_payment(payment_id, session, amount=payload.amount, reason=payload.reason),
        "POST /admin/payments/{id}/refund"
    )
    return {"payment": payment, "outcome": outcome}


@api_router.put("/admin/users/{user_id}/membership")
async def admin_update_membership(user_id: int, payload: UpdateMembershipPayload,
                                  admin: PrincipalDTO = Depends(require_admin),
                                  session: AsyncSession = Depends(get_session)):
    return await run_service(
        UserService.update_membership(user_id, payload.membership_tier, session, points=payload.membership_points),
        "PUT /admin/users/{id}/membership"
    )
