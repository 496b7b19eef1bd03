"""
Nursing home weekly order lifecycle

    draft ──submit──> submitted
      │                   │
      └──cancel──> cancelled <──cancel (privileged)

Nothing leaves cancelled and nothing re-enters draft. Status changes are
written with a conditional UPDATE on the status the guards were checked
against, so two concurrent submits cannot both succeed.
"""

import logging
import secrets
import time
from datetime import date, datetime
from typing import Callable, Iterable, List, Optional, Tuple, Union
from zoneinfo import ZoneInfo

from pydantic import ValidationError
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from orderledger.auth.auth_handler import Actor, Capability
from orderledger.config import ORDER_TIMEZONE, ORDER_NUMBER_PREFIX, LEDGER_MAX_RETRIES
from orderledger.models.nursing_home import NursingHomeFacility, NursingHomeOrder, OrderStatus
from orderledger.schemas.nursing_home_order import ResidentMeals, DeliveryAddress, OrderUpdate
from orderledger.services.notification_dispatcher import NotificationDispatcher
from orderledger.services.order_pricing import calculate_deadline, calculate_order_totals
from orderledger.utils.error_handler import (
    AccessDeniedError,
    AlreadySubmittedError,
    ConcurrentUpdateError,
    DeadlinePassedError,
    EditWindowClosedError,
    NotFoundError,
    OrderLockedError,
    ValidationFailedError,
)

logger = logging.getLogger(__name__)

_BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def facility_now() -> datetime:
    """Current wall-clock time where the facilities are, as a naive datetime"""
    return datetime.now(ZoneInfo(ORDER_TIMEZONE)).replace(tzinfo=None)


def _base36(number: int) -> str:
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits)) or "0"


def generate_order_number(prefix: str = ORDER_NUMBER_PREFIX) -> str:
    """e.g. NH-M7Q3ZK2A-4F09BC: millisecond timestamp plus random suffix"""
    timestamp = _base36(int(time.time() * 1000))
    return f"{prefix}-{timestamp}-{secrets.token_hex(3).upper()}"


class NursingHomeOrderService:
    """Creates weekly orders and moves them through their lifecycle"""

    def __init__(
        self,
        db: Session,
        notifier: Optional[NotificationDispatcher] = None,
        clock: Callable[[], datetime] = facility_now,
        max_retries: int = LEDGER_MAX_RETRIES,
    ):
        self.db = db
        self.notifier = notifier or NotificationDispatcher(db)
        self.clock = clock
        self.max_retries = max_retries

    def create(
        self,
        facility_id: str,
        week_start_date: date,
        week_end_date: date,
        resident_meals: Iterable[Union[ResidentMeals, dict]],
        delivery_address: Union[DeliveryAddress, dict],
        actor: Actor,
    ) -> NursingHomeOrder:
        """Open a draft order for a facility's service week"""
        residents = _coerce_residents(resident_meals)
        address = _coerce(DeliveryAddress, delivery_address, "delivery_address")
        if week_start_date.weekday() != 0:
            raise ValidationFailedError("Week must start on a Monday", week_start_date=week_start_date.isoformat())
        if week_end_date < week_start_date:
            raise ValidationFailedError("Week end date must not be before week start date")

        if not actor.can_access_facility(facility_id):
            raise AccessDeniedError("Access denied", facility_id=facility_id, user_id=actor.user_id)

        facility = self.db.get(NursingHomeFacility, facility_id)
        if facility is None:
            raise NotFoundError("Facility not found", facility_id=facility_id)
        if not facility.is_active:
            raise ValidationFailedError("Facility is not active", facility_id=facility_id)

        totals = calculate_order_totals(residents)
        order = NursingHomeOrder(
            facility_id=facility_id,
            created_by_user_id=actor.user_id,
            order_number=generate_order_number(),
            week_start_date=week_start_date,
            week_end_date=week_end_date,
            resident_meals=_dump_residents(residents),
            delivery_address=address.model_dump(),
            status=OrderStatus.DRAFT.value,
            total_meals=totals.total_meals,
            subtotal=totals.subtotal,
            tax=totals.tax,
            total=totals.total,
            deadline=calculate_deadline(week_start_date)
        )
        self.db.add(order)
        self.db.commit()
        self.db.refresh(order)

        logger.info(
            f"Nursing home order created: {order.order_number}",
            extra={"order_id": order.id, "facility_id": facility_id, "created_by": actor.user_id}
        )
        return order

    def get(self, order_id: str, actor: Actor) -> NursingHomeOrder:
        order = self.db.execute(
            select(NursingHomeOrder)
            .where(NursingHomeOrder.id == order_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if order is None:
            raise NotFoundError("Order not found", order_id=order_id)
        if not actor.can_access_order(order.facility_id, order.created_by_user_id):
            raise AccessDeniedError("Access denied", order_id=order_id, user_id=actor.user_id)
        return order

    def list_orders(
        self,
        actor: Actor,
        status: Optional[str] = None,
        facility_id: Optional[str] = None,
        week_start_date: Optional[date] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[NursingHomeOrder], int]:
        """Orders visible to the actor, newest first"""
        query = self.db.query(NursingHomeOrder)

        if actor.can(Capability.ACCESS_ANY_FACILITY):
            if facility_id:
                query = query.filter(NursingHomeOrder.facility_id == facility_id)
        elif actor.can(Capability.ACCESS_OWN_FACILITY):
            query = query.filter(NursingHomeOrder.facility_id == actor.facility_id)
        else:
            query = query.filter(
                NursingHomeOrder.facility_id == actor.facility_id,
                NursingHomeOrder.created_by_user_id == actor.user_id
            )

        if status:
            query = query.filter(NursingHomeOrder.status == status)
        if week_start_date:
            query = query.filter(NursingHomeOrder.week_start_date == week_start_date)

        total = query.count()
        offset = (page - 1) * page_size
        orders = query.order_by(NursingHomeOrder.created_at.desc()).offset(offset).limit(page_size).all()
        return orders, total

    def update(self, order_id: str, patch: Union[OrderUpdate, dict], actor: Actor) -> NursingHomeOrder:
        """Edit the order payload while the edit window is open"""
        patch = _coerce(OrderUpdate, patch, "patch")

        values = {}
        if patch.resident_meals is not None:
            totals = calculate_order_totals(patch.resident_meals)
            values.update(
                resident_meals=_dump_residents(patch.resident_meals),
                total_meals=totals.total_meals,
                subtotal=totals.subtotal,
                tax=totals.tax,
                total=totals.total
            )
        if patch.delivery_address is not None:
            values["delivery_address"] = patch.delivery_address.model_dump()

        for attempt in range(1, self.max_retries + 1):
            order = self.get(order_id, actor)
            self._check_editable(order, actor)
            if not values:
                return order

            if self._write_if_status(order.id, [order.status], values):
                logger.info(
                    f"Nursing home order updated: {order.order_number}",
                    extra={"order_id": order.id, "updated_by": actor.user_id, "fields": sorted(values)}
                )
                return self.get(order_id, actor)

            logger.warning(f"Order {order_id} changed status during update, re-checking (attempt {attempt})")

        raise ConcurrentUpdateError("Order was modified concurrently, please retry", order_id=order_id)

    def submit(self, order_id: str, actor: Actor) -> NursingHomeOrder:
        """Lock the order for the kitchen; the deadline applies to every role"""
        for attempt in range(1, self.max_retries + 1):
            order = self.get(order_id, actor)
            if order.status == OrderStatus.SUBMITTED:
                raise AlreadySubmittedError("Order already submitted", order_id=order.id)
            if order.status == OrderStatus.CANCELLED:
                raise OrderLockedError("Cancelled orders cannot be submitted", order_id=order.id)

            now = self.clock()
            if now > order.deadline:
                raise DeadlinePassedError(
                    "Cannot submit order after deadline. Orders must be submitted by Sunday 12:00 PM",
                    order_id=order.id,
                    deadline=order.deadline.isoformat()
                )

            if self._write_if_status(
                order.id,
                [OrderStatus.DRAFT.value],
                {"status": OrderStatus.SUBMITTED.value, "submitted_at": now}
            ):
                order = self.get(order_id, actor)
                logger.info(
                    f"Nursing home order submitted: {order.order_number}",
                    extra={"order_id": order.id, "submitted_by": actor.user_id}
                )
                self.notifier.dispatch(
                    type="nh.order.submitted",
                    title="Nursing home: Weekly order submitted",
                    message=f"Order {order.order_number} submitted for facility",
                    ref={"kind": "nh_order", "id": order.id, "orderNumber": order.order_number, "facilityId": order.facility_id}
                )
                return order

            logger.warning(f"Order {order_id} changed status during submit, re-checking (attempt {attempt})")

        raise ConcurrentUpdateError("Order was modified concurrently, please retry", order_id=order_id)

    def cancel(self, order_id: str, actor: Actor) -> NursingHomeOrder:
        """Cancel a draft or submitted order; cancelling twice is a no-op"""
        if not actor.can(Capability.CANCEL_ORDER):
            raise AccessDeniedError("Only administrators can cancel orders", order_id=order_id, user_id=actor.user_id)

        for attempt in range(1, self.max_retries + 1):
            order = self.get(order_id, actor)
            if order.status == OrderStatus.CANCELLED:
                return order

            if self._write_if_status(
                order.id,
                [OrderStatus.DRAFT.value, OrderStatus.SUBMITTED.value],
                {"status": OrderStatus.CANCELLED.value}
            ):
                order = self.get(order_id, actor)
                logger.info(
                    f"Nursing home order cancelled: {order.order_number}",
                    extra={"order_id": order.id, "cancelled_by": actor.user_id}
                )
                self.notifier.dispatch(
                    type="nh.order.cancelled",
                    title="Nursing home: Weekly order cancelled",
                    message=f"Order {order.order_number} cancelled",
                    ref={"kind": "nh_order", "id": order.id, "orderNumber": order.order_number, "facilityId": order.facility_id}
                )
                return order

            logger.warning(f"Order {order_id} changed status during cancel, re-checking (attempt {attempt})")

        raise ConcurrentUpdateError("Order was modified concurrently, please retry", order_id=order_id)

    def _check_editable(self, order: NursingHomeOrder, actor: Actor) -> None:
        if order.status == OrderStatus.CANCELLED:
            raise OrderLockedError("Cannot edit cancelled order", order_id=order.id)
        if self.clock() > order.deadline and not actor.can(Capability.EDIT_AFTER_DEADLINE):
            raise EditWindowClosedError(
                "Cannot edit order after deadline. Orders must be submitted by Sunday 12:00 PM",
                order_id=order.id,
                deadline=order.deadline.isoformat()
            )
        if order.status == OrderStatus.SUBMITTED and not actor.can(Capability.EDIT_SUBMITTED_ORDER):
            raise OrderLockedError("Cannot edit submitted order", order_id=order.id)

    def _write_if_status(self, order_id: str, expected_statuses: List[str], values: dict) -> bool:
        result = self.db.execute(
            update(NursingHomeOrder)
            .where(NursingHomeOrder.id == order_id, NursingHomeOrder.status.in_(expected_statuses))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            return False
        self.db.commit()
        return True


def _coerce(model, value, field_name: str):
    if isinstance(value, model):
        return value
    try:
        return model.model_validate(value)
    except ValidationError as e:
        raise ValidationFailedError(f"Invalid {field_name}: {e.errors()[0]['msg']}", errors=e.errors())


def _coerce_residents(resident_meals) -> List[ResidentMeals]:
    if resident_meals is None:
        raise ValidationFailedError("resident_meals is required")
    return [_coerce(ResidentMeals, r, "resident_meals") for r in resident_meals]


def _dump_residents(residents: Iterable[ResidentMeals]) -> list:
    return [r.model_dump(mode="json") for r in residents]


def create_nursing_home_order(db: Session, actor: Actor, **fields) -> NursingHomeOrder:
    return NursingHomeOrderService(db).create(actor=actor, **fields)


def update_nursing_home_order(db: Session, order_id: str, patch, actor: Actor) -> NursingHomeOrder:
    return NursingHomeOrderService(db).update(order_id, patch, actor)


def submit_nursing_home_order(db: Session, order_id: str, actor: Actor) -> NursingHomeOrder:
    return NursingHomeOrderService(db).submit(order_id, actor)


def cancel_nursing_home_order(db: Session, order_id: str, actor: Actor) -> None:
    NursingHomeOrderService(db).cancel(order_id, actor)
