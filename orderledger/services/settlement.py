"""
Payment settlement: reconcile paid orders against the gift card ledger

The payment has already been captured when this runs, so a bad gift card
reference on one order is logged and skipped rather than failing the batch.
"""

import logging
from typing import Iterable, List, Optional, Union

from pydantic import ValidationError
from sqlalchemy.orm import Session

from orderledger.config import GIFT_CARD_ITEM_ID_PREFIX, GIFT_CARD_CATEGORY
from orderledger.schemas.settlement import PaidOrder, OrderItem, SettlementResult, IssuedCard
from orderledger.services.gift_card_ledger import GiftCardLedger
from orderledger.services.notification_dispatcher import NotificationDispatcher
from orderledger.utils.error_handler import DomainError, CodeSpaceExhaustedError
from orderledger.utils.money import to_money, split_evenly

logger = logging.getLogger(__name__)


def is_gift_card_item(item: Optional[OrderItem]) -> bool:
    """Gift card products are recognised by id prefix, category or name"""
    if item is None:
        return False
    return (
        item.id.startswith(GIFT_CARD_ITEM_ID_PREFIX)
        or (item.category or "").strip().lower() == GIFT_CARD_CATEGORY
        or GIFT_CARD_CATEGORY in item.name.lower()
    )


class SettlementCoordinator:
    """Applies redeemed gift cards and issues purchased ones for paid orders"""

    def __init__(
        self,
        db: Session,
        ledger: Optional[GiftCardLedger] = None,
        notifier: Optional[NotificationDispatcher] = None,
    ):
        self.db = db
        self.ledger = ledger or GiftCardLedger(db)
        self.notifier = notifier or NotificationDispatcher(db)

    def settle(self, paid_orders: Iterable[Union[PaidOrder, dict]]) -> List[SettlementResult]:
        """Settle each paid order on its own; a malformed order is logged and skipped"""
        results = []
        for order in paid_orders:
            if not isinstance(order, PaidOrder):
                try:
                    order = PaidOrder.model_validate(order)
                except ValidationError as e:
                    order_id = order.get("id") if isinstance(order, dict) else None
                    logger.error(
                        f"Skipping malformed paid order {order_id}",
                        extra={"order_id": order_id, "errors": e.errors(include_url=False)}
                    )
                    continue
            results.append(self._settle_order(order))
        return results

    def _settle_order(self, order: PaidOrder) -> SettlementResult:
        result = SettlementResult(order_id=order.id)

        applied = order.applied_gift_card
        if applied and applied.gift_card_id and applied.amount_applied > 0:
            try:
                remaining = self.ledger.deduct(applied.gift_card_id, applied.amount_applied)
                result.gift_card_deducted = True
                result.remaining_balance = float(remaining)
                logger.info(
                    "Gift card applied to order",
                    extra={"order_id": order.id, "gift_card_id": applied.gift_card_id, "amount": str(applied.amount_applied)}
                )
            except DomainError as e:
                logger.error(
                    f"Failed to deduct gift card for order {order.id}: {e.message}",
                    extra={"order_id": order.id, "gift_card_id": applied.gift_card_id, "error_code": e.error_code}
                )

        for item in order.line_items():
            if not is_gift_card_item(item):
                continue
            result.issued_cards.extend(self._issue_for_item(order, item))

        if result.issued_cards:
            codes = ", ".join(card.code for card in result.issued_cards)
            self.notifier.dispatch(
                type="gift_card.purchased",
                title="Gift cards purchased",
                message=f"Order {order.id} issued {len(result.issued_cards)} gift card(s): {codes}",
                ref={"kind": "order", "id": order.id, "giftCardIds": [card.id for card in result.issued_cards]}
            )

        return result

    def _issue_for_item(self, order: PaidOrder, item: OrderItem) -> List[IssuedCard]:
        """One card per unit; the line total is split evenly, leftover cents to the first cards"""
        issued = []
        for amount in split_evenly(to_money(item.price), item.quantity):
            try:
                card = self.ledger.issue(
                    amount,
                    purchased_by_user_id=order.user_id,
                    order_id=order.id
                )
            except CodeSpaceExhaustedError as e:
                logger.critical(
                    f"Gift card code space exhausted while settling order {order.id}",
                    extra={"order_id": order.id, "item_id": item.id, "error_context": e.context}
                )
                continue
            except DomainError as e:
                logger.error(
                    f"Failed to create gift card from order {order.id}: {e.message}",
                    extra={"order_id": order.id, "item_id": item.id, "error_code": e.error_code}
                )
                continue

            issued.append(IssuedCard(id=card.id, code=card.code, balance=float(card.balance)))
        return issued


def settle_paid_orders(db: Session, orders: Iterable[Union[PaidOrder, dict]]) -> List[SettlementResult]:
    return SettlementCoordinator(db).settle(orders)
