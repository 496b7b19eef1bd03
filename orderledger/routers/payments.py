"""
Payment settlement endpoint, called once the payment provider confirms capture
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
import logging

from orderledger.auth.auth_handler import Actor, settlement_required
from orderledger.database import get_db
from orderledger.limiter import limiter
from orderledger.schemas.settlement import PaymentSucceededEvent, SettlementResponse
from orderledger.services.settlement import SettlementCoordinator

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/settlements", response_model=SettlementResponse)
@limiter.limit("30/minute")
async def settle_payment(
    request: Request,
    event: PaymentSucceededEvent,
    actor: Actor = Depends(settlement_required),
    db: Session = Depends(get_db)
):
    """Apply redeemed gift cards and issue purchased ones for the paid orders"""
    results = SettlementCoordinator(db).settle(event.orders)
    issued = sum(len(r.issued_cards) for r in results)
    logger.info(f"Settled {len(results)} paid order(s), issued {issued} gift card(s)")
    return SettlementResponse(results=results)
