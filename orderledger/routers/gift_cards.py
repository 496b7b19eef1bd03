"""
Gift card endpoints: checkout validation, customer listing and admin management
"""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from typing import Optional
import logging
import math

from orderledger.auth.auth_handler import Actor, get_current_actor, gift_card_admin_required
from orderledger.database import get_db
from orderledger.limiter import limiter
from orderledger.models.gift_card import GiftCardStatus
from orderledger.schemas.gift_card import (
    GiftCardCreate, GiftCardUpdate, GiftCardDeduct, GiftCardValidate,
    GiftCardResponse, GiftCardListResponse, GiftCardValidation, BalanceResponse
)
from orderledger.services.gift_card_ledger import GiftCardLedger
from orderledger.services.notification_dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)

router = APIRouter()
admin_router = APIRouter()


@router.post("/validate", response_model=GiftCardValidation)
@limiter.limit("20/minute")
async def validate_gift_card(
    request: Request,
    payload: GiftCardValidate,
    db: Session = Depends(get_db)
):
    """Check a code at checkout and return its balance"""
    card = GiftCardLedger(db).lookup_redeemable(payload.code)
    return GiftCardValidation(valid=True, gift_card_id=card.id, code=card.code, balance=float(card.balance))


@router.get("/mine", response_model=list[GiftCardResponse])
@limiter.limit("30/minute")
async def my_gift_cards(
    request: Request,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Gift cards purchased by the current user"""
    return GiftCardLedger(db).cards_for_user(actor.user_id)


@admin_router.get("/", response_model=GiftCardListResponse)
@limiter.limit("30/minute")
async def list_gift_cards(
    request: Request,
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    status: Optional[GiftCardStatus] = Query(None, description="Filter by status"),
    actor: Actor = Depends(gift_card_admin_required),
    db: Session = Depends(get_db)
):
    """Get paginated list of gift cards"""
    cards, total = GiftCardLedger(db).list_cards(
        status=status.value if status else None,
        page=page,
        page_size=page_size
    )
    return GiftCardListResponse(
        gift_cards=cards,
        total=total,
        page=page,
        page_size=page_size,
        total_pages=math.ceil(total / page_size)
    )


@admin_router.get("/{card_id}", response_model=GiftCardResponse)
@limiter.limit("30/minute")
async def get_gift_card(
    request: Request,
    card_id: str,
    actor: Actor = Depends(gift_card_admin_required),
    db: Session = Depends(get_db)
):
    """Get a specific gift card by ID"""
    return GiftCardLedger(db).get(card_id)


@admin_router.post("/", response_model=GiftCardResponse, status_code=201)
@limiter.limit("10/minute")
async def create_gift_card(
    request: Request,
    payload: GiftCardCreate,
    actor: Actor = Depends(gift_card_admin_required),
    db: Session = Depends(get_db)
):
    """Issue a gift card manually"""
    card = GiftCardLedger(db).issue(
        payload.initial_balance,
        purchased_by_user_id=payload.purchased_by_user_id,
        recipient_email=payload.recipient_email
    )
    NotificationDispatcher(db).dispatch(
        type="gift_card.created",
        title="Gift card created",
        message=f"Gift card {card.code} (${card.initial_balance}) created",
        ref={"kind": "gift_card", "id": card.id, "code": card.code}
    )
    logger.info(f"Gift card {card.id} issued by {actor.user_id}")
    return card


@admin_router.patch("/{card_id}", response_model=GiftCardResponse)
@limiter.limit("10/minute")
async def update_gift_card(
    request: Request,
    card_id: str,
    payload: GiftCardUpdate,
    actor: Actor = Depends(gift_card_admin_required),
    db: Session = Depends(get_db)
):
    """Void, reinstate, or overwrite the balance of a gift card"""
    ledger = GiftCardLedger(db)
    card = ledger.get(card_id)

    if payload.status == GiftCardStatus.VOID:
        card = ledger.void(card_id)
    elif payload.status == GiftCardStatus.ACTIVE:
        card = ledger.reinstate(card_id)

    if payload.balance is not None:
        card = ledger.set_balance(card_id, payload.balance)

    logger.info(f"Gift card {card_id} updated by {actor.user_id}")
    return card


@admin_router.post("/{card_id}/deduct", response_model=BalanceResponse)
@limiter.limit("10/minute")
async def deduct_gift_card(
    request: Request,
    card_id: str,
    payload: GiftCardDeduct,
    actor: Actor = Depends(gift_card_admin_required),
    db: Session = Depends(get_db)
):
    """Redeem part of a gift card's balance"""
    balance = GiftCardLedger(db).deduct(card_id, payload.amount)
    return BalanceResponse(gift_card_id=card_id, balance=float(balance))


@admin_router.delete("/{card_id}")
@limiter.limit("10/minute")
async def void_gift_card(
    request: Request,
    card_id: str,
    actor: Actor = Depends(gift_card_admin_required),
    db: Session = Depends(get_db)
):
    """Gift cards are never deleted; this voids them"""
    GiftCardLedger(db).void(card_id)
    logger.info(f"Gift card {card_id} voided by {actor.user_id}")
    return {"message": "Gift card voided"}
