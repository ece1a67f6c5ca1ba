"""Token watchlist API router."""
import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select, desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import get_current_user
from app.database import get_session
from app.models import User, WatchlistItem
from app.schemas.watchlist import WatchlistCreate, WatchlistUpdate, WatchlistResponse
from app.services.websocket_manager import manager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/watchlist", tags=["Watchlist"])


async def _get_owned_item(session: AsyncSession, item_id: int, user: User) -> WatchlistItem:
    result = await session.execute(
        select(WatchlistItem).where(WatchlistItem.id == item_id, WatchlistItem.user_id == user.id)
    )
    item = result.scalar_one_or_none()
    if not item:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Watchlist item not found",
        )
    return item


@router.get("", response_model=List[WatchlistResponse])
async def list_watchlist(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    result = await session.execute(
        select(WatchlistItem)
        .where(WatchlistItem.user_id == current_user.id)
        .order_by(desc(WatchlistItem.added_at), desc(WatchlistItem.id))
    )
    return [WatchlistResponse.model_validate(i) for i in result.scalars().all()]


@router.post("", response_model=WatchlistResponse, status_code=status.HTTP_201_CREATED)
async def add_to_watchlist(
    request: WatchlistCreate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """
    Watch a token.

    With ``auto_trade_enabled`` the auto-trade sweep buys at or below
    ``target_buy_price`` and sells the position at or above ``target_sell_price``.
    """
    item = WatchlistItem(user_id=current_user.id, **request.model_dump())
    session.add(item)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{request.symbol} is already on your watchlist",
        )
    await session.refresh(item)

    logger.info(f"👀 User #{current_user.id} watching {item.symbol}")
    await manager.publish("watchlist_added", {"user_id": current_user.id, "item": item.to_dict()})
    return WatchlistResponse.model_validate(item)


@router.patch("/{item_id}", response_model=WatchlistResponse)
async def update_watchlist_item(
    item_id: int,
    request: WatchlistUpdate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    item = await _get_owned_item(session, item_id, current_user)
    for field, value in request.model_dump(exclude_unset=True).items():
        setattr(item, field, value)

    await session.commit()
    await session.refresh(item)
    return WatchlistResponse.model_validate(item)


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_from_watchlist(
    item_id: int,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    item = await _get_owned_item(session, item_id, current_user)
    await session.delete(item)
    await session.commit()
