"""Authentication router for wallet sign-in and profile management."""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_session
from app.auth import (
    NonceRequest, NonceResponse, VerifyRequest, ProfileUpdate,
    UserResponse, SessionResponse, ProfileResponse,
    issue_nonce, authenticate_wallet, get_user_by_wallet, get_user_wallet,
    get_current_user, session_response, user_to_response, wallet_to_info,
)
from app.models.user import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/nonce", response_model=NonceResponse)
async def request_nonce(
    request: NonceRequest,
    session: AsyncSession = Depends(get_session),
):
    """
    Start a wallet login.

    Returns a single-use nonce and the exact message the wallet must sign.
    """
    nonce, message = await issue_nonce(session, request.wallet_address)
    return NonceResponse(nonce=nonce, message=message)


@router.post("/verify", response_model=SessionResponse)
async def verify(
    request: VerifyRequest,
    session: AsyncSession = Depends(get_session),
):
    """
    Verify the signed challenge and open a session.

    On first login a custodial trading wallet is created for the user.
    Returns a bearer token for all other endpoints.
    """
    user, wallet = await authenticate_wallet(
        session,
        wallet_address=request.wallet_address,
        signature=request.signature,
        message=request.message,
    )
    return session_response(user, wallet)


@router.get("/me", response_model=ProfileResponse)
async def get_me(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Get the authenticated user's profile and managed wallet."""
    return ProfileResponse(
        user=user_to_response(current_user),
        managed_wallet=wallet_to_info(await get_user_wallet(session, current_user)),
    )


@router.patch("/profile", response_model=UserResponse)
async def update_profile(
    request: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Update username and/or avatar."""
    update_data = request.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(current_user, field, value)

    await session.commit()
    await session.refresh(current_user)
    return user_to_response(current_user)


@router.post("/refresh", response_model=SessionResponse)
async def refresh_token(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Issue a fresh token for a still-valid session."""
    return session_response(current_user, await get_user_wallet(session, current_user))


@router.get("/profile/{wallet_address}", response_model=ProfileResponse)
async def get_public_profile(
    wallet_address: str,
    session: AsyncSession = Depends(get_session),
):
    """
    Public lookup of a user by wallet address.

    Returns non-secret data only and grants no session.
    """
    user = await get_user_by_wallet(session, wallet_address)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    return ProfileResponse(
        user=user_to_response(user),
        managed_wallet=wallet_to_info(await get_user_wallet(session, user)),
    )
