"""Wallet signature authentication with JWT sessions."""
import logging
from datetime import datetime, timedelta
from typing import Optional, Tuple

from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_session
from app.exceptions import AuthenticationError
from app.models.user import User
from app.models.wallet import ManagedWallet
from app.utils.helpers import short_address
from app.utils.signatures import create_sign_message, decode_signature, generate_nonce, verify_signature
from app.utils.validators import validate_wallet_address

logger = logging.getLogger(__name__)

# Security schemes
security_bearer = HTTPBearer(auto_error=False)

# JWT Configuration
JWT_SECRET_KEY = settings.secret_key
JWT_ALGORITHM = "HS256"
JWT_EXPIRATION_HOURS = settings.session_token_hours


# ============== Pydantic Models ==============

class NonceRequest(BaseModel):
    """Start a login for a wallet."""
    wallet_address: str = Field(..., min_length=32, max_length=44)


class NonceResponse(BaseModel):
    nonce: str
    message: str


class VerifyRequest(BaseModel):
    """Signed challenge returned by the wallet. ``signature`` is base64 or base58."""
    wallet_address: str
    signature: str
    message: str


class ProfileUpdate(BaseModel):
    username: Optional[str] = Field(default=None, max_length=100)
    avatar_url: Optional[str] = Field(default=None, max_length=500)


class UserResponse(BaseModel):
    """Schema for user response (without the nonce)."""
    id: int
    wallet_address: str
    username: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None


class WalletInfo(BaseModel):
    id: int
    public_key: str
    balance: float
    status: str


class SessionResponse(BaseModel):
    """Schema for a successful login or token refresh."""
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: UserResponse
    managed_wallet: Optional[WalletInfo] = None


class ProfileResponse(BaseModel):
    user: UserResponse
    managed_wallet: Optional[WalletInfo] = None


# ============== JWT Utilities ==============

def create_access_token(user_id: int, wallet_address: str) -> Tuple[str, datetime]:
    """Create a JWT session token bound to the user id and wallet."""
    expires_at = datetime.utcnow() + timedelta(hours=JWT_EXPIRATION_HOURS)

    payload = {
        "sub": str(user_id),
        "wallet": wallet_address,
        "exp": expires_at,
        "iat": datetime.utcnow(),
    }

    token = jwt.encode(payload, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)
    return token, expires_at


def decode_access_token(token: str) -> Optional[dict]:
    """Decode and validate a JWT access token."""
    try:
        payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
        return payload
    except JWTError as e:
        logger.debug(f"JWT decode error: {e}")
        return None


# ============== User Management ==============

async def get_user_by_wallet(session: AsyncSession, wallet_address: str) -> Optional[User]:
    result = await session.execute(select(User).where(User.wallet_address == wallet_address))
    return result.scalar_one_or_none()


async def get_user_by_id(session: AsyncSession, user_id: int) -> Optional[User]:
    result = await session.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_wallet(session: AsyncSession, user: User) -> Optional[ManagedWallet]:
    result = await session.execute(select(ManagedWallet).where(ManagedWallet.user_id == user.id))
    return result.scalar_one_or_none()


async def issue_nonce(session: AsyncSession, wallet_address: str) -> Tuple[str, str]:
    """
    ANONYMOUS → NONCE_ISSUED.

    Creates the user on first contact (without a wallet) and stores a fresh
    single-use nonce. Returns ``(nonce, challenge message)``.
    """
    wallet_address = validate_wallet_address(wallet_address)
    nonce = generate_nonce()

    user = await get_user_by_wallet(session, wallet_address)
    if user is None:
        user = User(wallet_address=wallet_address)
        session.add(user)
        logger.info(f"👤 New user for wallet {short_address(wallet_address)}")

    user.nonce = nonce
    user.nonce_issued_at = datetime.utcnow()
    await session.commit()

    return nonce, create_sign_message(nonce, wallet_address)


async def authenticate_wallet(
    session: AsyncSession,
    wallet_address: str,
    signature: str,
    message: str,
    wallet_manager=None,
) -> Tuple[User, ManagedWallet]:
    """
    NONCE_ISSUED → AUTHENTICATED.

    The message must be exactly the challenge for the stored, unexpired nonce
    and carry a valid signature. The nonce is rotated whether or not the
    attempt succeeds, so a signed message can never be replayed. First
    success also provisions the custodial wallet, in the same commit.

    Raises:
        AuthenticationError: on any mismatch.
    """
    if wallet_manager is None:
        from app.services.wallet_manager import wallet_manager

    user = await get_user_by_wallet(session, wallet_address.strip())
    if user is None or not user.nonce:
        raise AuthenticationError("No pending login for this wallet. Request a nonce first.")

    failure = _check_challenge(user, signature, message)
    user.nonce = generate_nonce()
    user.nonce_issued_at = None

    if failure:
        await session.commit()
        logger.warning(f"🚫 Login rejected for {short_address(user.wallet_address)}: {failure}")
        raise AuthenticationError(failure)

    wallet = await get_user_wallet(session, user)
    try:
        if wallet is None:
            wallet = await wallet_manager.create_wallet(session, user)
        user.last_login_at = datetime.utcnow()
        await session.commit()
    except IntegrityError:
        # A concurrent first login provisioned the wallet between our read and flush
        await session.rollback()
        await session.refresh(user)
        user.nonce = generate_nonce()
        user.nonce_issued_at = None
        user.last_login_at = datetime.utcnow()
        wallet = await get_user_wallet(session, user)
        if wallet is None:
            raise
        await session.commit()
        logger.info(f"🔁 Reused wallet provisioned by a concurrent login for {short_address(user.wallet_address)}")

    logger.info(f"🔓 Wallet {short_address(user.wallet_address)} authenticated")
    return user, wallet


def _check_challenge(user: User, signature: str, message: str) -> Optional[str]:
    """Return why the challenge fails, or None if it is valid."""
    if user.nonce_issued_at is None:
        return "Nonce already used"
    age = (datetime.utcnow() - user.nonce_issued_at).total_seconds()
    if age > settings.nonce_ttl_seconds:
        return "Nonce expired"
    if message != create_sign_message(user.nonce, user.wallet_address):
        return "Message does not match the issued challenge"
    try:
        signature_bytes = decode_signature(signature)
    except ValueError:
        return "Malformed signature"
    try:
        if not verify_signature(message, signature_bytes, user.wallet_address):
            return "Invalid signature"
    except ValueError:
        return "Invalid wallet address"
    return None


# ============== FastAPI Dependencies ==============

async def get_current_user(
    request: Request,
    bearer: Optional[HTTPAuthorizationCredentials] = Depends(security_bearer),
    session: AsyncSession = Depends(get_session),
) -> User:
    """
    Get the current authenticated user from the JWT session token.

    The token must be sent as ``Authorization: Bearer <token>``. A bare
    wallet address is never accepted as a credential.
    """
    token = bearer.credentials if bearer and bearer.credentials else None

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_access_token(token)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await get_user_by_id(session, int(payload.get("sub", 0)))

    if not user or user.wallet_address != payload.get("wallet"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user


# ============== WebSocket Authentication ==============

async def verify_websocket_token(token: Optional[str], session: AsyncSession) -> Optional[User]:
    """Verify a token for WebSocket connections."""
    if not token:
        return None

    payload = decode_access_token(token)
    if not payload:
        return None

    return await get_user_by_id(session, int(payload.get("sub", 0)))


# ============== Response Helpers ==============

def user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        wallet_address=user.wallet_address,
        username=user.username,
        avatar_url=user.avatar_url,
        created_at=user.created_at,
        last_login_at=user.last_login_at,
    )


def wallet_to_info(wallet: Optional[ManagedWallet]) -> Optional[WalletInfo]:
    if wallet is None:
        return None
    return WalletInfo(
        id=wallet.id,
        public_key=wallet.public_key,
        balance=wallet.balance,
        status=wallet.status,
    )


def session_response(user: User, wallet: Optional[ManagedWallet]) -> SessionResponse:
    token, expires_at = create_access_token(user.id, user.wallet_address)
    return SessionResponse(
        access_token=token,
        expires_at=expires_at,
        user=user_to_response(user),
        managed_wallet=wallet_to_info(wallet),
    )
