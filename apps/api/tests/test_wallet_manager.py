"""
Wallet Manager Tests
Custodial key creation, balances and the deposit/withdraw ledger
"""
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction

from app.auth import authenticate_wallet, issue_nonce
from app.exceptions import (
    AuthenticationError,
    InsufficientBalanceError,
    NotFoundError,
    NoWalletError,
    SubmissionFailed,
    UpstreamUnavailable,
    ValidationError,
)
from app.models import ManagedWallet, User, WalletTransaction
from app.services.wallet_locks import WalletLockRegistry
from app.services.wallet_manager import TRANSFER_FEE_SOL, WalletManager, custodial_keypair
from app.utils.encryption import decrypt_secret
from conftest import sign_message


DEPOSIT_SIGNATURE = "3nVq7sNLoPFxUSWBDTRVRQ6dC6Lh7vtDHZXHS6LgLyjpHWQt9ZHcTS5BiD1bCv5sRkuTzUhDvkmd4xPqp8SCf7vZ"


@pytest.fixture
def rpc():
    rpc = AsyncMock()
    rpc.get_balance.return_value = 1_500_000_000
    rpc.get_latest_blockhash.return_value = Hash.default()
    rpc.send_transaction.return_value = "withdrawSig"
    rpc.confirm_transaction.return_value = None
    return rpc


@pytest.fixture
def manager(rpc):
    return WalletManager(rpc=rpc, locks=WalletLockRegistry())


@pytest.fixture
async def wallet(db_session, user_with_wallet):
    return user_with_wallet[1]


@pytest.fixture
async def funded(db_session, wallet):
    wallet.balance = 1.0
    await db_session.commit()
    return wallet


async def ledger(session, wallet_id):
    result = await session.execute(
        select(WalletTransaction).where(WalletTransaction.wallet_id == wallet_id).order_by(WalletTransaction.id)
    )
    return result.scalars().all()


# ============== Lifecycle Tests ==============

class TestWalletLifecycle:
    """Tests for wallet creation and lookup"""

    async def test_created_wallet_holds_encrypted_key(self, user_with_wallet):
        user, wallet = user_with_wallet

        assert wallet.user_id == user.id
        assert wallet.status == "active"
        assert wallet.balance == 0.0
        assert wallet.can_sign

        restored = Keypair.from_bytes(decrypt_secret(wallet.encrypted_secret_key))
        assert str(restored.pubkey()) == wallet.public_key
        assert bytes(restored).hex() not in wallet.encrypted_secret_key

    async def test_to_dict_never_exposes_key(self, user_with_wallet):
        data = user_with_wallet[1].to_dict()
        assert "encrypted_secret_key" not in data
        assert data["public_key"] == user_with_wallet[1].public_key

    async def test_custodial_keypair(self, wallet):
        with custodial_keypair(wallet) as keypair:
            assert str(keypair.pubkey()) == wallet.public_key

    async def test_get_wallet_for_user(self, manager, db_session, user_with_wallet):
        user, wallet = user_with_wallet
        assert (await manager.get_wallet_for_user(db_session, user.id)).id == wallet.id

    async def test_get_wallet_missing(self, manager, db_session):
        with pytest.raises(NoWalletError):
            await manager.get_wallet_for_user(db_session, 999)

    async def test_one_wallet_per_user(self, manager, db_session, user_with_wallet):
        """Test the unique user_id column rejects a second wallet"""
        user, _ = user_with_wallet
        db_session.add(ManagedWallet(user_id=user.id, public_key=str(Pubkey.new_unique()), balance=0.0))
        with pytest.raises(IntegrityError):
            await db_session.flush()
        await db_session.rollback()


# ============== Balance Tests ==============

class TestBalances:
    """Tests for chain balance reads"""

    async def test_get_balance(self, manager, wallet, rpc):
        assert await manager.get_balance(wallet) == 1.5
        rpc.get_balance.assert_awaited_once_with(wallet.public_key)

    async def test_refresh_balance(self, manager, db_session, wallet):
        assert await manager.refresh_balance(db_session, wallet) == 1.5
        assert wallet.balance == 1.5

    async def test_refresh_balance_rpc_down(self, manager, db_session, funded, rpc):
        rpc.get_balance.side_effect = UpstreamUnavailable("all down")
        with pytest.raises(UpstreamUnavailable):
            await manager.refresh_balance(db_session, funded)
        assert funded.balance == 1.0

    def test_negative_balance_rejected(self, manager):
        with pytest.raises(ValidationError):
            manager.update_balance(MagicMock(), -0.1)


# ============== Deposit Tests ==============

class TestDeposits:
    """Tests for the deposit ledger"""

    async def test_create_deposit_awaiting(self, manager, db_session, wallet):
        record = await manager.create_deposit(db_session, wallet, 0.5)
        assert record.status == "awaiting_deposit"
        assert record.direction == "in"
        assert record.tx_hash is None

    async def test_create_deposit_with_signature(self, manager, db_session, wallet):
        record = await manager.create_deposit(db_session, wallet, 0.5, DEPOSIT_SIGNATURE)
        assert record.status == "pending"
        assert record.tx_hash == DEPOSIT_SIGNATURE

    async def test_confirm_without_signature_refreshes_balance(self, manager, db_session, wallet):
        record = await manager.create_deposit(db_session, wallet, 0.5)

        confirmed = await manager.confirm_deposit(db_session, wallet, record.id)

        assert confirmed.status == "confirmed"
        assert confirmed.confirmed_at is not None
        assert wallet.balance == 1.5

    async def test_confirm_with_landed_signature(self, manager, db_session, wallet, rpc):
        rpc.get_signature_status.return_value = MagicMock(err=None)
        record = await manager.create_deposit(db_session, wallet, 0.5)

        confirmed = await manager.confirm_deposit(db_session, wallet, record.id, DEPOSIT_SIGNATURE)

        assert confirmed.status == "confirmed"
        assert confirmed.tx_hash == DEPOSIT_SIGNATURE
        rpc.get_signature_status.assert_awaited_once_with(DEPOSIT_SIGNATURE)

    async def test_confirm_failed_on_chain(self, manager, db_session, wallet, rpc):
        rpc.get_signature_status.return_value = MagicMock(err="InstructionError")
        record = await manager.create_deposit(db_session, wallet, 0.5, DEPOSIT_SIGNATURE)

        result = await manager.confirm_deposit(db_session, wallet, record.id)

        assert result.status == "failed"
        assert wallet.balance == 0.0
        rpc.get_balance.assert_not_called()

    async def test_confirm_unseen_signature_stays_open(self, manager, db_session, wallet, rpc):
        """Test a signature the cluster has not seen keeps the deposit pending"""
        rpc.get_signature_status.return_value = None
        record = await manager.create_deposit(db_session, wallet, 0.5)

        with pytest.raises(ValidationError):
            await manager.confirm_deposit(db_session, wallet, record.id, DEPOSIT_SIGNATURE)

        assert record.status == "pending"
        assert record.tx_hash == DEPOSIT_SIGNATURE

    async def test_confirm_twice_rejected(self, manager, db_session, wallet):
        record = await manager.create_deposit(db_session, wallet, 0.5)
        await manager.confirm_deposit(db_session, wallet, record.id)

        with pytest.raises(ValidationError):
            await manager.confirm_deposit(db_session, wallet, record.id)

    async def test_confirm_unknown_deposit(self, manager, db_session, wallet):
        with pytest.raises(NotFoundError):
            await manager.confirm_deposit(db_session, wallet, 12345)

    async def test_confirm_other_users_deposit(self, manager, db_session, wallet):
        """Test a deposit id from another wallet is invisible"""
        other = User(wallet_address=str(Pubkey.new_unique()))
        db_session.add(other)
        await db_session.flush()
        other_wallet = await manager.create_wallet(db_session, other)
        record = await manager.create_deposit(db_session, other_wallet, 0.5)

        with pytest.raises(NotFoundError):
            await manager.confirm_deposit(db_session, wallet, record.id)


# ============== Withdraw Tests ==============

class TestWithdraw:
    """Tests for server-signed SOL transfers"""

    async def test_withdraw_success(self, manager, db_session, funded, rpc):
        destination = str(Pubkey.new_unique())
        rpc.get_balance.return_value = 500_000_000

        record = await manager.withdraw(db_session, funded, 0.4, destination)

        assert record.status == "confirmed"
        assert record.tx_hash == "withdrawSig"
        assert record.direction == "out"
        assert record.destination_address == destination
        assert funded.balance == 0.5
        rpc.confirm_transaction.assert_awaited_once_with("withdrawSig")

    async def test_withdraw_signs_transfer_from_wallet(self, manager, db_session, funded, rpc):
        destination = str(Pubkey.new_unique())

        await manager.withdraw(db_session, funded, 0.4, destination)

        tx = VersionedTransaction.from_bytes(rpc.send_transaction.call_args.args[0])
        keys = [str(k) for k in tx.message.account_keys]
        assert keys[0] == funded.public_key
        assert destination in keys

    async def test_withdraw_balance_fallback(self, manager, db_session, funded, rpc):
        """Test our own arithmetic is used when the balance refresh fails"""
        rpc.get_balance.side_effect = UpstreamUnavailable("all down")

        await manager.withdraw(db_session, funded, 0.4, str(Pubkey.new_unique()))

        assert funded.balance == pytest.approx(1.0 - 0.4 - TRANSFER_FEE_SOL)

    async def test_insufficient_balance(self, manager, db_session, funded, rpc):
        """Test the fee is reserved on top of the amount"""
        with pytest.raises(InsufficientBalanceError):
            await manager.withdraw(db_session, funded, 1.0, str(Pubkey.new_unique()))

        rpc.send_transaction.assert_not_called()
        assert await ledger(db_session, funded.id) == []

    async def test_send_failure_marks_failed(self, manager, db_session, funded, rpc):
        rpc.send_transaction.side_effect = SubmissionFailed("Transaction rejected")

        with pytest.raises(SubmissionFailed):
            await manager.withdraw(db_session, funded, 0.4, str(Pubkey.new_unique()))

        records = await ledger(db_session, funded.id)
        assert [r.status for r in records] == ["failed"]
        assert funded.balance == 1.0

    async def test_confirm_failure_marks_failed(self, manager, db_session, funded, rpc):
        rpc.confirm_transaction.side_effect = SubmissionFailed("not confirmed")

        with pytest.raises(SubmissionFailed):
            await manager.withdraw(db_session, funded, 0.4, str(Pubkey.new_unique()))

        records = await ledger(db_session, funded.id)
        assert records[0].status == "failed"
        assert records[0].tx_hash == "withdrawSig"

    @pytest.mark.parametrize("destination", ["", "not-an-address", "0" * 40])
    async def test_invalid_destination(self, manager, db_session, funded, destination):
        with pytest.raises(ValidationError):
            await manager.withdraw(db_session, funded, 0.1, destination)

    async def test_suspended_wallet(self, manager, db_session, funded):
        funded.status = "suspended"
        await db_session.commit()
        with pytest.raises(ValidationError):
            await manager.withdraw(db_session, funded, 0.1, str(Pubkey.new_unique()))

    async def test_wallet_without_key(self, manager, db_session, funded):
        funded.encrypted_secret_key = None
        await db_session.commit()
        with pytest.raises(ValidationError):
            await manager.withdraw(db_session, funded, 0.1, str(Pubkey.new_unique()))


# ============== Provisioning Race Tests ==============

class RacingWalletManager:
    """Commits a competing wallet from another session just before provisioning"""

    def __init__(self, session_maker, manager):
        self.session_maker = session_maker
        self.manager = manager
        self.competitor_id = None

    async def create_wallet(self, session, user):
        async with self.session_maker() as other:
            competitor = ManagedWallet(user_id=user.id, public_key=str(Pubkey.new_unique()), balance=0.0)
            other.add(competitor)
            await other.commit()
            self.competitor_id = competitor.id
        return await self.manager.create_wallet(session, user)


class TestConcurrentFirstLogin:
    """Tests for two first logins of one user racing to provision"""

    async def test_loser_reuses_winning_wallet(self, manager, db_session, session_maker):
        keypair = Keypair()
        address = str(keypair.pubkey())
        _, message = await issue_nonce(db_session, address)
        racer = RacingWalletManager(session_maker, manager)

        user, wallet = await authenticate_wallet(
            db_session, address, sign_message(keypair, message), message, wallet_manager=racer
        )

        assert wallet.id == racer.competitor_id
        assert user.last_login_at is not None
        assert user.nonce_issued_at is None
        wallets = (await db_session.execute(
            select(ManagedWallet).where(ManagedWallet.user_id == user.id)
        )).scalars().all()
        assert [w.id for w in wallets] == [racer.competitor_id]

    async def test_signed_message_still_single_use(self, manager, db_session, session_maker):
        """Test the recovered login still burns the challenge"""
        keypair = Keypair()
        address = str(keypair.pubkey())
        _, message = await issue_nonce(db_session, address)
        signature = sign_message(keypair, message)

        await authenticate_wallet(
            db_session, address, signature, message, wallet_manager=RacingWalletManager(session_maker, manager)
        )

        with pytest.raises(AuthenticationError):
            await authenticate_wallet(db_session, address, signature, message, wallet_manager=manager)
