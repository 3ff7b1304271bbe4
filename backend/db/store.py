"""Ledger store: the single handle through which the app reads and mutates ledger state.

A ``LedgerStore`` is constructed explicitly (normally once at app startup) and
passed to services. Reads return typed entities from ``schemas.ledger_schema``;
the two balance-moving procedures each run in one transaction.
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy import select, update, func, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession
from sqlalchemy.orm import aliased

from core.errors import (
    LedgerError,
    NotFoundError,
    StateConflictError,
    InsufficientBalanceError,
    ValidationError,
    TransientCollaboratorError,
)
from db.session import Base, create_engine, create_session_factory
from db.models.user import User as UserModel
from db.models.referral import Referral as ReferralModel
from db.models.withdrawal import Withdrawal as WithdrawalModel
from db.models.auth_session import AuthSession as AuthSessionModel
from schemas.ledger_schema import (
    UserAccount,
    Referral,
    Withdrawal,
    WithdrawalStatus,
    LedgerStats,
    AuthSessionRecord,
)
from utils.db import safe_commit, TRANSIENT_DB_ERRORS

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _withdrawal_entity(row: WithdrawalModel, user_name: str = None, user_email: str = None) -> Withdrawal:
    entity = Withdrawal.model_validate(row)
    if user_name is not None or user_email is not None:
        entity = entity.model_copy(update={"user_name": user_name, "user_email": user_email})
    return entity


class LedgerStore:
    """Explicitly constructed store handle wrapping an engine and its session factory."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._session_factory = create_session_factory(engine)

    @classmethod
    def from_url(cls, database_url: Optional[str] = None) -> "LedgerStore":
        return cls(create_engine(database_url))

    # ---------------------------------------------------------------- lifecycle

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()

    async def ping(self) -> bool:
        try:
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
            return True
        except (TransientCollaboratorError, SQLAlchemyError) as e:
            logger.warning(f"Ledger store ping failed: {e}")
            return False

    @asynccontextmanager
    async def session(self, db: Optional[AsyncSession] = None):
        """Yield the provided session without closing it, or open a new one."""
        if db is not None:
            logger.debug("DB session: reusing provided session")
            yield db
            return
        logger.debug("DB session: creating new session")
        async with self._session_factory() as new_db:
            try:
                yield new_db
            except (LedgerError, IntegrityError):
                await new_db.rollback()
                raise
            except TRANSIENT_DB_ERRORS as e:
                logger.error(f"Ledger store error: {e}")
                raise TransientCollaboratorError("Ledger store unavailable") from e

    @asynccontextmanager
    async def transaction(self):
        """Yield a session inside BEGIN; commits on success, rolls back on any error."""
        try:
            async with self._session_factory() as db:
                async with db.begin():
                    yield db
        except (LedgerError, IntegrityError):
            raise
        except TRANSIENT_DB_ERRORS as e:
            logger.error(f"Ledger transaction failed: {e}")
            raise TransientCollaboratorError("Ledger store unavailable") from e

    # -------------------------------------------------------------------- users

    async def get_user(self, user_id: int) -> Optional[UserAccount]:
        async with self.session() as db:
            row = await db.get(UserModel, user_id)
            return UserAccount.model_validate(row) if row else None

    async def get_user_by_email(self, email: str) -> Optional[UserAccount]:
        async with self.session() as db:
            result = await db.execute(select(UserModel).where(UserModel.email == email))
            row = result.scalars().first()
            return UserAccount.model_validate(row) if row else None

    async def get_user_by_referral_code(self, referral_code: str) -> Optional[UserAccount]:
        async with self.session() as db:
            result = await db.execute(select(UserModel).where(UserModel.referral_code == referral_code))
            row = result.scalars().first()
            return UserAccount.model_validate(row) if row else None

    async def get_password_hash(self, email: str) -> Optional[Dict[str, Any]]:
        """Return {"user_id", "hashed_password"} for an email, used only by the identity provider."""
        async with self.session() as db:
            result = await db.execute(
                select(UserModel.id, UserModel.hashed_password).where(UserModel.email == email)
            )
            row = result.first()
            if row is None:
                return None
            return {"user_id": row.id, "hashed_password": row.hashed_password}

    async def referral_code_exists(self, referral_code: str) -> bool:
        async with self.session() as db:
            result = await db.execute(select(UserModel.id).where(UserModel.referral_code == referral_code))
            return result.first() is not None

    async def insert_user(
        self,
        email: str,
        full_name: str,
        hashed_password: str,
        referral_code: str,
        referred_by: Optional[int] = None,
        is_admin: bool = False,
    ) -> UserAccount:
        async with self.session() as db:
            new_user = UserModel(
                email=email,
                full_name=full_name,
                hashed_password=hashed_password,
                referral_code=referral_code,
                referred_by=referred_by,
                is_admin=is_admin,
                total_earnings=Decimal("0"),
                available_balance=Decimal("0"),
                total_referrals=0,
            )
            db.add(new_user)
            await safe_commit(db, client_error_message="Email already registered")
            await db.refresh(new_user)
            return UserAccount.model_validate(new_user)

    async def list_users(self, include_admins: bool = False) -> List[UserAccount]:
        async with self.session() as db:
            query = select(UserModel)
            if not include_admins:
                query = query.where(UserModel.is_admin.is_(False))
            query = query.order_by(UserModel.created_at.desc(), UserModel.id.desc())
            result = await db.execute(query)
            return [UserAccount.model_validate(row) for row in result.scalars().all()]

    # ---------------------------------------------------------------- referrals

    async def list_referrals(self, referrer_id: int) -> List[Referral]:
        referred = aliased(UserModel)
        async with self.session() as db:
            result = await db.execute(
                select(ReferralModel, referred.full_name, referred.email)
                .join(referred, referred.id == ReferralModel.referred_id)
                .where(ReferralModel.referrer_id == referrer_id)
                .order_by(ReferralModel.created_at.desc(), ReferralModel.id.desc())
            )
            referrals = []
            for row, name, email in result.all():
                referral = Referral.model_validate(row)
                referrals.append(referral.model_copy(update={"referred_name": name, "referred_email": email}))
            return referrals

    async def get_referral_for(self, referred_id: int) -> Optional[Referral]:
        async with self.session() as db:
            result = await db.execute(select(ReferralModel).where(ReferralModel.referred_id == referred_id))
            row = result.scalars().first()
            return Referral.model_validate(row) if row else None

    # -------------------------------------------------------------- withdrawals

    async def insert_withdrawal(
        self,
        user_id: int,
        amount: Decimal,
        account_name: str,
        account_number: str,
        bank_name: str,
    ) -> Withdrawal:
        async with self.session() as db:
            row = WithdrawalModel(
                user_id=user_id,
                amount=amount,
                account_name=account_name,
                account_number=account_number,
                bank_name=bank_name,
                status=WithdrawalStatus.PENDING.value,
                requested_at=_utcnow(),
                processed_at=None,
                admin_notes=None,
            )
            db.add(row)
            await safe_commit(db, client_error_message="Failed to submit withdrawal request")
            await db.refresh(row)
            return _withdrawal_entity(row)

    async def get_withdrawal(self, withdrawal_id: int) -> Optional[Withdrawal]:
        async with self.session() as db:
            row = await db.get(WithdrawalModel, withdrawal_id)
            return _withdrawal_entity(row) if row else None

    async def list_withdrawals(
        self,
        user_id: Optional[int] = None,
        status: Optional[WithdrawalStatus] = None,
    ) -> List[Withdrawal]:
        async with self.session() as db:
            query = select(WithdrawalModel, UserModel.full_name, UserModel.email).join(
                UserModel, UserModel.id == WithdrawalModel.user_id
            )
            if user_id is not None:
                query = query.where(WithdrawalModel.user_id == user_id)
            if status is not None:
                query = query.where(WithdrawalModel.status == WithdrawalStatus(status).value)
            query = query.order_by(WithdrawalModel.requested_at.desc(), WithdrawalModel.id.desc())
            result = await db.execute(query)
            return [_withdrawal_entity(row, name, email) for row, name, email in result.all()]

    async def stats(self) -> LedgerStats:
        async with self.session() as db:
            users_result = await db.execute(
                select(func.count(UserModel.id), func.coalesce(func.sum(UserModel.total_earnings), 0))
                .where(UserModel.is_admin.is_(False))
            )
            total_users, total_earnings = users_result.one()
            pending_result = await db.execute(
                select(func.count(WithdrawalModel.id)).where(WithdrawalModel.status == WithdrawalStatus.PENDING.value)
            )
            referrals_result = await db.execute(select(func.count(ReferralModel.id)))
            return LedgerStats(
                total_users=total_users or 0,
                total_earnings=Decimal(str(total_earnings or 0)),
                pending_withdrawals=pending_result.scalar_one() or 0,
                total_referrals=referrals_result.scalar_one() or 0,
            )

    # ------------------------------------------------------------ auth sessions

    async def insert_auth_session(self, session_id: str, user_id: int, expires_at: datetime) -> AuthSessionRecord:
        async with self.session() as db:
            row = AuthSessionModel(session_id=session_id, user_id=user_id, expires_at=expires_at)
            db.add(row)
            await safe_commit(db, client_error_message="Invalid login request")
            await db.refresh(row)
            return AuthSessionRecord.model_validate(row)

    async def get_auth_session(self, session_id: str) -> Optional[AuthSessionRecord]:
        async with self.session() as db:
            result = await db.execute(select(AuthSessionModel).where(AuthSessionModel.session_id == session_id))
            row = result.scalars().first()
            return AuthSessionRecord.model_validate(row) if row else None

    async def revoke_auth_session(self, session_id: str) -> bool:
        async with self.session() as db:
            result = await db.execute(
                update(AuthSessionModel)
                .where(AuthSessionModel.session_id == session_id, AuthSessionModel.revoked_at.is_(None))
                .values(revoked_at=_utcnow())
                .execution_options(synchronize_session=False)
            )
            await safe_commit(db)
            return result.rowcount == 1

    # --------------------------------------------------------------- procedures

    async def process_referral_reward(self, referrer_id: int, referred_id: int, reward_amount: Decimal) -> Referral:
        """Record the referral and credit the referrer, all in one transaction."""
        async with self.transaction() as db:
            credited = await db.execute(
                update(UserModel)
                .where(UserModel.id == referrer_id)
                .values(
                    total_earnings=UserModel.total_earnings + reward_amount,
                    available_balance=UserModel.available_balance + reward_amount,
                    total_referrals=UserModel.total_referrals + 1,
                )
                .execution_options(synchronize_session=False)
            )
            if credited.rowcount != 1:
                raise NotFoundError(f"Referrer {referrer_id} not found")
            referral = ReferralModel(
                referrer_id=referrer_id,
                referred_id=referred_id,
                reward_amount=reward_amount,
            )
            db.add(referral)
            # Unique on referred_id: a second credit for the same user aborts the whole transaction
            await db.flush()
            await db.refresh(referral)
            return Referral.model_validate(referral)

    async def process_withdrawal(
        self,
        withdrawal_id: int,
        new_status: WithdrawalStatus,
        notes: Optional[str],
        charge: Decimal,
    ) -> Withdrawal:
        """Move a pending withdrawal to approved/declined, debiting on approval.

        Both the debit and the status change are conditional updates, so a
        concurrent transition or a balance drop makes this transaction roll back.
        """
        new_status = WithdrawalStatus(new_status)
        if new_status == WithdrawalStatus.PENDING:
            raise ValidationError("Target status must be approved or declined")

        async with self.transaction() as db:
            result = await db.execute(
                select(WithdrawalModel).where(WithdrawalModel.id == withdrawal_id).with_for_update()
            )
            row = result.scalars().first()
            if row is None:
                raise NotFoundError(f"Withdrawal {withdrawal_id} not found")
            current = _withdrawal_entity(row)
            if not current.is_pending():
                raise StateConflictError(f"Withdrawal {withdrawal_id} is already {current.status.value}")

            if new_status == WithdrawalStatus.APPROVED:
                debit = Decimal(row.amount) + charge
                debited = await db.execute(
                    update(UserModel)
                    .where(UserModel.id == row.user_id, UserModel.available_balance >= debit)
                    .values(available_balance=UserModel.available_balance - debit)
                    .execution_options(synchronize_session=False)
                )
                if debited.rowcount != 1:
                    raise InsufficientBalanceError("Insufficient balance at processing time")

            transitioned = await db.execute(
                update(WithdrawalModel)
                .where(
                    WithdrawalModel.id == withdrawal_id,
                    WithdrawalModel.status == WithdrawalStatus.PENDING.value,
                )
                .values(status=new_status.value, processed_at=_utcnow(), admin_notes=notes)
                .execution_options(synchronize_session=False)
            )
            if transitioned.rowcount != 1:
                raise StateConflictError(f"Withdrawal {withdrawal_id} is not pending")

            await db.refresh(row)
            return _withdrawal_entity(row)

    PROCEDURES = {
        "process_referral_reward": process_referral_reward,
        "process_withdrawal": process_withdrawal,
    }

    async def rpc(self, name: str, **params):
        """Invoke a named atomic procedure, e.g. ``rpc("process_withdrawal", withdrawal_id=1, ...)``."""
        procedure = self.PROCEDURES.get(name)
        if procedure is None:
            raise NotFoundError(f"Unknown procedure: {name}")
        return await procedure(self, **params)
