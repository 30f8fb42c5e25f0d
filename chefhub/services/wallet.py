"""Chef balance: credits from completed orders and withdrawal debits.

Both sides are single UPDATE statements so concurrent requests cannot
interleave a read-check-write on `users.balance`.
"""

import logging

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..core.pagination import Page, PageParams, paginate
from ..errors import Conflict
from ..models import User, Withdraw

logger = logging.getLogger("chefhub.wallet")


def credit_balance(db: Session, user_id: int, amount: float) -> None:
    """Add `amount` inside the caller's transaction; the caller commits."""
    db.execute(
        update(User)
        .where(User.id == user_id)
        .values(balance=User.balance + amount)
        .execution_options(synchronize_session=False)
    )


def request_withdrawal(db: Session, chef: User, amount: float) -> Withdraw:
    if not chef.bank_details:
        raise Conflict("Please add your bank details before requesting a withdrawal")

    result = db.execute(
        update(User)
        .where(User.id == chef.id, User.balance >= amount)
        .values(balance=User.balance - amount)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        available = db.scalar(select(User.balance).where(User.id == chef.id)) or 0.0
        logger.info(f"Withdrawal of {amount} refused for chef {chef.id}: balance {available}")
        raise Conflict("Insufficient balance", available_balance=available)

    withdraw = Withdraw(user_id=chef.id, amount=amount, status="pending")
    db.add(withdraw)
    db.commit()
    db.refresh(withdraw)
    logger.info(f"Chef {chef.id} requested withdrawal {withdraw.id} of {amount}")
    return withdraw


def list_withdrawals(db: Session, chef: User, params: PageParams) -> Page:
    stmt = (
        select(Withdraw)
        .where(Withdraw.user_id == chef.id)
        .order_by(Withdraw.created_at.desc(), Withdraw.id.desc())
    )
    return paginate(db, stmt, params)
