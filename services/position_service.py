"""
Position Manager - opens, closes and lists simulated trading positions

Positions never touch the wallet. Opening and closing append a
position_open / position_close row to the transaction audit trail in the
same database transaction as the position change.
"""

import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session, sessionmaker

from database import SessionLocal, managed_session
from models import (
    Position, PositionStatus, PositionType, Transaction,
    TransactionType, TransactionStatus, generate_id,
)
from services.profile_service import require_profile
from utils.decimal_precision import MonetaryDecimal
from utils.exception_handler import NotFoundError, ValidationError, translate_store_errors
from utils.ledger_state_validator import PositionStateValidator
from utils.session_context import SessionContext

logger = logging.getLogger(__name__)

VALID_POSITION_TYPES = {t.value for t in PositionType}


def _clean_text(value: Optional[str], field_name: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(f"{field_name} is required")
    return cleaned


def _positive_quantity(value, field_name: str) -> Decimal:
    quantity = MonetaryDecimal.quantize_quantity(MonetaryDecimal.validate_positive(value, field_name))
    # Positive inputs smaller than the stored precision round to zero
    if quantity <= 0:
        raise ValidationError(f"{field_name} is below the minimum precision of {MonetaryDecimal.QUANTITY_PRECISION:f}")
    return quantity


class PositionManager:
    """Position lifecycle for the authenticated caller"""

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self.session_factory = session_factory or SessionLocal

    @translate_store_errors("open_position")
    def open_position(self, ctx: SessionContext, symbol: str, coin_name: str, amount,
                      buy_price, position_type: str = PositionType.LONG.value) -> Position:
        """
        Open a position for the caller.

        current_price starts equal to buy_price and status is 'open'.

        Raises:
            AuthenticationError: no session, or the caller has no profile yet
            ValidationError: non-positive amount/price, blank symbol or unknown type
            PersistenceError: store failure
        """
        user_id = ctx.require_user()

        symbol = _clean_text(symbol, "Symbol").upper()
        coin_name = _clean_text(coin_name, "Coin name")
        quantity = _positive_quantity(amount, "Amount")
        entry_price = _positive_quantity(buy_price, "Buy price")

        position_type = (position_type or PositionType.LONG.value).lower()
        if position_type not in VALID_POSITION_TYPES:
            raise ValidationError(f"Position type must be one of {sorted(VALID_POSITION_TYPES)}")

        position = Position(
            id=generate_id(),
            user_id=user_id,
            symbol=symbol,
            coin_name=coin_name,
            amount=quantity,
            buy_price=entry_price,
            current_price=entry_price,
            position_type=position_type,
            status=PositionStatus.OPEN.value,
        )

        with managed_session(self.session_factory) as session:
            require_profile(session, user_id)
            session.add(position)
            self._record_trade(session, position, TransactionType.POSITION_OPEN, entry_price)

        logger.info(f"📈 POSITION_OPENED: {position.id} {position_type} {quantity} {symbol} @ {entry_price} for {user_id}")
        return position

    @translate_store_errors("close_position")
    def close_position(self, ctx: SessionContext, position_id: str, current_price=None) -> Position:
        """
        Close one of the caller's open positions, optionally recording the exit price.

        Only a row matching id, owner and status='open' is updated, so a repeated
        or concurrent close changes nothing and raises NotFoundError.
        """
        user_id = ctx.require_user()
        if not position_id:
            raise ValidationError("Position id is required")

        values = {"status": PositionStatus.CLOSED.value}
        if current_price is not None:
            values["current_price"] = _positive_quantity(current_price, "Current price")

        with managed_session(self.session_factory) as session:
            result = session.execute(
                update(Position)
                .where(
                    Position.id == position_id,
                    Position.user_id == user_id,
                    Position.status == PositionStatus.OPEN.value,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )

            if result.rowcount == 0:
                self._raise_close_failure(session, position_id, user_id)

            position = (
                session.query(Position)
                .filter(Position.id == position_id)
                .populate_existing()
                .one()
            )
            exit_price = position.current_price or position.buy_price
            self._record_trade(session, position, TransactionType.POSITION_CLOSE, exit_price)

        logger.info(f"📉 POSITION_CLOSED: {position_id} {position.symbol} @ {exit_price} for {user_id}")
        return position

    @translate_store_errors("list_positions")
    def list_positions(self, ctx: SessionContext, status: Optional[str] = None) -> List[Position]:
        """Caller's positions, newest first"""
        user_id = ctx.require_user()
        with managed_session(self.session_factory) as session:
            query = session.query(Position).filter(Position.user_id == user_id)
            if status:
                query = query.filter(Position.status == status)
            return query.order_by(Position.created_at.desc()).all()

    @staticmethod
    def _raise_close_failure(session: Session, position_id: str, user_id: str) -> None:
        existing = session.get(Position, position_id)
        if existing is None or existing.user_id != user_id:
            logger.warning(f"🚫 POSITION_CLOSE_REJECTED: {position_id} not found for {user_id}")
            raise NotFoundError("Position not found")
        # Owned but no longer open
        PositionStateValidator.ensure_transition(existing.status, PositionStatus.CLOSED, position_id)
        raise NotFoundError("Position not found")

    @staticmethod
    def _record_trade(session: Session, position: Position, transaction_type: TransactionType,
                      price: Decimal) -> Transaction:
        record = Transaction(
            user_id=position.user_id,
            transaction_type=transaction_type.value,
            symbol=position.symbol,
            amount=position.amount,
            price=price,
            total_value=MonetaryDecimal.multiply_precise(position.amount, price),
            status=TransactionStatus.COMPLETED.value,
            reference_id=position.id,
            performed_by=position.user_id,
            description=f"{transaction_type.value} {position.position_type} {position.symbol}",
        )
        session.add(record)
        return record
