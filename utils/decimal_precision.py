#!/usr/bin/env python3
"""
Decimal Precision Utilities for Financial Calculations
Enforces consistent Decimal usage across all monetary operations
"""

import logging
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation, getcontext, localcontext
from typing import Union, Optional

from utils.exception_handler import ValidationError

logger = logging.getLogger(__name__)

# Set global decimal precision for financial calculations
getcontext().prec = 28

Numeric = Union[str, int, float, Decimal]


class MonetaryDecimal:
    """Enforces Decimal-only monetary operations with proper precision"""

    MONEY_PRECISION = Decimal("0.01")  # 2 decimal places for wallet currency
    QUANTITY_PRECISION = Decimal("0.00000001")  # 8 decimal places for coin amounts and prices
    PERCENT_PRECISION = Decimal("0.01")
    MAX_VALUE = Decimal("999999999999")  # 999 billion limit
    # Working precision for products and ratios of already validated values
    DERIVED_PRECISION = 50

    @classmethod
    def coerce(cls, value: Optional[Numeric], context: str = "monetary") -> Decimal:
        """Convert to a finite Decimal without a range limit, for derived values such as totals"""
        if value is None or isinstance(value, bool):
            raise ValidationError(f"{context} is required and must be a number")

        if isinstance(value, Decimal):
            decimal_value = value
        else:
            try:
                # Convert to string first to avoid float precision issues
                decimal_value = Decimal(str(value).strip())
            except (InvalidOperation, ValueError) as e:
                logger.warning(f"Failed to convert {value!r} to Decimal in context {context}: {e}")
                raise ValidationError(f"{context} must be a number")

        if not decimal_value.is_finite():
            raise ValidationError(f"{context} must be a finite number")

        return decimal_value

    @classmethod
    def to_decimal(cls, value: Optional[Numeric], context: str = "monetary") -> Decimal:
        """Convert an input amount to Decimal, raising ValidationError for anything malformed or out of range"""
        decimal_value = cls.coerce(value, context)

        if abs(decimal_value) > cls.MAX_VALUE:
            raise ValidationError(f"{context} is too large")

        return decimal_value

    @classmethod
    def quantize_money(cls, amount: Numeric) -> Decimal:
        """Quantize amount to wallet currency precision (2 decimal places)"""
        return cls.to_decimal(amount, "money").quantize(cls.MONEY_PRECISION, rounding=ROUND_HALF_UP)

    @classmethod
    def quantize_quantity(cls, amount: Numeric) -> Decimal:
        """Quantize coin amount or price to 8 decimal places"""
        return cls.to_decimal(amount, "quantity").quantize(cls.QUANTITY_PRECISION, rounding=ROUND_HALF_UP)

    @classmethod
    def multiply_precise(cls, amount: Numeric, rate: Numeric,
                         result_precision: Optional[Decimal] = None) -> Decimal:
        """Multiply two values with proper precision handling"""
        with localcontext() as ctx:
            ctx.prec = cls.DERIVED_PRECISION
            result = cls.coerce(amount, "multiply_amount") * cls.coerce(rate, "multiply_rate")
            return result.quantize(result_precision or cls.QUANTITY_PRECISION, rounding=ROUND_HALF_UP)

    @classmethod
    def percentage_of(cls, part: Numeric, whole: Numeric) -> Decimal:
        """part / whole * 100, zero when whole is not positive"""
        whole_decimal = cls.coerce(whole, "percentage_whole")
        if whole_decimal <= 0:
            return Decimal("0")
        with localcontext() as ctx:
            ctx.prec = cls.DERIVED_PRECISION
            result = cls.coerce(part, "percentage_part") / whole_decimal * Decimal("100")
            return result.quantize(cls.PERCENT_PRECISION, rounding=ROUND_HALF_UP)

    @classmethod
    def validate_positive(cls, amount: Numeric, context: str = "amount") -> Decimal:
        """Validate that amount is positive and return as Decimal"""
        amount_decimal = cls.to_decimal(amount, context)

        if amount_decimal <= 0:
            raise ValidationError(f"{context} must be greater than zero")

        return amount_decimal

    @classmethod
    def format_money(cls, amount: Numeric, symbol: str = "₹") -> str:
        """Format amount as a currency string with proper precision"""
        return f"{symbol}{cls.quantize_money(amount):,.2f}"


class FinancialValidation:
    """Validation utilities for financial operations"""

    @classmethod
    def validate_transaction_amount(cls, amount: Numeric, min_amount: Numeric = "0.01",
                                    max_amount: Numeric = "100000000") -> Decimal:
        """Validate transaction amount is within acceptable range"""
        amount_decimal = MonetaryDecimal.validate_positive(amount, "amount")
        min_decimal = MonetaryDecimal.to_decimal(min_amount, "min_limit")
        max_decimal = MonetaryDecimal.to_decimal(max_amount, "max_limit")

        if amount_decimal < min_decimal:
            raise ValidationError(f"Amount {amount_decimal} below minimum {min_decimal}")

        if amount_decimal > max_decimal:
            raise ValidationError(f"Amount {amount_decimal} exceeds maximum {max_decimal}")

        return MonetaryDecimal.quantize_money(amount_decimal)
