"""
Module: fund_kernel.db.types
Responsibility: Column types and annotated aliases for money and other
    shared column shapes.  Centralizes precision so every model and service
    uses identical definitions.
Architecture position: Kernel > DB.  MUST NOT import from models/, domain/,
    services/ or selectors/.

Invariants enforced:
    - Money is stored as a signed BigInteger of minor units (cents).  SQL-side
      arithmetic such as ``spent_amount + :amount`` is therefore exact on
      every backend.
    - A value that is not representable in MONEY_DECIMAL_PLACES places is
      refused at bind time; nothing is ever silently rounded on the way in.
    CRITICAL: No floats anywhere in the fund kernel.

Failure modes:
    - ValueError from MinorUnits.process_bind_param on a sub-cent value or a
      float.  Services validate amounts earlier with parse_money(), so this
      only fires on a programming error.
"""

from decimal import Decimal
from typing import Annotated

from sqlalchemy import BigInteger
from sqlalchemy.types import TypeDecorator

MONEY_DECIMAL_PLACES = 2

ZERO = Decimal("0.00")


class MinorUnits(TypeDecorator):
    """
    Decimal money stored as integer minor units.

    Decimal("10.50") binds as 1050 and 1050 loads as Decimal("10.50").
    Comparisons and arithmetic against literals (``col + Decimal("5.00")``)
    coerce the literal through this type, so the literal is bound in minor
    units as well.
    """

    impl = BigInteger
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, (float, bool)):
            raise ValueError(f"Money must not be {type(value).__name__}: {value!r}")
        scaled = Decimal(value).scaleb(MONEY_DECIMAL_PLACES)
        if scaled != scaled.to_integral_value():
            raise ValueError(
                f"Money value {value} has more than {MONEY_DECIMAL_PLACES} decimal places"
            )
        return int(scaled)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(int(value)).scaleb(-MONEY_DECIMAL_PLACES)

    def coerce_compared_value(self, op, value):
        return self


# Monetary amount, exact to the cent
Money = Annotated[Decimal, MinorUnits()]
