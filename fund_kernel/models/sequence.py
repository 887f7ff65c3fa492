"""
Module: fund_kernel.models.sequence
Responsibility: Named counter rows backing SequenceService.
Architecture position: Kernel > Models.  May import from db/ only.
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from fund_kernel.db.base import Base


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row is a named sequence with its current value.  The row lock taken
    while incrementing serializes concurrent allocations.
    """

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )
