"""
Bill counter store (persistence).

Allocation is a compare-and-swap on bill_counter.last_value: the update only
applies if the value read is still current, so a lost race is reported
instead of silently handing out a duplicate number.
"""
import re

from sqlalchemy import update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pharmabill.exceptions import ConcurrencyConflictError
from pharmabill.models import BillCounter, Sale


def format_bill_number(prefix: str, sequence: int, padding: int = 3) -> str:
    """format_bill_number('DHS-2024-', 7) -> 'DHS-2024-007'"""
    return f"{prefix}{str(sequence).zfill(padding)}"


def parse_bill_sequence(bill_number: str, prefix: str) -> int:
    """Inverse of format_bill_number."""
    if not bill_number.startswith(prefix):
        raise ValueError(f'{bill_number!r} does not start with {prefix!r}')
    digits = bill_number[len(prefix):]
    if not re.fullmatch(r'\d+', digits):
        raise ValueError(f'{bill_number!r} has no numeric sequence')
    return int(digits)


class BillCounterStore:
    """Monotonic bill-number sequence per store prefix."""

    def __init__(self, session: Session, prefix: str, padding: int = 3):
        self.session = session
        self.prefix = prefix
        self.padding = padding

    def current(self) -> int:
        row = self.session.get(BillCounter, self.prefix, populate_existing=True)
        return row.last_value if row else 0

    def _highest_issued(self) -> int:
        """Highest sequence already used by a sale with this prefix, 0 if none."""
        numbers = self.session.query(Sale.bill_number).filter(
            Sale.bill_number.startswith(self.prefix, autoescape=True)
        )
        highest = 0
        for (bill_number,) in numbers:
            try:
                highest = max(highest, parse_bill_sequence(bill_number, self.prefix))
            except ValueError:
                continue
        return highest

    def _ensure_row(self) -> BillCounter:
        row = self.session.get(BillCounter, self.prefix, populate_existing=True)
        if row is not None:
            return row
        # A new counter continues after any bills already issued under the prefix
        row = BillCounter(prefix=self.prefix, last_value=self._highest_issued())
        self.session.add(row)
        try:
            self.session.flush()
        except IntegrityError:
            # Another terminal created the counter first
            raise ConcurrencyConflictError(f'Bill counter {self.prefix!r} was created concurrently')
        return row

    def next_bill_number(self) -> str:
        """Advance the counter by one and return the formatted bill number."""
        row = self._ensure_row()
        expected = row.last_value
        result = self.session.execute(
            update(BillCounter)
            .where(BillCounter.prefix == self.prefix, BillCounter.last_value == expected)
            .values(last_value=expected + 1, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        self.session.expire(row, ['last_value', 'updated_at'])
        if result.rowcount != 1:
            raise ConcurrencyConflictError(
                f'Bill number allocation for {self.prefix!r} lost a race, please retry'
            )
        return format_bill_number(self.prefix, expected + 1, self.padding)
