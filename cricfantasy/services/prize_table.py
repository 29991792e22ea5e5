"""
Prize table generation and rank-to-prize matching.

Everything here is pure: no database access, no logging side effects beyond
debug output. Amounts are Decimals floored to whole currency units; any
rounding remainder is paid to rank 1 so a table always spends exactly the
total prize.
"""

import logging
from dataclasses import dataclass, replace
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP
from typing import List, Optional, Sequence, Tuple, Union

from cricfantasy.core.config import settings
from cricfantasy.core.exceptions import PrizeTableError
from cricfantasy.models.enums import PrizeStructure

logger = logging.getLogger(__name__)

Number = Union[int, float, str, Decimal]

# Contests with at least this many winners use rank bands
MEGA_CONTEST_THRESHOLD = 100

# Ranks up to this one get individual rows in mega contests
LAST_INDIVIDUAL_RANK = 10

# (top, middle, bottom) share of the prize left after rank 1
MEDIUM_TIER_SPLITS = {
    PrizeStructure.TOP_HEAVY: (Decimal("0.80"), Decimal("0.15"), Decimal("0.05")),
    PrizeStructure.DISTRIBUTED: (Decimal("0.50"), Decimal("0.30"), Decimal("0.20")),
    PrizeStructure.BALANCED: (Decimal("0.70"), Decimal("0.20"), Decimal("0.10")),
}

# (first rank, last rank or None for "up to winner count", relative weight)
MEGA_RANK_BANDS = {
    PrizeStructure.TOP_HEAVY: [
        (2, 10, Decimal("5")),
        (11, 25, Decimal("4")),
        (26, 100, Decimal("3")),
        (101, 500, Decimal("2")),
        (501, None, Decimal("1")),
    ],
    PrizeStructure.DISTRIBUTED: [
        (2, 10, Decimal("3")),
        (11, 50, Decimal("3")),
        (51, 100, Decimal("2.5")),
        (101, 1000, Decimal("2")),
        (1001, None, Decimal("1.5")),
    ],
    PrizeStructure.BALANCED: [
        (2, 10, Decimal("4")),
        (11, 50, Decimal("3")),
        (51, 200, Decimal("2")),
        (201, 1000, Decimal("1.5")),
        (1001, 10000, Decimal("1")),
        (10001, None, Decimal("0.8")),
    ],
}


@dataclass(frozen=True)
class PrizeRow:
    """One prize table row covering ranks start..end inclusive."""

    start: int
    end: int
    amount: Decimal
    percentage: int = 0

    @property
    def rank(self) -> str:
        if self.start == self.end:
            return str(self.start)
        return f"{self.start}-{self.end}"

    @property
    def size(self) -> int:
        return self.end - self.start + 1

    @property
    def is_range(self) -> bool:
        return self.end > self.start

    def covers(self, rank: int) -> bool:
        return self.start <= rank <= self.end

    @classmethod
    def from_rank(cls, rank: Union[int, str], amount: Number, percentage: int = 0) -> "PrizeRow":
        """Build a row from the stored rank notation ("7" or "11-50")."""
        start, end = parse_rank(rank)
        return cls(start=start, end=end, amount=Decimal(str(amount)), percentage=percentage)

    def to_dict(self):
        return {
            "rank": self.start if not self.is_range else self.rank,
            "amount": str(self.amount),
            "percentage": self.percentage,
        }


def parse_rank(rank: Union[int, str]) -> Tuple[int, int]:
    """Parse "7" or "11-50" into an inclusive (start, end) pair."""
    text = str(rank).strip()
    try:
        if "-" in text:
            start_text, end_text = text.split("-", 1)
            start, end = int(start_text), int(end_text)
        else:
            start = end = int(text)
    except ValueError:
        raise PrizeTableError(f"Invalid prize rank notation: {rank!r}")
    if start < 1 or end < start:
        raise PrizeTableError(f"Invalid prize rank notation: {rank!r}")
    return start, end


def _to_decimal(value: Number, field: str) -> Decimal:
    try:
        return Decimal(str(value))
    except (ArithmeticError, ValueError) as e:
        raise PrizeTableError(f"{field} must be a number") from e


def _floor(value: Decimal) -> Decimal:
    return value.to_integral_value(rounding=ROUND_DOWN)


def _weight_sum(count: int) -> int:
    return count * (count + 1) // 2


def _normalise_shape(shape) -> PrizeStructure:
    if isinstance(shape, PrizeStructure):
        return shape
    if shape is None:
        return PrizeStructure.BALANCED
    try:
        return PrizeStructure(shape)
    except ValueError:
        raise PrizeTableError(f"Unknown prize structure: {shape}")


def _decreasing_rows(first_rank: int, count: int, tier_amount: Decimal) -> List[PrizeRow]:
    """Individual rows whose weights fall linearly from count down to 1."""
    weight_sum = _weight_sum(count)
    rows = []
    for i in range(count):
        prize = _floor(tier_amount * (count - i) / weight_sum)
        rows.append(PrizeRow(start=first_rank + i, end=first_rank + i, amount=prize))
    return rows


def _small_contest_rows(winner_count: int, first_prize: Decimal, remaining: Decimal) -> List[PrizeRow]:
    rows = [PrizeRow(start=1, end=1, amount=first_prize)]
    if winner_count == 2:
        rows.append(PrizeRow(start=2, end=2, amount=remaining))
    elif winner_count == 3:
        second = _floor(remaining * Decimal("0.6"))
        rows.append(PrizeRow(start=2, end=2, amount=second))
        rows.append(PrizeRow(start=3, end=3, amount=remaining - second))
    return rows


def _medium_contest_rows(
    winner_count: int,
    first_prize: Decimal,
    remaining: Decimal,
    shape: PrizeStructure,
    min_prize: Decimal,
) -> List[PrizeRow]:
    top_pct, middle_pct, _ = MEDIUM_TIER_SPLITS.get(shape, MEDIUM_TIER_SPLITS[PrizeStructure.BALANCED])

    top_count = min(5, winner_count // 5)
    middle_count = min(winner_count // 2, winner_count - top_count - 1)
    bottom_count = winner_count - top_count - middle_count - 1

    top_amount = _floor(remaining * top_pct)
    middle_amount = _floor(remaining * middle_pct)
    bottom_amount = remaining - top_amount - middle_amount

    rows = [PrizeRow(start=1, end=1, amount=first_prize)]
    rows.extend(_decreasing_rows(2, top_count, top_amount))

    if middle_count > 0:
        per_rank = _floor(middle_amount / middle_count)
        for i in range(middle_count):
            rank = top_count + i + 2
            rows.append(PrizeRow(start=rank, end=rank, amount=per_rank))

    if bottom_count > 0:
        per_winner = max(min_prize, _floor(bottom_amount / bottom_count))
        rows.append(PrizeRow(start=top_count + middle_count + 2, end=winner_count, amount=per_winner))

    return rows


def _mega_contest_rows(
    winner_count: int,
    first_prize: Decimal,
    remaining: Decimal,
    entry_fee: Decimal,
    shape: PrizeStructure,
    min_prize: Decimal,
) -> List[PrizeRow]:
    bands = [
        (start, min(end or winner_count, winner_count), weight)
        for start, end, weight in MEGA_RANK_BANDS.get(shape, MEGA_RANK_BANDS[PrizeStructure.BALANCED])
        if start <= winner_count
    ]

    # The lowest band returns every winner their entry fee; reserve that first
    lowest_start, lowest_end, _ = bands[-1]
    lowest_amount = entry_fee if entry_fee > 0 else min_prize
    reserve = lowest_amount * (lowest_end - lowest_start + 1)
    pool = remaining - reserve
    if pool < 0:
        raise PrizeTableError(
            f"Prize pool cannot return the entry fee to ranks {lowest_start}-{lowest_end}"
        )

    weighted = bands[:-1]
    total_weight = sum(weight for _, _, weight in weighted)

    rows = [PrizeRow(start=1, end=1, amount=first_prize)]
    for start, end, weight in weighted:
        tier_amount = _floor(pool * weight / total_weight)
        size = end - start + 1
        if start <= LAST_INDIVIDUAL_RANK:
            rows.extend(_decreasing_rows(start, size, tier_amount))
        else:
            per_winner = max(min_prize, _floor(tier_amount / size))
            rows.append(PrizeRow(start=start, end=end, amount=per_winner))

    rows.append(PrizeRow(start=lowest_start, end=lowest_end, amount=lowest_amount))
    return rows


def _raise_to_floor(rows: List[PrizeRow]) -> List[PrizeRow]:
    """Lift rows that pay less than the row below them."""
    result = list(rows)
    lower = result[-1].amount
    for i in range(len(result) - 2, -1, -1):
        if result[i].amount < lower:
            result[i] = replace(result[i], amount=lower)
        lower = result[i].amount
    return result


def _cap_to_previous(rows: List[PrizeRow]) -> List[PrizeRow]:
    """Cap rows that pay more than the row above them."""
    result = [rows[0]]
    for row in rows[1:]:
        previous = result[-1].amount
        result.append(replace(row, amount=min(row.amount, previous)))
    return result


def _check_floor(rows: List[PrizeRow], floor: Decimal) -> None:
    """Reject tables where some winner would get less than the floor."""
    for row in rows:
        if row.amount <= 0 or row.amount < floor:
            raise PrizeTableError(
                f"Prize pool is too small: rank {row.rank} would pay {row.amount}, "
                f"below the minimum of {floor}; lower the winner count or the first prize"
            )


def _with_percentages(rows: List[PrizeRow], total_prize: Decimal) -> List[PrizeRow]:
    result = []
    for row in rows:
        pct = (row.amount * row.size / total_prize * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        result.append(replace(row, percentage=int(pct)))

    drift = 100 - sum(row.percentage for row in result)
    if drift:
        result[0] = replace(result[0], percentage=result[0].percentage + drift)
    return result


def prize_table_total(rows: Sequence[PrizeRow]) -> Decimal:
    """Total paid out by a table: sum of amount times rows covered."""
    return sum((row.amount * row.size for row in rows), Decimal("0"))


def validate_partition(rows: Sequence[PrizeRow], winner_count: int) -> None:
    """Check that rows cover 1..winner_count exactly once, in order."""
    expected = 1
    for row in sorted(rows, key=lambda r: r.start):
        if row.start != expected:
            raise PrizeTableError(f"Prize table has a gap or overlap at rank {expected}")
        expected = row.end + 1
    if expected != winner_count + 1:
        raise PrizeTableError(f"Prize table covers ranks up to {expected - 1}, expected {winner_count}")


def generate_prize_table(
    total_prize: Number,
    winner_count: int,
    first_prize: Number,
    entry_fee: Number = 0,
    shape=PrizeStructure.BALANCED,
    min_prize_amount: Optional[Number] = None,
    max_winner_count: Optional[int] = None,
) -> List[PrizeRow]:
    """
    Generate a ranked prize table.

    Args:
        total_prize: Total amount the table pays out
        winner_count: Number of paid ranks
        first_prize: Amount for rank 1 before remainder absorption
        entry_fee: Contest entry fee; mega contests return it to the lowest band
        shape: PrizeStructure (or its string value) selecting the tier weights
        min_prize_amount: Per-winner floor for ranged rows (settings default)
        max_winner_count: Upper bound on winner_count (settings default)

    Returns:
        Rows ordered by rank, partitioning 1..winner_count

    Raises:
        PrizeTableError: On invalid parameters or a table that cannot be funded
    """
    total = _to_decimal(total_prize, "Total prize")
    first = _to_decimal(first_prize, "First prize")
    fee = _to_decimal(entry_fee or 0, "Entry fee")
    min_prize = _to_decimal(
        settings.min_prize_amount if min_prize_amount is None else min_prize_amount,
        "Minimum prize",
    )
    max_winners = settings.max_winner_count if max_winner_count is None else max_winner_count
    structure = _normalise_shape(shape)

    if total <= 0:
        raise PrizeTableError("Total prize must be greater than 0")
    if winner_count <= 0:
        raise PrizeTableError("Winner count must be greater than 0")
    if winner_count > max_winners:
        raise PrizeTableError(f"Winner count cannot exceed {max_winners}")
    if first <= 0:
        raise PrizeTableError("First prize must be greater than 0")
    if first > total:
        raise PrizeTableError("First prize cannot exceed total prize")
    if fee < 0:
        raise PrizeTableError("Entry fee cannot be negative")
    if winner_count >= MEGA_CONTEST_THRESHOLD and first < fee:
        raise PrizeTableError("First prize cannot be lower than the entry fee in a mega contest")

    total = _floor(total)
    first = _floor(first)
    remaining = total - first

    if winner_count == 1:
        return [PrizeRow(start=1, end=1, amount=total, percentage=100)]
    if winner_count <= 3:
        rows = _small_contest_rows(winner_count, first, remaining)
        floor = Decimal("0")
    elif winner_count < MEGA_CONTEST_THRESHOLD:
        rows = _medium_contest_rows(winner_count, first, remaining, structure, min_prize)
        floor = min_prize
    else:
        rows = _mega_contest_rows(winner_count, first, remaining, fee, structure, min_prize)
        rows = _raise_to_floor(rows)
        # the entry-fee row may sit below min_prize; nothing may pay less than it
        floor = min(min_prize, rows[-1].amount)

    rows = _cap_to_previous(rows)
    _check_floor(rows, floor)

    allocated = prize_table_total(rows)
    if allocated > total:
        raise PrizeTableError(
            f"Prize table needs {allocated} but total prize is {total}; "
            f"lower the winner count or the first prize"
        )
    rows[0] = replace(rows[0], amount=rows[0].amount + (total - allocated))

    rows = _with_percentages(rows, total)
    logger.debug(f"Generated {len(rows)} prize rows for {winner_count} winners ({structure.value})")
    return rows


def match_prize(rank: int, rows: Sequence[PrizeRow]) -> Optional[PrizeRow]:
    """
    Find the prize row for a rank.

    Exact single-rank rows win over ranges; the first matching row is returned.
    None means the rank is not a prize-winning rank.
    """
    if rank is None:
        return None
    rank_text = str(rank)
    for row in rows:
        if row.rank == rank_text:
            return row
    for row in rows:
        if row.is_range and row.covers(rank):
            return row
    return None
