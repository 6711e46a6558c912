"""Conversion between SOL and lamports."""

import math

from pool_keeper.constants import LAMPORTS_PER_SOL, U64_MAX
from pool_keeper.errors import InvalidAmount


def sol_to_lamports(amount: float) -> int:
    """Convert a SOL amount to lamports, truncating any fraction of a lamport.

    Truncation matches how the native CLI tools convert floating point
    amounts, so `sol_to_lamports(2.3) == 2_300_000_000`.
    """
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise InvalidAmount(amount, "must be a number")
    try:
        if not math.isfinite(amount) or amount < 0:
            raise InvalidAmount(amount)
        lamports = math.floor(amount * LAMPORTS_PER_SOL)
    except OverflowError as e:
        raise InvalidAmount(amount, "exceeds the maximum lamport amount") from e
    if lamports > U64_MAX:
        raise InvalidAmount(amount, "exceeds the maximum lamport amount")
    return lamports


def lamports_to_sol(lamports: int) -> float:
    return lamports / LAMPORTS_PER_SOL
