"""Position sizing — pure math, no I/O.

Allocates a fixed percentage of current capital to each new position.
"""


def calculate_position(
    capital: float,
    position_size_pct: float,
    entry_price: float,
) -> tuple[float, float]:
    """Calculate the capital committed and the units bought.

    Formula::

        allocated = capital × (position_size_pct / 100)
        units     = allocated / entry_price

    Args:
        capital: Current account capital (e.g. 10_000.0).
        position_size_pct: Percentage of capital per trade (e.g. 10.0).
        entry_price: Fill price of the entry.

    Returns:
        ``(allocated, units)``, both positive.

    Raises:
        ValueError: If any input is non-positive.
    """
    if capital <= 0:
        raise ValueError(f"capital must be positive, got {capital}")
    if position_size_pct <= 0:
        raise ValueError(
            f"position_size_pct must be positive, got {position_size_pct}"
        )
    if entry_price <= 0:
        raise ValueError(f"entry_price must be positive, got {entry_price}")

    allocated = capital * (position_size_pct / 100.0)
    return allocated, allocated / entry_price
