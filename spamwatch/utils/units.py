from __future__ import annotations

from typing import Any

GWEI = 10**9


def parse_quantity(value: Any) -> int | None:
    """Decode a JSON-RPC quantity ("0x1a") into an int. Passes ints through."""
    if value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        if value.lower().startswith("0x"):
            return int(value, 16)
        return int(value)
    raise ValueError(f"Unsupported quantity: {value!r}")


def format_units(value: int, decimals: int = 18) -> str:
    """Render a raw integer amount as a decimal string, trimming zeros.

    format_units(1500000000000000000) -> "1.5"
    """
    sign = "-" if value < 0 else ""
    value = abs(value)
    whole, frac = divmod(value, 10**decimals)
    frac_str = str(frac).zfill(decimals).rstrip("0") if decimals else ""
    if frac_str:
        return f"{sign}{whole}.{frac_str}"
    return f"{sign}{whole}"


def wei_to_gwei(value: int | None) -> float:
    return (value or 0) / GWEI
