"""Human-readable byte counts."""

from __future__ import annotations

_TIB = 1_099_511_627_776.0
_GIB = 1_073_741_824.0
_MIB = 1_048_576.0
_KIB = 1024.0


def _plain(value: float) -> str:
    if value.is_integer():
        return str(int(value))
    return repr(value)


def format_bandwidth(bandwidth: float, as_rate: bool) -> str:
    """Format a byte count with a binary unit, adding "ps" for rates."""
    value = float(bandwidth)
    suffix = "ps" if as_rate else ""
    if value > 999_999_999_999.0:
        return f"{value / _TIB:.2f}TiB{suffix}"
    if value > 999_999_999.0:
        return f"{value / _GIB:.2f}GiB{suffix}"
    if value > 999_999.0:
        return f"{value / _MIB:.2f}MiB{suffix}"
    if value > 999.0:
        return f"{value / _KIB:.2f}KiB{suffix}"
    return f"{_plain(value)}B{suffix}"