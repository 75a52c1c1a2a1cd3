"""Byte and percentage formatting helpers (binary prefixes, base 1024)."""

_UNITS = "KMGTPE"


def format_bytes(num: int) -> str:
    if num is None or num < 0:
        return "0B"
    num = int(num)
    if num < 1024:
        return f"{num}B"
    div, exp = 1024, 0
    n = num // 1024
    while n >= 1024 and exp < len(_UNITS) - 1:
        div *= 1024
        exp += 1
        n //= 1024
    return f"{num / div:.1f}{_UNITS[exp]}iB"


def format_percent(percent: float) -> str:
    if percent < 0.01:
        return "0.00%"
    return f"{percent:.2f}%"


def format_pair(first: int, second: int) -> str:
    return f"{format_bytes(first)} / {format_bytes(second)}"


def format_mem_usage(usage: int, limit: int) -> str:
    return format_pair(usage, limit)


def format_net_io(rx: int, tx: int) -> str:
    return format_pair(rx, tx)


def format_block_io(read: int, write: int) -> str:
    return format_pair(read, write)


def format_cpu_limit(cores: float) -> str:
    if cores > 0:
        return f"{cores:.1f}"
    return "∞"
