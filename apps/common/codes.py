import secrets
import string
import time


_ALPHABET = string.ascii_uppercase + string.digits
_BASE36 = string.digits + string.ascii_uppercase


def _random_code(length: int = 4) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("base36 encoding expects a non-negative integer")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_order_number(prefix: str = "LMP", *, now_ms: int | None = None, suffix_length: int = 4) -> str:
    """Human-readable order number: ``<prefix>-<base36 ms timestamp>-<random>``.

    Uniqueness is probabilistic; the unique constraint on ``Order.order_number``
    is the backstop and callers retry on collision.
    """
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{prefix}-{to_base36(stamp)}-{_random_code(suffix_length)}"
