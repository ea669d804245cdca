"""Pack-size descriptor helpers."""
import re

_DIGITS = re.compile(r"\d+")


def parse_pack_size(pack_size: str | None) -> int:
    """
    Units per pack from a pack-size descriptor.

    Every run of digits is multiplied together: "6x10" -> 60, "10" -> 10,
    "2 x 5 x 10ml" -> 100. No digits at all ("", "bottle") -> 1.
    A descriptor such as "0x10" yields 0; callers reject it.
    """
    numbers = _DIGITS.findall(pack_size or "")
    if not numbers:
        return 1
    units = 1
    for n in numbers:
        units *= int(n)
    return units
