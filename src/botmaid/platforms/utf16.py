"""UTF-16 code-unit helpers.

Some platforms (Telegram among them) measure text spans in UTF-16 code units
rather than code points. Characters outside the Basic Multilingual Plane take
two units (a surrogate pair), so offsets cannot be applied to a Python ``str``
directly.
"""

from botmaid.platforms.errors import DecodeError

CODEC = "utf-16-le"
UNIT_SIZE = 2


def encode(text: str) -> bytes:
    """Encode text into its UTF-16 code-unit sequence (little endian, no BOM)."""
    return text.encode(CODEC)


def length(text: str) -> int:
    """Number of UTF-16 code units needed to represent ``text``."""
    return len(encode(text)) // UNIT_SIZE


def unit_count(units: bytes) -> int:
    """Number of code units in an encoded sequence."""
    return len(units) // UNIT_SIZE


def decode_slice(units: bytes, start: int, end: int) -> str:
    """Decode the code units in ``[start, end)`` back to text.

    Args:
        units: Sequence produced by :func:`encode`.
        start: First code unit (inclusive).
        end: Last code unit (exclusive).

    Returns:
        The decoded text.

    Raises:
        DecodeError: If the range lies outside the sequence or splits a
            surrogate pair.
    """
    total = unit_count(units)
    if start < 0 or end < start or end > total:
        raise DecodeError(f"UTF-16 range [{start}, {end}) is outside text of {total} units")

    try:
        return units[start * UNIT_SIZE : end * UNIT_SIZE].decode(CODEC)
    except UnicodeDecodeError as e:
        raise DecodeError(f"UTF-16 range [{start}, {end}) splits a surrogate pair: {e}") from e
