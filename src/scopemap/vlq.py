"""Base64 variable-length quantities (VLQ).

Numbers are split into 5-bit digits, least significant first. Each digit is
one character of the base64 alphabet; every digit but the last of a number
carries the continuation bit (32).

Signed numbers are zig-zagged with the sign in the low bit, so small
magnitudes of either polarity cost the fewest digits::

    encode_signed(0)   == "A"
    encode_signed(-1)  == "D"
    encode_signed(16)  == "gB"
    encode_unsigned(16) == "Q"

Unsigned mode is a per-instance flag on ``VlqList`` and ``TokenIterator``.
With ``unsigned=False`` every field a grammar declares unsigned is still
written and read as a signed VLQ, which makes signed-only and mixed
encodings directly comparable.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from scopemap.errors import MalformedVlqError


BASE64_CHARS = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
_BASE64_CODES: dict[str, int] = {char: index for index, char in enumerate(BASE64_CHARS)}

VLQ_BASE_SHIFT = 5
VLQ_BASE_MASK = (1 << VLQ_BASE_SHIFT) - 1
VLQ_CONTINUATION_BIT = 1 << VLQ_BASE_SHIFT


def encode_unsigned(n: int) -> str:
    """Encode a non-negative integer as a VLQ digit run."""
    if n < 0:
        raise MalformedVlqError(f"Cannot encode negative value {n} as an unsigned VLQ")
    digits: list[str] = []
    while True:
        digit = n & VLQ_BASE_MASK
        n >>= VLQ_BASE_SHIFT
        if n == 0:
            digits.append(BASE64_CHARS[digit])
            return "".join(digits)
        digits.append(BASE64_CHARS[digit | VLQ_CONTINUATION_BIT])


def encode_signed(n: int) -> str:
    """Encode an integer with its sign in the low bit."""
    return encode_unsigned(-2 * n + 1 if n < 0 else 2 * n)


def count_vlqs(text: str) -> int:
    """Number of VLQ numbers in ``text``; an unterminated last number is an error."""
    count = 0
    code = 0
    for char in text:
        code = _BASE64_CODES.get(char, -1)
        if code < 0:
            raise MalformedVlqError(f"Unexpected char {char!r} encountered while counting VLQs")
        if not code & VLQ_CONTINUATION_BIT:
            count += 1
    if code & VLQ_CONTINUATION_BIT:
        raise MalformedVlqError(f"Unterminated VLQ at the end of {text!r}")
    return count


@dataclass(slots=True)
class VlqList:
    """Ordered numbers of one item, each tagged signed or unsigned.

    The list renders under the mode it was created with. ``len()`` is the
    number of tokens, which length-prefixed framings emit up front.
    """

    unsigned_mode: bool = False
    _values: list[tuple[int, bool]] = field(default_factory=list)

    def signed(self, value: int) -> VlqList:
        self._values.append((value, True))
        return self

    def unsigned(self, value: int) -> VlqList:
        if value < 0:
            raise MalformedVlqError(f"Unsigned field received negative value {value}")
        self._values.append((value, False))
        return self

    def extend(self, other: VlqList) -> VlqList:
        self._values.extend(other._values)
        return self

    def __len__(self) -> int:
        return len(self._values)

    def encode(self) -> str:
        parts: list[str] = []
        for value, is_signed in self._values:
            if is_signed or not self.unsigned_mode:
                parts.append(encode_signed(value))
            else:
                parts.append(encode_unsigned(value))
        return "".join(parts)


class TokenIterator:
    """Cursor over a VLQ token string."""

    def __init__(self, text: str, *, unsigned: bool = False) -> None:
        self._text = text
        self._position = 0
        self._unsigned = unsigned

    @property
    def position(self) -> int:
        return self._position

    def has_more(self) -> bool:
        return self._position < len(self._text)

    def next_signed(self) -> int:
        value = self._next_raw()
        negative = value & 1
        value >>= 1
        return -value if negative else value

    def next_unsigned(self) -> int:
        return self._next_raw() if self._unsigned else self.next_signed()

    def remaining(self) -> str:
        return self._text[self._position:]

    def split_off(self, count: int) -> TokenIterator:
        """Consume ``count`` numbers and return a cursor over exactly those."""
        start = self._position
        self.skip(count)
        return TokenIterator(self._text[start:self._position], unsigned=self._unsigned)

    def skip(self, count: int) -> None:
        """Skip ``count`` numbers regardless of their signedness."""
        for _ in range(count):
            self._next_raw()

    def _next_raw(self) -> int:
        result = 0
        shift = 0
        digit = VLQ_CONTINUATION_BIT
        while digit & VLQ_CONTINUATION_BIT:
            if not self.has_more():
                raise MalformedVlqError(
                    f"Unexpected end of input while decoding VLQ at offset {self._position}",
                )
            char = self._text[self._position]
            code = _BASE64_CODES.get(char)
            if code is None:
                raise MalformedVlqError(
                    f"Unexpected char {char!r} encountered while decoding at offset {self._position}",
                )
            self._position += 1
            digit = code
            result += (digit & VLQ_BASE_MASK) << shift
            shift += VLQ_BASE_SHIFT
        return result
