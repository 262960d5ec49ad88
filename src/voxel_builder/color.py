"""
Color Cell Types

Two color encodings are supported for voxel art:
- PackedColor: 8-bit 3/3/2 packed value, written as an octal triplet ("773")
- TrueColor: 24-bit RGB, written as a hex triplet ("FF8000")

Value 0 (all channels zero) is the reserved EMPTY sentinel in both cases.
Black is therefore not an opaque color; it means "no voxel here".

Color Space Background:
- Script colors are authored in sRGB (perceptual) space
- glTF expects Linear (physical) vertex colors
- Conversion is optional since legacy viewers expect the raw values
"""

from dataclasses import dataclass
from typing import ClassVar, Optional, Tuple
import numpy as np
from numba import njit, prange

from .errors import InvalidValueEncoding


OCTAL_DIGITS = "01234567"
HEX_DIGITS = "0123456789abcdefABCDEF"

# Maximum digit per channel for the 3/3/2 octal encoding
PACKED_CHANNEL_MAX = (7, 7, 3)
PACKED_CHANNEL_SHIFT = (5, 2, 0)


@njit(cache=True)
def _srgb_to_linear_component(c: float) -> float:
    """
    Convert a single sRGB component to Linear.

    The sRGB standard uses a piecewise function:
    - Linear below threshold (0.04045)
    - Gamma curve above threshold
    """
    if c <= 0.04045:
        return c / 12.92
    else:
        return ((c + 0.055) / 1.055) ** 2.4


@njit(cache=True, parallel=True)
def srgb_to_linear(colors: np.ndarray) -> np.ndarray:
    """
    Convert normalized sRGB colors to Linear color space.

    Args:
        colors: Array of shape (N, 3) with float32 values in [0, 1]

    Returns:
        Array of same shape with float32 Linear values [0, 1]
    """
    n = colors.shape[0]
    result = np.empty((n, 3), dtype=np.float32)

    for i in prange(n):
        for c in range(3):
            result[i, c] = _srgb_to_linear_component(colors[i, c])

    return result


def _reject_aux(raw: str, aux: Optional[int]):
    if aux is not None:
        raise TypeError(f'aux data is not supported for color "{raw}"')


@dataclass(frozen=True)
class PackedColor:
    """8-bit packed color: 3 bits red, 3 bits green, 2 bits blue."""

    value: int

    CHANNELS: ClassVar[int] = 1
    HAS_COLOR: ClassVar[bool] = True
    EMPTY: ClassVar["PackedColor"]

    @classmethod
    def from_octal(cls, text: str) -> "PackedColor":
        """
        Parse an octal triplet such as "773".

        The first two digits are 0-7 (red, green), the last is 0-3 (blue).
        """
        if len(text) != 3:
            raise InvalidValueEncoding(text, reason="expected 3 octal digits")

        value = 0
        for position, (ch, limit, shift) in enumerate(
            zip(text, PACKED_CHANNEL_MAX, PACKED_CHANNEL_SHIFT)
        ):
            if ch not in OCTAL_DIGITS or int(ch) > limit:
                raise InvalidValueEncoding(
                    text, position, f"digit must be between 0 and {limit}"
                )
            value |= int(ch) << shift

        return cls(value)

    @classmethod
    def parse(cls, text: str, aux: Optional[int] = None) -> "PackedColor":
        _reject_aux(text, aux)
        return cls.from_octal(text)

    @property
    def channels(self) -> Tuple[int, int, int]:
        """Unpacked (r, g, b) channel values."""
        return ((self.value >> 5) & 7, (self.value >> 2) & 7, self.value & 3)

    def to_rgb_normalized(self) -> Tuple[float, float, float]:
        r, g, b = self.channels
        return (r / 7.0, g / 7.0, b / 3.0)

    def to_octal(self) -> str:
        return "".join(str(c) for c in self.channels)

    def to_channels(self) -> Tuple[int, ...]:
        return (self.value,)

    @classmethod
    def from_channels(cls, row) -> "PackedColor":
        return cls(int(row[0]))

    @staticmethod
    def empty_mask(data: np.ndarray) -> np.ndarray:
        return data[..., 0] == 0

    @staticmethod
    def normalized_array(data: np.ndarray) -> np.ndarray:
        """Vectorized RGB float32 for an array of packed values (..., 1)."""
        packed = data[..., 0].astype(np.uint16)
        rgb = np.stack([
            ((packed >> 5) & 7) / 7.0,
            ((packed >> 2) & 7) / 7.0,
            (packed & 3) / 3.0,
        ], axis=-1)
        return rgb.astype(np.float32)


PackedColor.EMPTY = PackedColor(0)


@dataclass(frozen=True)
class TrueColor:
    """24-bit color with 8 bits per channel."""

    r: int
    g: int
    b: int

    CHANNELS: ClassVar[int] = 3
    HAS_COLOR: ClassVar[bool] = True
    EMPTY: ClassVar["TrueColor"]

    @classmethod
    def from_hex(cls, text: str) -> "TrueColor":
        """Parse a hex triplet such as "123ABC" (case insensitive)."""
        if len(text) != 6:
            raise InvalidValueEncoding(text, reason="expected 6 hex digits")

        for position, ch in enumerate(text):
            if ch not in HEX_DIGITS:
                raise InvalidValueEncoding(text, position, "not a hex digit")

        return cls(int(text[0:2], 16), int(text[2:4], 16), int(text[4:6], 16))

    @classmethod
    def parse(cls, text: str, aux: Optional[int] = None) -> "TrueColor":
        _reject_aux(text, aux)
        return cls.from_hex(text)

    def to_rgb_normalized(self) -> Tuple[float, float, float]:
        return (self.r / 255.0, self.g / 255.0, self.b / 255.0)

    def to_hex(self) -> str:
        return f"{self.r:02X}{self.g:02X}{self.b:02X}"

    def to_channels(self) -> Tuple[int, ...]:
        return (self.r, self.g, self.b)

    @classmethod
    def from_channels(cls, row) -> "TrueColor":
        return cls(int(row[0]), int(row[1]), int(row[2]))

    @staticmethod
    def empty_mask(data: np.ndarray) -> np.ndarray:
        return np.all(data == 0, axis=-1)

    @staticmethod
    def normalized_array(data: np.ndarray) -> np.ndarray:
        return (data.astype(np.float32) / 255.0).astype(np.float32)


TrueColor.EMPTY = TrueColor(0, 0, 0)
