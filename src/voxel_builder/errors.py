"""
Error Taxonomy

Grid and encoder operations raise the locally-typed errors below. The
sandbox wraps anything raised while a build script runs into a single
SandboxFault so that only a readable message crosses the trust boundary.
"""

from typing import Optional


class VoxelBuildError(Exception):
    """Base class for all build engine errors."""


class SizeLimitExceeded(VoxelBuildError, ValueError):
    """Requested grid dimensions exceed the configured ceiling."""

    def __init__(self, sizes, limit: int, max_volume: Optional[int] = None):
        self.sizes = tuple(sizes)
        self.limit = limit
        self.max_volume = max_volume
        dims = "x".join(str(s) for s in self.sizes)
        if max_volume is not None and all(0 < s <= limit for s in self.sizes):
            message = f"schematic size {dims} exceeds maximum volume of {max_volume} voxels"
        else:
            message = f"schematic size {dims} exceeds maximum of {limit} per axis"
        super().__init__(message)


class OutOfBounds(VoxelBuildError, IndexError):
    """A coordinate is outside its axis range."""

    def __init__(self, axis: str, value: int):
        self.axis = axis
        self.value = value
        super().__init__(f"invalid {axis} {value}")


class InvalidValueEncoding(VoxelBuildError, ValueError):
    """A color or material string could not be parsed."""

    def __init__(self, raw: str, position: Optional[int] = None, reason: str = ""):
        self.raw = raw
        self.position = position
        message = f'"{raw}" is invalid'
        if position is not None:
            message += f" (position {position})"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class SandboxFault(VoxelBuildError):
    """Any failure raised while executing an untrusted build script."""


class EncodingFailure(VoxelBuildError):
    """A serializer could not produce its output."""


class MaterialTableNotInitialized(RuntimeError):
    """The material name table was queried before process start-up built it."""
