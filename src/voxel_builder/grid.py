"""
Voxel Grid

Dense, bounds-checked 3D buffer of voxel cells.

The buffer is a flat row-major numpy array of shape (N, channels) where
index(x, y, z) = (y * size_z + z) * size_x + x. Reshaped to
(size_y, size_z, size_x, channels) the same memory gives a view that the
fill fast path and the mesh extractor slice into.

Memory consideration: a 255³ grid of 2-channel blocks is ≈ 33 MB.
"""

from dataclasses import dataclass, field
from typing import Any, Iterator, Tuple, Type
import numpy as np

from .errors import OutOfBounds


AXES = ("x", "y", "z")
MAX_AXIS_SIZE = 255


@dataclass
class VoxelGrid:
    """
    Dense 3D voxel grid over a single cell type.

    cell_type is one of PackedColor, TrueColor or Block. Every cell starts
    as cell_type.EMPTY. Dimensions are fixed at construction.
    """

    size_x: int
    size_y: int
    size_z: int
    cell_type: Type[Any]
    _data: np.ndarray = field(init=False, repr=False)

    def __post_init__(self):
        """Allocate the buffer pre-filled with EMPTY (all-zero channels)."""
        count = self.size_x * self.size_y * self.size_z
        self._data = np.zeros((count, self.cell_type.CHANNELS), dtype=np.uint8)

    @property
    def shape(self) -> Tuple[int, int, int]:
        """Get grid dimensions (x, y, z)."""
        return (self.size_x, self.size_y, self.size_z)

    @property
    def data(self) -> np.ndarray:
        """Raw flat (N, channels) buffer in row-major order."""
        return self._data

    def index(self, x: int, y: int, z: int) -> int:
        """Flat buffer index of a coordinate, raising OutOfBounds if invalid."""
        for axis, value, size in zip(AXES, (x, y, z), self.shape):
            if value < 0 or value >= size:
                raise OutOfBounds(axis, value)
        return (y * self.size_z + z) * self.size_x + x

    def set(self, x: int, y: int, z: int, cell):
        self._data[self.index(x, y, z)] = cell.to_channels()

    def get(self, x: int, y: int, z: int):
        return self.cell_type.from_channels(self._data[self.index(x, y, z)])

    def fill(self, x1: int, y1: int, z1: int, x2: int, y2: int, z2: int, cell):
        """
        Write the inclusive box [x1, x2] x [y1, y2] x [z1, z2].

        Coordinates are visited in increasing x, then y, then z order. If any
        visited coordinate is out of bounds, OutOfBounds is raised after the
        cells visited before it have been written. The fill is not rolled back.
        """
        channels = cell.to_channels()
        if x1 > x2 or y1 > y2 or z1 > z2:
            return

        if self._box_in_bounds(x1, y1, z1, x2, y2, z2):
            volume = self._volume_view()
            volume[y1:y2 + 1, z1:z2 + 1, x1:x2 + 1] = channels
            return

        self._fill_until_out_of_bounds(x1, y1, z1, x2, y2, z2, channels)

    def _box_in_bounds(self, x1, y1, z1, x2, y2, z2) -> bool:
        return (
            0 <= x1 and x2 < self.size_x and
            0 <= y1 and y2 < self.size_y and
            0 <= z1 and z2 < self.size_z
        )

    def _fill_until_out_of_bounds(self, x1, y1, z1, x2, y2, z2, channels):
        """Row-wise fill that stops at the first invalid coordinate in visit order."""
        volume = self._volume_view()
        for x in range(x1, x2 + 1):
            if x < 0 or x >= self.size_x:
                raise OutOfBounds("x", x)
            for y in range(y1, y2 + 1):
                if y < 0 or y >= self.size_y:
                    raise OutOfBounds("y", y)
                if z1 < 0:
                    raise OutOfBounds("z", z1)
                z_end = min(z2, self.size_z - 1)
                if z1 <= z_end:
                    volume[y, z1:z_end + 1, x] = channels
                if z2 >= self.size_z:
                    raise OutOfBounds("z", max(z1, self.size_z))

    def _volume_view(self) -> np.ndarray:
        """(y, z, x, channels) view sharing memory with the flat buffer."""
        return self._data.reshape(
            self.size_y, self.size_z, self.size_x, self.cell_type.CHANNELS
        )

    def channels_xyz(self) -> np.ndarray:
        """Copy of the cell channels indexed as [x, y, z, channel]."""
        return np.ascontiguousarray(self._volume_view().transpose(2, 0, 1, 3))

    def occupancy(self) -> np.ndarray:
        """Boolean mask indexed [x, y, z], True where the cell is not EMPTY."""
        return ~self.cell_type.empty_mask(self.channels_xyz())

    def raw_channel(self, channel: int) -> bytes:
        """One byte per voxel for a single channel, in flat row-major order."""
        return self._data[:, channel].tobytes()

    def count_voxels(self) -> int:
        """Count the number of non-EMPTY cells."""
        return int(np.count_nonzero(~self.cell_type.empty_mask(self._data)))

    def iterate_voxels(self) -> Iterator[Tuple[int, int, int, Any]]:
        """
        Iterate over all non-EMPTY cells.

        Yields:
            Tuples of (x, y, z, cell)
        """
        for x, y, z in np.argwhere(self.occupancy()):
            yield (int(x), int(y), int(z), self.get(int(x), int(y), int(z)))

    def copy(self) -> "VoxelGrid":
        clone = VoxelGrid(self.size_x, self.size_y, self.size_z, self.cell_type)
        clone._data = self._data.copy()
        return clone
