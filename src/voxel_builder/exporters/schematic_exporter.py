"""
Legacy Schematic Format Exporter (.schem)

The schematic format is a gzip-compressed, big-endian NBT tag stream.
Each named tag is written as [type:u8][name_len:u16][name bytes][payload].

File Structure:
- Compound "Schematic"
  - Short "Width"   (x size)
  - Short "Height"  (y size)
  - Short "Length"  (z size)
  - String "Materials" = "Alpha"
  - ByteArray "Blocks" (one material id per voxel)
  - ByteArray "Data"   (one aux byte per voxel)
- End tag closing the compound

Voxel order in Blocks and Data is (y * Length + z) * Width + x.
There is no framing for error recovery: a truncated stream is unreadable.
"""

from enum import IntEnum
from pathlib import Path
from typing import Any, BinaryIO, Dict, List, Tuple, Union
import gzip
import io
import struct

from ..errors import EncodingFailure


MATERIALS_VERSION = "Alpha"
ROOT_NAME = "Schematic"


class TagType(IntEnum):
    """NBT tag type ids."""
    END = 0
    BYTE = 1
    SHORT = 2
    INT = 3
    LONG = 4
    FLOAT = 5
    DOUBLE = 6
    BYTE_ARRAY = 7
    STRING = 8
    LIST = 9
    COMPOUND = 10
    INT_ARRAY = 11
    LONG_ARRAY = 12


def _encode_string(value: str) -> bytes:
    raw = value.encode('utf-8')
    if len(raw) > 0xFFFF:
        raise EncodingFailure(f"String of {len(raw)} bytes is too long for a tag")
    return struct.pack('>H', len(raw)) + raw


class Tag:
    """Base class for named tags."""

    tag_type = TagType.END

    def __init__(self, name: str):
        self.name = name

    def payload(self) -> bytes:
        return b''

    def pack(self) -> bytes:
        """Pack the tag header and payload into bytes."""
        return struct.pack('>B', self.tag_type) + _encode_string(self.name) + self.payload()


class ShortTag(Tag):
    tag_type = TagType.SHORT

    def __init__(self, name: str, value: int):
        super().__init__(name)
        if not -0x8000 <= value <= 0x7FFF:
            raise EncodingFailure(f"{name} value {value} does not fit in a short")
        self.value = value

    def payload(self) -> bytes:
        return struct.pack('>h', self.value)


class StringTag(Tag):
    tag_type = TagType.STRING

    def __init__(self, name: str, value: str):
        super().__init__(name)
        self.value = value

    def payload(self) -> bytes:
        return _encode_string(self.value)


class ByteArrayTag(Tag):
    tag_type = TagType.BYTE_ARRAY

    def __init__(self, name: str, value: bytes):
        super().__init__(name)
        self.value = value

    def payload(self) -> bytes:
        return struct.pack('>i', len(self.value)) + self.value


class CompoundTag(Tag):
    """Named compound; children are closed by an End tag."""

    tag_type = TagType.COMPOUND

    def __init__(self, name: str):
        super().__init__(name)
        self._children: List[Tag] = []

    def add_child(self, tag: Tag):
        """Add a child tag."""
        self._children.append(tag)

    def payload(self) -> bytes:
        return b''.join(child.pack() for child in self._children) + bytes([TagType.END])


class SchematicExporter:
    """
    Export a block VoxelGrid to the legacy schematic format.

    Usage:
        exporter = SchematicExporter()
        exporter.export(grid, "output.schem")
    """

    def __init__(self, compress_level: int = 6):
        """
        Initialize the exporter.

        Args:
            compress_level: gzip compression level (0-9)
        """
        self.compress_level = compress_level

    def build_root(self, grid) -> CompoundTag:
        """Assemble the tag tree for a block grid."""
        if grid.cell_type.CHANNELS != 2 or grid.cell_type.HAS_COLOR:
            raise EncodingFailure(
                f"Schematic export requires a block grid, got {grid.cell_type.__name__}"
            )

        root = CompoundTag(ROOT_NAME)
        root.add_child(ShortTag("Width", grid.size_x))
        root.add_child(ShortTag("Height", grid.size_y))
        root.add_child(ShortTag("Length", grid.size_z))
        root.add_child(StringTag("Materials", MATERIALS_VERSION))
        root.add_child(ByteArrayTag("Blocks", grid.raw_channel(0)))
        root.add_child(ByteArrayTag("Data", grid.raw_channel(1)))
        return root

    def encode(self, grid) -> bytes:
        """Encode a grid to gzip-compressed schematic bytes."""
        raw = self.build_root(grid).pack()

        buffer = io.BytesIO()
        # Fixed mtime keeps the gzip header, and so the output, deterministic
        with gzip.GzipFile(
            filename='', mode='wb', fileobj=buffer,
            compresslevel=self.compress_level, mtime=0
        ) as f:
            f.write(raw)
        return buffer.getvalue()

    def export(self, grid, output: Union[str, Path, BinaryIO]):
        """
        Export a VoxelGrid to .schem format.

        Args:
            grid: VoxelGrid over Block cells
            output: Output file path or binary stream
        """
        data = self.encode(grid)
        try:
            if isinstance(output, (str, Path)):
                with open(output, 'wb') as f:
                    f.write(data)
            else:
                output.write(data)
        except OSError as e:
            raise EncodingFailure(f"Failed to write schematic: {e}") from e


class _Buf:
    def __init__(self, b: bytes):
        self.b = b
        self.o = 0

    def read(self, fmt: str) -> Tuple:
        size = struct.calcsize(fmt)
        if self.o + size > len(self.b):
            raise ValueError("Truncated tag stream")
        values = struct.unpack_from(fmt, self.b, self.o)
        self.o += size
        return values

    def read_bytes(self, n: int) -> bytes:
        if n < 0 or self.o + n > len(self.b):
            raise ValueError("Truncated tag stream")
        value = self.b[self.o:self.o + n]
        self.o += n
        return value

    def read_string(self) -> str:
        (n,) = self.read('>H')
        return self.read_bytes(n).decode('utf-8')


def _read_payload(tag: int, buf: _Buf) -> Any:
    if tag == TagType.BYTE:
        return buf.read('>b')[0]
    if tag == TagType.SHORT:
        return buf.read('>h')[0]
    if tag == TagType.INT:
        return buf.read('>i')[0]
    if tag == TagType.BYTE_ARRAY:
        (n,) = buf.read('>i')
        return buf.read_bytes(n)
    if tag == TagType.STRING:
        return buf.read_string()
    if tag == TagType.COMPOUND:
        out: Dict[str, Any] = {}
        while True:
            (child,) = buf.read('>B')
            if child == TagType.END:
                return out
            name = buf.read_string()
            out[name] = _read_payload(child, buf)
    raise ValueError(f"Unsupported tag type {tag}")


def read_schematic(data: bytes) -> Tuple[str, Dict[str, Any]]:
    """
    Decode a .schem file produced by SchematicExporter.

    Returns:
        Tuple of (root_name, root_compound)
    """
    buf = _Buf(gzip.decompress(data))
    (tag,) = buf.read('>B')
    if tag != TagType.COMPOUND:
        raise ValueError(f"Expected root compound, got tag {tag}")
    name = buf.read_string()
    return name, _read_payload(tag, buf)
