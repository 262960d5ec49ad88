"""
glTF 2.0 Exporter (.glb binary format)

glTF Structure:
- 12-byte header: magic "glTF", version 2, total file length
- JSON chunk describing buffer views, accessors, mesh, node and scene
- Binary chunk containing geometry data
  - Interleaved vertices (float32 vec3 position, float32 vec3 color)
  - Indices (uint32)

All integers are little-endian. The JSON chunk is padded with spaces and the
binary chunk with zeros to 4-byte boundaries.
"""

from pathlib import Path
from typing import Any, BinaryIO, Dict, Tuple, Union
import json
import struct
import numpy as np

from ..errors import EncodingFailure
from ..mesh import MeshData
from ..color import srgb_to_linear


# glTF constants
GLTF_VERSION = "2.0"
GENERATOR = "voxel-builder"

GLB_MAGIC = 0x46546C67   # "glTF"
GLB_VERSION = 2
CHUNK_JSON = 0x4E4F534A  # "JSON"
CHUNK_BIN = 0x004E4942   # "BIN\0"

# Component types
UNSIGNED_INT = 5125
FLOAT = 5126

# Buffer view targets
ARRAY_BUFFER = 34962
ELEMENT_ARRAY_BUFFER = 34963

# Primitive modes
TRIANGLES = 4

# position (3 x float32) + color (3 x float32)
VERTEX_STRIDE = 24
COLOR_OFFSET = 12


def _pad4(length: int) -> int:
    return (4 - length % 4) % 4


class GLBExporter:
    """
    Export mesh data to glTF 2.0 binary format (.glb).

    Output is deterministic: the same mesh always encodes to the same bytes.
    """

    def __init__(self, convert_colors: bool = False):
        """
        Initialize the exporter.

        Args:
            convert_colors: If True, convert sRGB to Linear for vertex colors
        """
        self.convert_colors = convert_colors

    def encode(self, mesh: MeshData) -> bytes:
        """Encode a mesh to GLB bytes."""
        if len(mesh.vertices) == 0 or len(mesh.indices) == 0:
            raise EncodingFailure("Cannot export empty mesh")
        if len(mesh.indices) % 3 != 0:
            raise EncodingFailure(
                f"Index count {len(mesh.indices)} is not a multiple of 3"
            )

        vertices = np.asarray(mesh.vertices, dtype=np.float32)
        colors = np.asarray(mesh.colors, dtype=np.float32)
        indices = np.asarray(mesh.indices, dtype=np.uint32)

        if self.convert_colors:
            colors = srgb_to_linear(np.ascontiguousarray(colors))

        vertex_bytes, index_bytes = self._build_buffers(vertices, colors, indices)
        gltf = self._build_gltf(vertices, indices, len(vertex_bytes), len(index_bytes))

        return self._pack_glb(gltf, vertex_bytes + index_bytes)

    def export(self, mesh: MeshData, output: Union[str, Path, BinaryIO]):
        """
        Export mesh to a .glb file or writable binary stream.

        Args:
            mesh: MeshData from SurfaceMesher
            output: Output file path or binary stream
        """
        data = self.encode(mesh)
        try:
            if isinstance(output, (str, Path)):
                with open(output, 'wb') as f:
                    f.write(data)
            else:
                output.write(data)
        except OSError as e:
            raise EncodingFailure(f"Failed to write GLB: {e}") from e

    def _build_buffers(
        self,
        vertices: np.ndarray,
        colors: np.ndarray,
        indices: np.ndarray
    ) -> Tuple[bytes, bytes]:
        """Interleave positions and colors, then pack the indices."""
        interleaved = np.empty((len(vertices), 6), dtype='<f4')
        interleaved[:, :3] = vertices
        interleaved[:, 3:] = colors

        return interleaved.tobytes(), indices.astype('<u4').tobytes()

    def _build_gltf(
        self,
        vertices: np.ndarray,
        indices: np.ndarray,
        vertex_bytes: int,
        index_bytes: int
    ) -> Dict[str, Any]:
        """Build the glTF JSON structure."""
        num_vertices = len(vertices)
        num_indices = len(indices)

        # Calculate bounds
        pos_min = [float(v) for v in vertices.min(axis=0)]
        pos_max = [float(v) for v in vertices.max(axis=0)]

        gltf = {
            "asset": {
                "version": GLTF_VERSION,
                "generator": GENERATOR
            },
            "scene": 0,
            "scenes": [
                {"nodes": [0]}
            ],
            "nodes": [
                {"mesh": 0}
            ],
            "meshes": [
                {
                    "primitives": [
                        {
                            "attributes": {
                                "POSITION": 0,
                                "COLOR_0": 1
                            },
                            "indices": 2,
                            "mode": TRIANGLES
                        }
                    ]
                }
            ],
            "accessors": [
                # 0: Positions
                {
                    "bufferView": 0,
                    "byteOffset": 0,
                    "componentType": FLOAT,
                    "count": num_vertices,
                    "type": "VEC3",
                    "min": pos_min,
                    "max": pos_max
                },
                # 1: Colors
                {
                    "bufferView": 0,
                    "byteOffset": COLOR_OFFSET,
                    "componentType": FLOAT,
                    "count": num_vertices,
                    "type": "VEC3"
                },
                # 2: Indices
                {
                    "bufferView": 1,
                    "byteOffset": 0,
                    "componentType": UNSIGNED_INT,
                    "count": num_indices,
                    "type": "SCALAR"
                }
            ],
            "bufferViews": [
                # 0: Interleaved vertices
                {
                    "buffer": 0,
                    "byteLength": vertex_bytes,
                    "byteStride": VERTEX_STRIDE,
                    "target": ARRAY_BUFFER
                },
                # 1: Indices
                {
                    "buffer": 0,
                    "byteOffset": vertex_bytes,
                    "byteLength": index_bytes,
                    "target": ELEMENT_ARRAY_BUFFER
                }
            ],
            "buffers": [
                {
                    "byteLength": vertex_bytes + index_bytes
                }
            ]
        }

        return gltf

    def _pack_glb(self, gltf: Dict[str, Any], buffer_data: bytes) -> bytes:
        """Assemble header, JSON chunk and BIN chunk."""
        json_bytes = json.dumps(gltf, separators=(',', ':')).encode('utf-8')
        json_bytes += b' ' * _pad4(len(json_bytes))
        buffer_data += b'\x00' * _pad4(len(buffer_data))

        total_length = 12 + 8 + len(json_bytes) + 8 + len(buffer_data)

        return b''.join([
            struct.pack('<III', GLB_MAGIC, GLB_VERSION, total_length),
            struct.pack('<II', len(json_bytes), CHUNK_JSON),
            json_bytes,
            struct.pack('<II', len(buffer_data), CHUNK_BIN),
            buffer_data,
        ])


def read_glb(data: bytes) -> Tuple[Dict[str, Any], bytes]:
    """
    Split a .glb container into its JSON document and binary payload.

    Returns:
        Tuple of (gltf_json, bin_chunk)
    """
    if len(data) < 12:
        raise ValueError("Invalid GLB: truncated header")

    magic, version, length = struct.unpack_from('<III', data, 0)
    if magic != GLB_MAGIC:
        raise ValueError(f"Invalid GLB: bad magic {magic:#x}")
    if version != GLB_VERSION:
        raise ValueError(f"Unsupported GLB version {version}")
    if length != len(data):
        raise ValueError(f"GLB length {length} does not match data size {len(data)}")

    json_length, json_type = struct.unpack_from('<II', data, 12)
    if json_type != CHUNK_JSON:
        raise ValueError("Expected JSON chunk")
    gltf = json.loads(data[20:20 + json_length].decode('utf-8'))

    offset = 20 + json_length
    bin_chunk = b''
    if offset < length:
        bin_length, bin_type = struct.unpack_from('<II', data, offset)
        if bin_type != CHUNK_BIN:
            raise ValueError("Expected BIN chunk")
        bin_chunk = data[offset + 8:offset + 8 + bin_length]

    return gltf, bin_chunk
