"""
Voxel Builder
=============

A bounded voxel build engine driven by sandboxed, machine-generated scripts.

Build scripts run in a restricted Python sandbox against a single voxel grid.
The finished grid is exported as a face-culled glTF 2.0 binary mesh (.glb)
for color profiles, or as a gzip NBT tag-stream (.schem) for block profiles.

Key Features:
- Dense bounds-checked grids over packed 3/3/2 color, 24-bit color or blocks
- AST-validated script sandbox with optional step budget
- Face-culling mesh extraction with Numba JIT compilation
- Deterministic GLB and legacy schematic encoders
- OpenAI-backed prompt-to-script generation behind a FastAPI endpoint

Example Usage:
    from voxel_builder import VoxelBuilder, get_profile

    builder = VoxelBuilder(get_profile("voxel_art"))
    data = builder.build_bytes('s = Schematic(4, 4, 4)\\ns.Fill(0, 0, 0, 3, 0, 3, "700")\\ns')
"""

__version__ = "1.0.0"
__author__ = "Voxel Builder Team"

from .errors import (
    VoxelBuildError,
    SizeLimitExceeded,
    OutOfBounds,
    InvalidValueEncoding,
    SandboxFault,
    EncodingFailure,
    MaterialTableNotInitialized,
)
from .color import PackedColor, TrueColor, srgb_to_linear
from .block import Block, Material, MATERIALS, initialize_materials
from .grid import VoxelGrid
from .mesh import MeshData, SurfaceMesher, deduplicate_vertices, mesh_stats
from .config import BuildProfile, PROFILES, get_profile, load_settings
from .sandbox import ScriptSandbox
from .builder import VoxelBuilder, BuildService

__all__ = [
    "VoxelBuildError",
    "SizeLimitExceeded",
    "OutOfBounds",
    "InvalidValueEncoding",
    "SandboxFault",
    "EncodingFailure",
    "MaterialTableNotInitialized",
    "PackedColor",
    "TrueColor",
    "srgb_to_linear",
    "Block",
    "Material",
    "MATERIALS",
    "initialize_materials",
    "VoxelGrid",
    "MeshData",
    "SurfaceMesher",
    "deduplicate_vertices",
    "mesh_stats",
    "BuildProfile",
    "PROFILES",
    "get_profile",
    "load_settings",
    "ScriptSandbox",
    "VoxelBuilder",
    "BuildService",
]
