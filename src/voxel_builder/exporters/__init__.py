"""
Export modules for the binary artifact formats.
"""

from .schematic_exporter import SchematicExporter, read_schematic
from .gltf_exporter import GLBExporter, read_glb

__all__ = [
    "SchematicExporter",
    "GLBExporter",
    "read_schematic",
    "read_glb",
]
