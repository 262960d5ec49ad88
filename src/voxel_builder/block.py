"""
Block Materials

Typed block cells for the legacy schematic format. A block is a material id
plus an auxiliary data byte (wool color, orientation, ...). Material id 0
(air) is the EMPTY sentinel regardless of its aux byte.

The name -> material table is built once at process start and is read-only
afterwards. Looking a name up before the table exists is a programming error.
"""

from dataclasses import dataclass
from enum import IntEnum
from types import MappingProxyType, SimpleNamespace
from typing import ClassVar, Mapping, Optional, Tuple
import logging
import threading
import numpy as np

from .errors import InvalidValueEncoding, MaterialTableNotInitialized


logger = logging.getLogger(__name__)


MATERIAL_NAMES = (
    "air", "stone", "grass", "dirt", "cobblestone", "planks", "sapling",
    "bedrock", "flowing_water", "water", "flowing_lava", "lava", "sand",
    "gravel", "gold_ore", "iron_ore", "coal_ore", "log", "leaves", "sponge",
    "glass", "lapis_ore", "lapis_block", "dispenser", "sandstone", "noteblock",
    "bed", "golden_rail", "detector_rail", "sticky_piston", "web", "tallgrass",
    "deadbush", "piston", "piston_head", "wool", "piston_extension",
    "yellow_flower", "red_flower", "brown_mushroom", "red_mushroom",
    "gold_block", "iron_block", "double_stone_slab", "stone_slab",
    "brick_block", "tnt", "bookshelf", "mossy_cobblestone", "obsidian",
    "torch", "fire", "mob_spawner", "oak_stairs", "chest", "redstone_wire",
    "diamond_ore", "diamond_block", "crafting_table", "wheat", "farmland",
    "furnace", "lit_furnace", "standing_sign", "wooden_door", "ladder", "rail",
    "stone_stairs", "wall_sign", "lever", "stone_pressure_plate", "iron_door",
    "wooden_pressure_plate", "redstone_ore", "lit_redstone_ore",
    "unlit_redstone_torch", "redstone_torch", "stone_button", "snow_layer",
    "ice", "snow", "cactus", "clay", "reeds", "jukebox", "fence", "pumpkin",
    "netherrack", "soul_sand", "glowstone", "portal", "lit_pumpkin", "cake",
    "unpowered_repeater", "powered_repeater", "stained_glass", "trapdoor",
    "monster_egg", "stonebrick", "brown_mushroom_block", "red_mushroom_block",
    "iron_bars", "glass_pane", "melon_block", "pumpkin_stem", "melon_stem",
    "vine", "fence_gate", "brick_stairs", "stone_brick_stairs", "mycelium",
    "waterlily", "nether_brick", "nether_brick_fence", "nether_brick_stairs",
    "nether_wart", "enchanting_table", "brewing_stand", "cauldron",
    "end_portal", "end_portal_frame", "end_stone", "dragon_egg",
    "redstone_lamp", "lit_redstone_lamp", "double_wooden_slab",
    "wooden_slab", "cocoa", "sandstone_stairs", "emerald_ore", "ender_chest",
    "tripwire_hook", "tripwire", "emerald_block", "spruce_stairs",
    "birch_stairs", "jungle_stairs", "command_block", "beacon",
    "cobblestone_wall", "flower_pot", "carrots", "potatoes", "wooden_button",
    "skull", "anvil", "trapped_chest", "light_weighted_pressure_plate",
    "heavy_weighted_pressure_plate", "unpowered_comparator",
    "powered_comparator", "daylight_detector", "redstone_block",
    "quartz_ore", "hopper", "quartz_block", "quartz_stairs", "activator_rail",
    "dropper", "stained_hardened_clay", "stained_glass_pane", "leaves2",
    "log2", "acacia_stairs", "dark_oak_stairs", "slime", "barrier",
    "iron_trapdoor", "prismarine", "sea_lantern", "hay_block", "carpet",
    "hardened_clay", "coal_block", "packed_ice", "double_plant",
    "standing_banner", "wall_banner", "daylight_detector_inverted",
    "red_sandstone", "red_sandstone_stairs", "double_stone_slab2",
    "stone_slab2", "spruce_fence_gate", "birch_fence_gate",
    "jungle_fence_gate", "dark_oak_fence_gate", "acacia_fence_gate",
    "spruce_fence", "birch_fence", "jungle_fence", "dark_oak_fence",
    "acacia_fence", "spruce_door", "birch_door", "jungle_door", "acacia_door",
    "dark_oak_door", "end_rod", "chorus_plant", "chorus_flower",
    "purpur_block", "purpur_pillar", "purpur_stairs", "purpur_double_slab",
    "purpur_slab", "end_bricks", "beetroots", "grass_path", "end_gateway",
    "repeating_command_block", "chain_command_block", "frosted_ice", "magma",
    "nether_wart_block", "red_nether_brick", "bone_block", "structure_void",
    "observer", "white_shulker_box", "orange_shulker_box",
    "magenta_shulker_box", "light_blue_shulker_box", "yellow_shulker_box",
    "lime_shulker_box", "pink_shulker_box", "gray_shulker_box",
    "light_gray_shulker_box", "cyan_shulker_box", "purple_shulker_box",
    "blue_shulker_box", "brown_shulker_box", "green_shulker_box",
    "red_shulker_box", "black_shulker_box", "structure_block",
)

# Material ids are the position in the legacy table
Material = IntEnum("Material", [(name, i) for i, name in enumerate(MATERIAL_NAMES)])

# Aux byte values for colored blocks (wool, stained glass, carpet, ...)
BLOCK_COLORS = (
    "White", "Orange", "Magenta", "LightBlue", "Yellow", "Lime", "Pink",
    "Gray", "LightGray", "Cyan", "Purple", "Blue", "Brown", "Green", "Red",
    "Black",
)


class MaterialTable:
    """
    Process-wide name -> Material lookup.

    initialize() builds the map once; afterwards the map is an immutable
    MappingProxyType shared by every build.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._by_name: Optional[Mapping[str, Material]] = None

    def initialize(self) -> "MaterialTable":
        with self._lock:
            if self._by_name is None:
                self._by_name = MappingProxyType({m.name: m for m in Material})
                logger.debug("material table initialized with %d entries", len(self._by_name))
        return self

    @property
    def initialized(self) -> bool:
        return self._by_name is not None

    def require(self):
        if self._by_name is None:
            raise MaterialTableNotInitialized("material table not initialized")

    def lookup(self, name: str) -> Material:
        """Find a material by its exact (case sensitive) name."""
        self.require()
        try:
            return self._by_name[name]
        except KeyError:
            raise InvalidValueEncoding(name, reason="material not found") from None

    def names(self) -> Tuple[str, ...]:
        self.require()
        return tuple(self._by_name)


MATERIALS = MaterialTable()


def initialize_materials() -> MaterialTable:
    """Build the shared material table. Call once during start-up."""
    return MATERIALS.initialize()


def block_data_namespace() -> SimpleNamespace:
    """The BlockData table exposed to build scripts."""
    return SimpleNamespace(
        Color=SimpleNamespace(**{name: i for i, name in enumerate(BLOCK_COLORS)})
    )


@dataclass(frozen=True)
class Block:
    """A legacy block: material id plus auxiliary data byte."""

    material: Material
    data: int = 0

    CHANNELS: ClassVar[int] = 2
    HAS_COLOR: ClassVar[bool] = False
    EMPTY: ClassVar["Block"]

    @classmethod
    def parse(
        cls,
        text: str,
        aux: Optional[int] = None,
        table: Optional[MaterialTable] = None
    ) -> "Block":
        table = table or MATERIALS
        return cls(table.lookup(text), 0 if aux is None else aux)

    def to_channels(self) -> Tuple[int, ...]:
        return (int(self.material), self.data)

    @classmethod
    def from_channels(cls, row) -> "Block":
        return cls(Material(int(row[0])), int(row[1]))

    @staticmethod
    def empty_mask(data: np.ndarray) -> np.ndarray:
        return data[..., 0] == 0


Block.EMPTY = Block(Material.air)
