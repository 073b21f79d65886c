"""
Bootstrap for the built-in block types.
"""

from __future__ import annotations

from automation_engine.blocks import BUILTIN_BLOCK_TYPES
from automation_engine.registry.block_registry import BlockRegistry


def _register_builtin_blocks(registry: BlockRegistry) -> None:
    for definition in BUILTIN_BLOCK_TYPES:
        registry.register(definition)


def build_default_registry() -> BlockRegistry:
    """Return a fresh registry holding every built-in block type."""
    registry = BlockRegistry()
    _register_builtin_blocks(registry)
    return registry


__all__ = ["build_default_registry"]
