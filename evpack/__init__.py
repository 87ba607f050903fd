"""evpack - content-addressed evidence packs."""

__version__ = "0.1.0"

TOOL_NAME = "pack"
