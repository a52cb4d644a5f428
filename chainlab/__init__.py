"""An in-memory blockchain, a virtual filesystem over it, and sample services."""

__version__ = "0.1.0"
__all__ = ["traits", "memchain", "vfs_file", "bcfs", "examples"]