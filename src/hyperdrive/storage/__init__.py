from .base import BaseStorage
from .sqlite import SQLiteStorage

__all__ = ["BaseStorage", "SQLiteStorage"]
