"""
Objlens Shared Module
=====================

Configuration and logging utilities used across objlens.
"""

from shared.config import ObjLensConfig, get_config
from shared.logger import ObjLensLogger

__all__ = ["ObjLensConfig", "ObjLensLogger", "get_config"]
