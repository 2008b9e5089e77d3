"""Core configuration, logging and result types"""

from .config import Config
from .result import Result

__all__ = ["Config", "Result"]
