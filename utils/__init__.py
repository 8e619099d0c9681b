"""Utility modules for the attendance portal."""
from .config import config
from .logger import logger

__all__ = ['config', 'logger']
