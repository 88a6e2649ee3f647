"""
ATC Cattle Analysis API Package
"""

from .main import app
from .analyzer import analyzer
from .logger import log

__all__ = ['app', 'analyzer', 'log']
