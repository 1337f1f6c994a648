"""
Interfaces for rowmap's pluggable collaborators.
"""

from .logger import ILogger

__all__ = ["ILogger"]
