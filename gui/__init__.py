"""
GUI __init__.py
"""

from .widgets import (
    CircularButton,
    ToggleButton,
    StepRow,
    LCDScreen
)

__all__ = [
    'CircularButton',
    'ToggleButton',
    'StepRow',
    'LCDScreen'
]
