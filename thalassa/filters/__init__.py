"""
Package filters provides the list filters shared by resource modules.
"""

from .filters import (
    Filter,
    FilterType,
    FilterKey,
    FilterKeyValue,
    LabelFilter,
    Filters,
)

__all__ = [
    'Filter',
    'FilterType',
    'FilterKey',
    'FilterKeyValue',
    'LabelFilter',
    'Filters',
]
