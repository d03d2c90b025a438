"""
List filters translated into query parameters.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Optional


class FilterType(str, Enum):
    """Kind of a list filter."""
    LABEL = "label"
    KEY_VALUE = "keyvalue"


class FilterKey(str, Enum):
    """Well-known filter keys accepted by list endpoints."""
    REGION = "region"
    ZONE = "zone"
    VPC_IDENTITY = "vpc"
    SUBNET_IDENTITY = "subnet"
    NAME = "name"
    STATUS = "status"


class Filter(ABC):
    """A filter that contributes query parameters to a list request."""

    @abstractmethod
    def filter_type(self) -> FilterType:
        pass

    @abstractmethod
    def to_params(self) -> Dict[str, str]:
        pass


@dataclass
class FilterKeyValue(Filter):
    """Exact match on a single field; empty or blank keys and values are ignored."""
    key: str = ""
    value: str = ""

    def filter_type(self) -> FilterType:
        return FilterType.KEY_VALUE

    def to_params(self) -> Dict[str, str]:
        key = self.key.value if isinstance(self.key, FilterKey) else (self.key or "")
        key, value = key.strip(), (self.value or "").strip()
        if not key or not value:
            return {}
        return {key: value}


@dataclass
class LabelFilter(Filter):
    """Match resources carrying all of the given labels."""
    match_labels: Dict[str, str] = field(default_factory=dict)

    def filter_type(self) -> FilterType:
        return FilterType.LABEL

    def to_params(self) -> Dict[str, str]:
        return {f"matchLabels[{name}]": value for name, value in self.match_labels.items()}


class Filters(list):
    """Ordered collection of filters for one list call."""

    def __init__(self, filters: Iterable[Filter] = ()):
        super().__init__(filters)

    def get_label_filter(self) -> Optional[LabelFilter]:
        for f in self:
            if isinstance(f, LabelFilter):
                return f
        return None

    def get_key_value_filter(self, key: str) -> Optional[FilterKeyValue]:
        key = key.value if isinstance(key, FilterKey) else key
        for f in self:
            if not isinstance(f, FilterKeyValue):
                continue
            current = f.key.value if isinstance(f.key, FilterKey) else f.key
            if current == key:
                return f
        return None

    def to_params(self) -> Dict[str, str]:
        """Merge every filter's parameters; later filters win on conflicts."""
        params: Dict[str, str] = {}
        for f in self:
            params.update(f.to_params())
        return params

    def apply(self, request):
        """Add the filters to ``request`` as query parameters and return it."""
        return request.set_query_params(self.to_params())
