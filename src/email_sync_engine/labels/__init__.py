"""Label filtering, per-thread aggregation and the counted label tree."""

from .aggregator import (
    DEFAULT_TOP_N,
    SYSTEM_LABELS,
    aggregate_by_label,
    build_label_tree,
    filter_user_labels,
    is_system_label,
)

__all__ = [
    "DEFAULT_TOP_N",
    "SYSTEM_LABELS",
    "aggregate_by_label",
    "build_label_tree",
    "filter_user_labels",
    "is_system_label",
]
