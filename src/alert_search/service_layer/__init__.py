"""Search pipeline and result shaping."""

from alert_search.service_layer.result_shaper import ResultShaper, coerce_timestamp
from alert_search.service_layer.search_pipeline import SearchPipeline


__all__ = [
    "ResultShaper",
    "SearchPipeline",
    "coerce_timestamp",
]
