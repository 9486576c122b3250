from .html_search import (
    DEFAULT_STRATEGIES,
    EmbeddedJsonStrategy,
    ExtractionStrategy,
    GlobalTextStrategy,
    LabeledNeighborhoodStrategy,
    SectionSumStrategy,
    extract_from_html,
    parse_html,
    search_html,
)
from .json_search import search_json
from .ranking import Ranker, rank, select

__all__ = [
    "DEFAULT_STRATEGIES",
    "EmbeddedJsonStrategy",
    "ExtractionStrategy",
    "GlobalTextStrategy",
    "LabeledNeighborhoodStrategy",
    "SectionSumStrategy",
    "Ranker",
    "extract_from_html",
    "parse_html",
    "rank",
    "search_html",
    "search_json",
    "select",
]
