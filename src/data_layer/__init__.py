"""
Data Layer - static user/catalog store.

Provides:
- DataProvider: injectable access interface
- JsonDataProvider: mock_data.json backed provider (loaded once)
- InMemoryDataProvider: provider over prebuilt users (tests, embedding)
- parse_user_profile: raw profile text parser
"""

from src.data_layer.mock_data_loader import (
    DataLoadError,
    DataProvider,
    InMemoryDataProvider,
    JsonDataProvider,
    convert_to_user,
    get_static_model_outputs,
)
from src.data_layer.profile_parser import ParsedProfile, parse_genres, parse_user_profile

__all__ = [
    "DataLoadError",
    "DataProvider",
    "InMemoryDataProvider",
    "JsonDataProvider",
    "convert_to_user",
    "get_static_model_outputs",
    "ParsedProfile",
    "parse_genres",
    "parse_user_profile",
]
