"""
FastAPI dependency injection providers.
"""

from functools import lru_cache
from typing import List

from config import Settings, get_settings
from src.data_layer.mock_data_loader import DataProvider, JsonDataProvider
from src.simulation_layer.backends import Backend, build_backends


@lru_cache
def get_cached_settings() -> Settings:
    return get_settings()


@lru_cache
def get_data_provider() -> DataProvider:
    return JsonDataProvider(get_cached_settings().paths.mock_data_path)


@lru_cache
def get_backends() -> List[Backend]:
    return build_backends(get_cached_settings())
