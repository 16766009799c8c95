from .api_interface import build_default_engine, build_generators, get_engine

__all__ = [
    "build_default_engine",
    "build_generators",
    "get_engine",
]
