from .fetcher import Fetcher, FetcherConfig, build_session

__all__ = ["Fetcher", "FetcherConfig", "build_session"]
