from .memory_store import InMemoryPortfolioStore
from .redis_store import RedisPortfolioStore

__all__ = ["InMemoryPortfolioStore", "RedisPortfolioStore"]
