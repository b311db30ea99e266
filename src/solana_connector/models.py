from pydantic import BaseModel
from datetime import datetime

class CachedPrice(BaseModel):
    """Cached USD price with timestamp for TTL validation"""
    token_id: str
    price_usd: float
    cached_at: datetime
