from .notification_service import NotificationService
from .portfolio_service import PortfolioService
from .sweep_service import RebalanceSweepService

__all__ = ["NotificationService", "PortfolioService", "RebalanceSweepService"]
