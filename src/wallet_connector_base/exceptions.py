class RebalancerError(Exception):
    """Base class for all rebalancer errors"""
    pass

class InputValidationError(RebalancerError):
    """Raised for bad input shape, invalid allocations or malformed addresses"""
    pass

class UpstreamUnavailableError(RebalancerError):
    """Raised when a price, balance, quote or RPC provider cannot be reached"""
    pass

class BalanceFetchError(UpstreamUnavailableError):
    """Raised when token balances for a wallet cannot be fetched"""
    pass

class NotFoundError(RebalancerError):
    """Raised when a requested record does not exist"""
    pass

class PlanNotFoundError(NotFoundError):
    """Raised when a rebalance plan does not exist for the caller"""
    pass

class OwnerNotFoundError(NotFoundError):
    """Raised when a wallet has never connected"""
    pass

class PlanAlreadyFinalizedError(RebalancerError):
    """Raised when acting on a plan that is no longer pending"""
    pass

class QuoteExpiredError(RebalancerError):
    """Raised when a stored quote can no longer be executed; request a fresh plan"""
    pass

class ConfirmationTimeoutError(RebalancerError):
    """Raised when a signature does not reach confirmed state within the polling window"""

    def __init__(self, message: str, last_status: str = 'pending'):
        super().__init__(message)
        self.last_status = last_status

class StoreError(RebalancerError):
    """Raised when the persistence store fails"""
    pass
