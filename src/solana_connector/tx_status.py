import logging
from typing import Optional

from wallet_connector_base import TransactionStatusChecker, TxConfirmationStatus
from .client import SolanaRpcClient


class SolanaTransactionStatusChecker(TransactionStatusChecker):
    """Signature status lookups via getSignatureStatuses"""

    def __init__(self, rpc: SolanaRpcClient, logger: Optional[logging.Logger] = None):
        self.rpc = rpc
        self.logger = logger or logging.getLogger(__name__)

    async def check(self, signature: str) -> str:
        try:
            result = await self.rpc.call("getSignatureStatuses", [
                [signature],
                {"searchTransactionHistory": True}
            ])
        except Exception as e:
            self.logger.error(f"Error verifying transaction {signature}: {e}")
            return TxConfirmationStatus.UNKNOWN

        return self.normalize_status(result)

    @staticmethod
    def normalize_status(result: Optional[dict]) -> str:
        """Collapse an RPC signature status into a TxConfirmationStatus value"""
        values = (result or {}).get("value") or []
        status = values[0] if values else None

        if status is None:
            return TxConfirmationStatus.NOT_FOUND
        if status.get("err") is not None:
            return TxConfirmationStatus.FAILED

        confirmation = status.get("confirmationStatus")
        if confirmation in TxConfirmationStatus.SUCCESS_STATES:
            return confirmation
        if confirmation == "processed" or confirmation is None:
            return TxConfirmationStatus.PENDING
        return TxConfirmationStatus.UNKNOWN
