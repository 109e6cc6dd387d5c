"""
Post-transfer row count reconciliation
"""

import structlog

from .errors import TransferError, VerificationMismatch
from .stores import TargetStore

logger = structlog.get_logger()


class Verifier:
    """Checks the target table holds exactly the transferred rows"""

    def __init__(self, target: TargetStore):
        self.target = target

    def reconcile(self, table: str, transferred: int) -> int:
        """Return the target row count, raising VerificationMismatch when it differs"""
        try:
            actual = self.target.count(table)
        except Exception as e:
            raise TransferError(f"Unable to count target rows: {e}", table=table, step="verify") from e

        if actual != transferred:
            logger.error("Row count mismatch", table=table, transferred=transferred, actual=actual)
            raise VerificationMismatch(table, expected=transferred, actual=actual)

        logger.info("Row count verified", table=table, rows=actual)
        return actual
