"""Transfer tool runners."""

from .base import BaseTransferRunner, TransferResult

__all__ = ["BaseTransferRunner", "TransferResult"]
