"""Dataset mutation operations."""

from dbfixtures.operations.executor import OperationExecutor

__all__ = ["OperationExecutor"]
