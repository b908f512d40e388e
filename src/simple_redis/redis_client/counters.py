"""Per-operation usage counters."""

from simple_redis.models import OperationName


class OperationCounter:
    """Counts successful operations by kind.

    Counts only grow between explicit resets.
    """

    def __init__(self) -> None:
        self._counts: dict[str, int] = {op.value: 0 for op in OperationName}

    def increment(self, operation: OperationName) -> None:
        self._counts[OperationName(operation).value] += 1

    def snapshot(self) -> dict[str, int]:
        """Return a copy of the current counts."""
        return dict(self._counts)

    def reset(self) -> None:
        for key in self._counts:
            self._counts[key] = 0

    def __getitem__(self, operation: OperationName) -> int:
        return self._counts[OperationName(operation).value]
