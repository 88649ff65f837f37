from typing import Callable


class OptimisticUpdate:
    """
    A local cache change paired with its inverse.

    Managers apply the change before the remote write starts. When the
    write fails they raise OptimisticWriteFailed carrying this object, and
    the caller runs `revert()`.
    """

    def __init__(self, description: str, apply: Callable[[], None], revert: Callable[[], None]):
        self.description = description
        self._apply = apply
        self._revert = revert
        self.applied = False

    def apply(self) -> "OptimisticUpdate":
        if not self.applied:
            self._apply()
            self.applied = True
        return self

    def revert(self) -> None:
        # Reverting twice, or before apply, must not touch the cache
        if self.applied:
            self._revert()
            self.applied = False

    def __repr__(self) -> str:
        state = "applied" if self.applied else "pending"
        return f"<OptimisticUpdate {self.description} ({state})>"
