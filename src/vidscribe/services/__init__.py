"""Service layer for vidscribe."""

from typing import Protocol


class SupportsAclose(Protocol):
    """Protocol describing resources that hold network connections."""

    async def aclose(self) -> None:
        """Release any acquired resources."""


__all__ = ["SupportsAclose"]
