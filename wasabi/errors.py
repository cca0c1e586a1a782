"""Error type shared by the whole package."""


class WasabiError(Exception):
    """Raised where an operation fails with a short, fixed reason."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason