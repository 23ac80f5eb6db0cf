from signboard.schemas.notice import Notice


class Notifier:
    """Collects transient notices until the caller drains them into a response."""

    def __init__(self) -> None:
        self._pending: list[Notice] = []

    def success(self, message: str) -> None:
        self._pending.append(Notice(level="success", message=message))

    def info(self, message: str) -> None:
        self._pending.append(Notice(level="info", message=message))

    def warning(self, message: str) -> None:
        self._pending.append(Notice(level="warning", message=message))

    def error(self, message: str) -> None:
        self._pending.append(Notice(level="error", message=message))

    def drain(self) -> list[Notice]:
        pending, self._pending = self._pending, []
        return pending
