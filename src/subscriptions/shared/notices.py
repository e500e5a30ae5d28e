"""Transient shopper-facing notices (inline warnings, guard notifications)."""

from dataclasses import asdict, dataclass

DEFAULT_DISMISS_AFTER_SECONDS = 4


@dataclass(frozen=True)
class Notice:
    """A short message the UI shows and dismisses on its own after a few seconds."""

    code: str
    message: str
    level: str = "warning"
    dismiss_after_seconds: int = DEFAULT_DISMISS_AFTER_SECONDS

    def to_dict(self) -> dict:
        return asdict(self)
