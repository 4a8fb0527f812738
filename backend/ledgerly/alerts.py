# Overview: User-facing alert collaborator used by the store for failures and confirmations.

from __future__ import annotations

from typing import Protocol

from flask import current_app


class Alerter(Protocol):
    def error(self, message: str) -> None: ...

    def confirm(self, message: str) -> bool: ...


class LoggingAlerter:
    """
    Headless alerter: errors go to the application log and every
    confirmation is accepted (the CLI asks the operator itself).
    """

    def __init__(self, *, auto_confirm: bool = True):
        self.auto_confirm = auto_confirm

    def error(self, message: str) -> None:
        current_app.logger.warning("Alert: %s", message)

    def confirm(self, message: str) -> bool:
        current_app.logger.info("Confirm (%s): %s", "yes" if self.auto_confirm else "no", message)
        return self.auto_confirm
