from __future__ import annotations

from typing import Protocol


class EmailPort(Protocol):
    def send_email(self, *, to_email: str, subject: str, html_content: str) -> None:
        ...
