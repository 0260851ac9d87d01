from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

import requests


Purpose = Literal["signup", "reset"]


class NotificationError(RuntimeError):
    pass


@dataclass(frozen=True)
class Message:
    to: str
    subject: str
    text: str


def render_code_message(*, purpose: Purpose, to: str, product: str, employee_name: str, badge_number: str, code: str, ttl_minutes: int) -> Message:
    if purpose == "reset":
        subject = f"{product} PIN Reset - {employee_name}"
        text = (
            f"Employee {employee_name} (Badge: {badge_number}) is requesting a PIN reset.\n\n"
            f"Verification code: {code}\n\n"
            f"This code expires in {ttl_minutes} minutes."
        )
    else:
        subject = f"{product} Access Request - {employee_name}"
        text = (
            f"Employee {employee_name} (Badge: {badge_number}) is requesting access to {product}.\n\n"
            f"Please provide them with this verification code: {code}\n\n"
            f"This code expires in {ttl_minutes} minutes.\n\n"
            "If you did not expect this request, please contact IT."
        )
    return Message(to=to, subject=subject, text=text)


class NotificationGateway:
    def send(self, message: Message) -> None:
        raise NotImplementedError


@dataclass
class EmailNotificationGateway(NotificationGateway):
    """Transactional mail API: POST {from, to[], subject, text} with a bearer key."""

    api_url: str
    api_key: str
    from_address: str
    timeout_seconds: float = 10.0

    def send(self, message: Message) -> None:
        payload = {"from": self.from_address, "to": [message.to], "subject": message.subject, "text": message.text}
        try:
            r = requests.post(
                self.api_url,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
                timeout=self.timeout_seconds,
            )
        except requests.RequestException as e:
            raise NotificationError(f"Mail API unreachable: {type(e).__name__}") from e
        if not (200 <= r.status_code < 300):
            raise NotificationError(f"Mail API rejected message: HTTP {r.status_code}")
