from __future__ import annotations

import itertools
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from badgeauth.core.identity_provider import (
    ExchangeToken,
    IdentityAccount,
    IdentityAlreadyExists,
    IdentityProvider,
    IdentityProviderError,
)
from badgeauth.core.notifications import Message, NotificationError, NotificationGateway


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self._t = float(start)

    def time(self) -> float:
        return self._t

    def advance(self, seconds: float) -> None:
        self._t += float(seconds)


class FakeIdentityProvider(IdentityProvider):
    def __init__(self) -> None:
        self.accounts: Dict[str, IdentityAccount] = {}
        self.create_calls: int = 0
        self.exchange_calls: List[str] = []
        self.fail_create = False
        self.fail_exchange = False
        self.fail_lookup = False
        self._n = itertools.count(1)

    def find_account(self, key: str) -> Optional[IdentityAccount]:
        if self.fail_lookup:
            raise IdentityProviderError("lookup down")
        return self.accounts.get(key)

    def create_account(self, key: str, metadata: Dict[str, Any]) -> IdentityAccount:
        self.create_calls += 1
        if self.fail_create:
            raise IdentityProviderError("create down", status_code=500)
        if key in self.accounts:
            raise IdentityAlreadyExists("exists", status_code=422)
        acc = IdentityAccount(id=uuid.uuid4().hex, key=key, metadata=dict(metadata))
        self.accounts[key] = acc
        return acc

    def get_account(self, account_id: str) -> Optional[IdentityAccount]:
        for acc in self.accounts.values():
            if acc.id == account_id:
                return acc
        return None

    def issue_exchange_token(self, key: str) -> ExchangeToken:
        if self.fail_exchange:
            raise IdentityProviderError("link down", status_code=500)
        self.exchange_calls.append(key)
        n = next(self._n)
        return ExchangeToken(action_link=f"https://idp.test/verify?token=tok-{n}&type=magiclink", token=f"tok-{n}")


@dataclass
class FakeNotificationGateway(NotificationGateway):
    sent: List[Message] = field(default_factory=list)
    fail: bool = False

    def send(self, message: Message) -> None:
        if self.fail:
            raise NotificationError("mail api down")
        self.sent.append(message)

    def last_code(self) -> str:
        text = self.sent[-1].text
        return next(tok.strip(".") for tok in text.split() if tok.strip(".").isdigit() and len(tok.strip(".")) == 6)


@dataclass
class ListLogger:
    records: List[Tuple[str, str]] = field(default_factory=list)

    def _add(self, level: str, msg: str, *args: Any) -> None:
        self.records.append((level, (msg % args) if args else str(msg)))

    def debug(self, msg, *args, **_k): self._add("DEBUG", msg, *args)
    def info(self, msg, *args, **_k): self._add("INFO", msg, *args)
    def warning(self, msg, *args, **_k): self._add("WARNING", msg, *args)
    def error(self, msg, *args, **_k): self._add("ERROR", msg, *args)

    def messages(self, level: Optional[str] = None) -> List[str]:
        return [m for lvl, m in self.records if level is None or lvl == level]
