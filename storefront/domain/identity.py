# storefront/domain/identity.py
"""
Caller identity: either an authenticated user or an anonymous session.

Every cart/order operation receives one of these explicitly instead of a
nullable (user_id, session_id) pair.
"""
import secrets
import time
from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class UserIdentity:
    user_id: int

    @property
    def key(self) -> str:
        return f"user:{self.user_id}"

    def owner_fields(self) -> dict:
        return {"user_id": self.user_id, "session_id": None}

    def filter_for(self, model):
        return model.user_id == self.user_id


@dataclass(frozen=True)
class SessionIdentity:
    session_id: str

    @property
    def key(self) -> str:
        return f"session:{self.session_id}"

    def owner_fields(self) -> dict:
        return {"user_id": None, "session_id": self.session_id}

    def filter_for(self, model):
        return model.session_id == self.session_id


Identity = Union[UserIdentity, SessionIdentity]


def new_session_id() -> str:
    """session_<epoch ms>_<9 random chars>"""
    return f"session_{int(time.time() * 1000)}_{secrets.token_hex(5)[:9]}"
