from collections.abc import Generator
from dataclasses import dataclass

from fastapi import Request
from sqlalchemy.orm import Session

from orderledger.core.errors import AppError
from orderledger.db.session import get_db


@dataclass(frozen=True)
class Principal:
    id: str
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def db_session() -> Generator[Session, None, None]:
    """FastAPI dependency: DB session"""
    yield from get_db()


def current_principal(request: Request) -> Principal:
    """
    The authentication layer in front of this service sets request.state.principal.
    This dependency only reads it.
    """
    principal = getattr(request.state, "principal", None)
    if not isinstance(principal, Principal):
        raise AppError("Unauthorized", 401, "UNAUTHORIZED")
    return principal
