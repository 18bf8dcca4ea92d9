"""FastAPI dependencies shared by the routers."""

from typing import Generator

from fastapi import Request
from sqlalchemy.orm import Session

from certmint.context import ServiceContext


def get_context(request: Request) -> ServiceContext:
    return request.app.state.context


def get_db(request: Request) -> Generator[Session, None, None]:
    """Per-request database session, committed on success."""
    with get_context(request).session_scope() as db:
        yield db
