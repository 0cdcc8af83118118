from contextvars import ContextVar
from typing import Optional

_request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
_client_id_ctx: ContextVar[Optional[str]] = ContextVar("client_id", default=None)


def set_request_id(request_id: str):
    return _request_id_ctx.set(request_id)


def get_request_id() -> Optional[str]:
    return _request_id_ctx.get()


def set_client_id(client_id: Optional[str]):
    return _client_id_ctx.set(client_id)


def get_client_id() -> Optional[str]:
    return _client_id_ctx.get()
