"""Schema returned by the health endpoint."""

from pydantic import BaseModel


class HealthRead(BaseModel):
    status: str
    active_connections: int
    push_enabled: bool


__all__ = ["HealthRead"]
