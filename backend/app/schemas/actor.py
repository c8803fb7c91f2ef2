from pydantic import BaseModel


class ActorContext(BaseModel):
    """Identity of the caller behind a mutation, plus best-effort request metadata."""

    user_id: int
    email: str
    name: str = ""
    role: str
    ip_address: str | None = None
    user_agent: str | None = None
    request_path: str | None = None
