"""Auth Pydantic schemas for request / response validation."""


from pydantic import BaseModel

from orcaa.users.schemas import CurrentUserOut


# ── Requests ────────────────────────────────────────────────────────

class RefreshRequest(BaseModel):
    refresh_token: str


# ── Responses ───────────────────────────────────────────────────────

class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    user: CurrentUserOut


class RefreshResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
