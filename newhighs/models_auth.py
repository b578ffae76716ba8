from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, field_validator


class ExecuteOAuthRequest(BaseModel):
    # all optional so the route can answer missing fields with its own 400 payload
    oauth_token: Optional[str] = None
    oauth_token_secret: Optional[str] = None
    oauth_verifier: Optional[str] = None

    @field_validator("oauth_token", "oauth_token_secret", "oauth_verifier")
    @classmethod
    def strip_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        vv = v.strip()
        return vv or None

    def is_complete(self) -> bool:
        return bool(self.oauth_token and self.oauth_token_secret and self.oauth_verifier)


class RequestTokenOut(BaseModel):
    oauth_token: str
    oauth_token_secret: str
    auth_url: str


class OAuthStatus(BaseModel):
    authenticated: bool
    error: Optional[str] = None
