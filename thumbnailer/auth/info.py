"""Authorization decisions."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class AuthInfo(BaseModel):
    """Outcome of an authorization check.

    A 2xx status without a redirect authorizes the request. A redirect URI
    (with a 3xx status) sends the client elsewhere, and a 4xx status denies
    it. A 401 must carry a ``WWW-Authenticate`` challenge.
    """

    model_config = ConfigDict(frozen=True)

    response_status: int = Field(default=200, ge=100, le=599)
    redirect_uri: str | None = None
    challenge_value: str | None = None

    @model_validator(mode="after")
    def _check_consistency(self) -> AuthInfo:
        if self.redirect_uri is not None and not 300 <= self.response_status < 400:
            raise ValueError("A redirect requires a 3xx status")
        if self.response_status == 401 and not self.challenge_value:
            raise ValueError("A 401 status requires a challenge value")
        return self

    @property
    def is_authorized(self) -> bool:
        return self.redirect_uri is None and 200 <= self.response_status < 300

    @classmethod
    def authorized(cls) -> AuthInfo:
        return cls()

    @classmethod
    def forbidden(cls, status: int = 403) -> AuthInfo:
        return cls(response_status=status)

    @classmethod
    def unauthorized(cls, challenge: str) -> AuthInfo:
        return cls(response_status=401, challenge_value=challenge)

    @classmethod
    def redirect(cls, uri: str, status: int = 302) -> AuthInfo:
        return cls(response_status=status, redirect_uri=uri)

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> AuthInfo:
        """Build from the mapping form a delegate may return.

        Recognized keys: ``status_code``, ``location``, ``challenge``.
        """
        return cls(
            response_status=data.get("status_code", 200),
            redirect_uri=data.get("location"),
            challenge_value=data.get("challenge"),
        )
