from dataclasses import dataclass
from datetime import datetime, UTC, timedelta
from typing import Optional


@dataclass
class Tokens:
    access_token: str
    id_token: str
    id_token_claims: dict

    access_expires_at: datetime
    refresh_token: Optional[str]

    raw_response: dict

    @staticmethod
    def from_response(
        response: dict,
        id_token_claims: dict,
        request_time: Optional[datetime] = None,
    ) -> "Tokens":
        # The default argument value cannot be used for this,
        # because `datetime.now(UTC)` would only be resolved once.
        if request_time is None:
            request_time = datetime.now(UTC)

        expires_in = response.get("expires_in", None)
        if expires_in is None:
            raise ValueError("Missing expires_in in access token response")

        return Tokens(
            access_token=response["access_token"],
            id_token=response["id_token"],
            id_token_claims=id_token_claims,
            access_expires_at=request_time + timedelta(seconds=int(expires_in)),
            # Tunnistamo only issues refresh tokens for some client types
            refresh_token=response.get("refresh_token"),
            raw_response=response,
        )
