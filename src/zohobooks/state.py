from dataclasses import dataclass


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str

    def rotated(self, access_token: str, refresh_token: str | None) -> "TokenPair":
        """Return the pair after a token exchange; an empty refresh token keeps the old one."""
        return TokenPair(access_token=access_token, refresh_token=refresh_token or self.refresh_token)

    def __repr__(self) -> str:
        return "TokenPair(access_token=***, refresh_token=***)"
