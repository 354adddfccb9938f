from requests.auth import AuthBase


class HTTPBearerAuth(AuthBase):
    """Send an OAuth 2.0 / opaque access token as ``Authorization: Bearer``."""

    def __init__(self, token: str) -> None:
        self.token = token

    def __eq__(self, other: object) -> bool:
        return self.token == getattr(other, "token", None)

    def __ne__(self, other: object) -> bool:
        return not self == other

    def __call__(self, r):
        r.headers["Authorization"] = f"Bearer {self.token}"
        return r
