"""The authenticated caller of a request."""

from dataclasses import dataclass
from enum import StrEnum

from ledgergate.features.api_key.models import ApiKey
from ledgergate.features.user.models import User

from .models import AccessToken


class AuthMethod(StrEnum):
    OAUTH = "oauth"
    API_KEY = "api_key"


@dataclass(frozen=True)
class OAuthCredential:
    access_token: AccessToken


@dataclass(frozen=True)
class ApiKeyCredential:
    api_key: ApiKey


@dataclass(frozen=True)
class Principal:
    """User plus the credential that authenticated the request.

    Resolved once per request by the access gate, which keeps it in the audit
    context for the lifetime of the request.
    """

    user: User
    credential: OAuthCredential | ApiKeyCredential
    scopes: frozenset[str]

    @property
    def family_id(self) -> int:
        return self.user.family_id

    @property
    def auth_method(self) -> AuthMethod:
        if isinstance(self.credential, ApiKeyCredential):
            return AuthMethod.API_KEY
        return AuthMethod.OAUTH

    @property
    def api_key(self) -> ApiKey | None:
        if isinstance(self.credential, ApiKeyCredential):
            return self.credential.api_key
        return None

    @property
    def access_token(self) -> AccessToken | None:
        if isinstance(self.credential, OAuthCredential):
            return self.credential.access_token
        return None

    @property
    def auth_label(self) -> str:
        """Human-readable credential description for log lines."""
        if isinstance(self.credential, ApiKeyCredential):
            return f"API Key: {self.credential.api_key.name}"
        return "OAuth Token"

    @classmethod
    def from_access_token(cls, user: User, access_token: AccessToken) -> "Principal":
        return cls(user=user, credential=OAuthCredential(access_token), scopes=frozenset(access_token.scopes))

    @classmethod
    def from_api_key(cls, user: User, api_key: ApiKey) -> "Principal":
        return cls(user=user, credential=ApiKeyCredential(api_key), scopes=frozenset(api_key.scopes))
