from __future__ import annotations

import enum
import typing

from urllib3.util import make_headers

if typing.TYPE_CHECKING:
    from .result import WebTaskResult

__all__ = [
    "ChallengeMethod",
    "ChallengeDisposition",
    "Credential",
    "ChallengeCompletionHandler",
    "AuthenticationHandler",
    "parse_challenge",
]


class ChallengeMethod(str, enum.Enum):
    """The authentication scheme a server asked for."""

    DEFAULT = "Default"
    HTTP_BASIC = "Basic"
    HTTP_DIGEST = "Digest"
    NEGOTIATE = "Negotiate"
    NTLM = "NTLM"
    BEARER = "Bearer"

    @classmethod
    def from_scheme(cls, scheme: str | None) -> ChallengeMethod:
        """
        Map an ``auth-scheme`` token from a ``WWW-Authenticate`` header onto a
        method. Unknown or missing schemes map to :attr:`DEFAULT`.
        """
        if not scheme:
            return cls.DEFAULT
        wanted = scheme.strip().lower()
        for method in cls:
            if method.value.lower() == wanted:
                return method
        return cls.DEFAULT

    @property
    def is_retry_limited(self) -> bool:
        return self in (ChallengeMethod.DEFAULT, ChallengeMethod.HTTP_BASIC)


class ChallengeDisposition(enum.Enum):
    """How the transport should proceed with a challenge."""

    USE_CREDENTIAL = "use_credential"
    PERFORM_DEFAULT_HANDLING = "perform_default_handling"
    CANCEL_AUTHENTICATION_CHALLENGE = "cancel_authentication_challenge"
    REJECT_PROTECTION_SPACE = "reject_protection_space"


class Credential(typing.NamedTuple):
    user: str
    password: str

    def authorization_header(self) -> dict[str, str]:
        return make_headers(basic_auth=f"{self.user}:{self.password}")


ChallengeCompletionHandler = typing.Callable[
    [ChallengeDisposition, typing.Optional[Credential]], None
]
AuthenticationHandler = typing.Callable[
    [ChallengeMethod, ChallengeCompletionHandler], "WebTaskResult"
]


def parse_challenge(header: str | None) -> tuple[ChallengeMethod, dict[str, str]]:
    """
    Parse the first challenge of a ``WWW-Authenticate`` header value.

    Only the scheme and its ``name=value`` auth-params are understood, which
    is all that is needed to route the challenge:

    >>> parse_challenge('Basic realm="api"')
    (<ChallengeMethod.HTTP_BASIC: 'Basic'>, {'realm': 'api'})
    """
    if not header:
        return ChallengeMethod.DEFAULT, {}

    scheme, _, rest = header.strip().partition(" ")
    params: dict[str, str] = {}
    for item in rest.split(","):
        item = item.strip()
        if not item:
            continue
        name, sep, value = item.partition("=")
        name = name.strip()
        if not sep or " " in name:
            # Next challenge starts here; we only route on the first one.
            break
        params[name.lower()] = value.strip().strip('"')
    return ChallengeMethod.from_scheme(scheme), params
