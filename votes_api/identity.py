"""
Advisory identity resolution.

ID tokens are RS256 JWTs issued by the identity provider.  They are checked
against the provider's published signing keys (JWKS), the project id taken
from the service credential file (``aud``) and the matching issuer.

A failed verification never blocks a request: the caller simply treats the
request as anonymous.
"""
import json
import logging
from dataclasses import dataclass
from pathlib import Path

import jwt
from starlette.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)

ISSUER_PREFIX = "https://securetoken.google.com/"


@dataclass(frozen=True)
class Identity:
    uid: str
    email: str | None = None


class TokenVerificationError(Exception):
    pass


class TokenVerifier:
    def __init__(self, project_id: str, jwks_url: str, leeway: int = 0) -> None:
        self.project_id = project_id
        self.issuer = f"{ISSUER_PREFIX}{project_id}"
        self.leeway = leeway
        self._jwks = jwt.PyJWKClient(jwks_url, cache_keys=True)

    @classmethod
    def from_credentials_file(cls, path: str | Path, jwks_url: str) -> "TokenVerifier":
        with open(path, encoding="utf-8") as fh:
            credentials = json.load(fh)
        project_id = credentials.get("project_id")
        if not project_id:
            raise ValueError(f"{path}: missing 'project_id'")
        return cls(project_id, jwks_url)

    def decode(self, token: str) -> Identity:
        """Blocking verification (fetches signing keys on a cache miss)."""
        try:
            signing_key = self._jwks.get_signing_key_from_jwt(token)
            claims = jwt.decode(
                token,
                signing_key.key,
                algorithms=["RS256"],
                audience=self.project_id,
                issuer=self.issuer,
                leeway=self.leeway,
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.PyJWTError as exc:
            raise TokenVerificationError(str(exc)) from exc

        uid = claims.get("user_id") or claims["sub"]
        if not uid:
            raise TokenVerificationError("empty subject")
        return Identity(uid=uid, email=claims.get("email"))

    async def verify(self, token: str) -> Identity:
        return await run_in_threadpool(self.decode, token)


def load_verifier(credentials_file: str, jwks_url: str) -> TokenVerifier | None:
    """
    Build the verifier from the credential file, or return None (every
    request anonymous) when the file is absent or unusable.
    """
    path = Path(credentials_file)
    if not path.is_file():
        logger.warning("Identity credentials %s not found; all requests are anonymous", path)
        return None
    try:
        verifier = TokenVerifier.from_credentials_file(path, jwks_url)
    except (OSError, ValueError) as exc:
        logger.warning("Identity credentials unusable (%s); all requests are anonymous", exc)
        return None
    logger.info("Identity verification enabled for project %s", verifier.project_id)
    return verifier
