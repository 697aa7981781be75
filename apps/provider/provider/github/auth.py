"""GitHub App authentication.

Builds the short-lived JWT that identifies the App itself. The JWT is
only good for App-level endpoints (listing installations, minting
installation tokens); everything repository-scoped uses an installation
token obtained with it.

GitHub App auth flow:
1. Sign a JWT with the App's private key (this module)
2. Exchange the JWT for an installation access token
3. Use the installation token for API calls scoped to that installation
"""

import json
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from jwt import api_jws
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from provider.errors import KeyParseError, SigningError
from provider.github.types import AppIdentity, SignedAppJWT

# RFC 7519 §4.1.4: the token MUST NOT be accepted on or after exp.
# GitHub rejects App JWTs that live longer than ten minutes; five keeps
# a wide margin for clock drift between us and the API.
JWT_LIFETIME = timedelta(minutes=5)


def _load_rsa_key(private_key_pem: bytes) -> rsa.RSAPrivateKey:
    try:
        key = serialization.load_pem_private_key(private_key_pem, password=None)
    except (ValueError, TypeError) as exc:
        raise KeyParseError(f"failed to parse private key: {exc}") from exc
    if not isinstance(key, rsa.RSAPrivateKey):
        raise KeyParseError(
            f"failed to parse private key: expected RSA, got {type(key).__name__}"
        )
    return key


def create_app_jwt(identity: AppIdentity, now: Optional[datetime] = None) -> SignedAppJWT:
    """Sign a JWT for authenticating as the GitHub App.

    Claims are exactly ``iss`` (the numeric App ID), ``iat`` and ``exp``,
    with ``exp`` fixed at ``iat`` + 5 minutes. Timestamps are truncated to
    whole seconds before signing, so the returned ``issued_at`` and
    ``expires_at`` match the encoded claims.

    Raises:
        KeyParseError: The private key is not an RSA PEM.
        SigningError: The token could not be signed.
    """
    issued_at = (now or datetime.now(timezone.utc)).replace(microsecond=0)
    expires_at = issued_at + JWT_LIFETIME

    key = _load_rsa_key(identity.private_key_pem)
    payload = {
        "iss": identity.application_id,
        "iat": int(issued_at.timestamp()),
        "exp": int(expires_at.timestamp()),
    }

    # GitHub wants a numeric iss, which jwt.encode refuses on current
    # PyJWT. Serialise the claims ourselves and sign them as a plain JWS.
    claims = json.dumps(payload, separators=(",", ":")).encode()
    try:
        token = api_jws.encode(claims, key, algorithm="RS256", headers={"typ": "JWT"})
    except (jwt.PyJWTError, ValueError, TypeError) as exc:
        raise SigningError(f"failed to sign private key: {exc}") from exc

    return SignedAppJWT(token=token, issued_at=issued_at, expires_at=expires_at)
