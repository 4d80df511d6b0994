"""HTTP Basic authentication backed by a secret provider"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from fastapi import HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from fastapi.security.utils import get_authorization_scheme_param

from htauth.hashes import check_secret
from htauth.providers import SecretProvider

logger = logging.getLogger(__name__)

Verifier = Callable[[str, str], bool]

# Same message for every failure so clients cannot tell unknown users apart
FAILURE_DETAIL = "Invalid authentication credentials"


@dataclass
class AuthInfo:
    """Outcome of authenticating one request"""

    authenticated: bool = False
    username: str = ""
    response_headers: dict[str, str] = field(default_factory=dict)


class BasicAuthenticator:
    """
    Authenticate requests with HTTP Basic credentials.

    Usage:
        auth = BasicAuthenticator("example.com", HtpasswdFileProvider(".htpasswd"))

        @app.get("/private")
        def private(user: str = Depends(auth.require_user)):
            ...
    """

    def __init__(
        self,
        realm: str,
        secrets: Optional[SecretProvider],
        verifier: Optional[Verifier] = check_secret,
        proxy: bool = False,
    ):
        if secrets is None:
            raise ValueError("BasicAuthenticator requires a secret provider")
        if verifier is None:
            raise ValueError("BasicAuthenticator requires a password verifier")
        self.realm = realm
        self.secrets = secrets
        self.verifier = verifier
        self.proxy = proxy
        # Parses Authorization; Proxy-Authorization has no FastAPI scheme
        self._basic = HTTPBasic(realm=realm, auto_error=False)

    @property
    def authorization_header(self) -> str:
        return "Proxy-Authorization" if self.proxy else "Authorization"

    @property
    def challenge_header(self) -> str:
        return "Proxy-Authenticate" if self.proxy else "WWW-Authenticate"

    @property
    def unauthorized_status(self) -> int:
        if self.proxy:
            return status.HTTP_407_PROXY_AUTHENTICATION_REQUIRED
        return status.HTTP_401_UNAUTHORIZED

    def challenge_headers(self) -> dict[str, str]:
        """Headers asking the client to authenticate"""
        return {self.challenge_header: f'Basic realm="{self.realm}"'}

    async def credentials(self, request: Request) -> Optional[tuple[str, str]]:
        """Extract (username, password) from the request, None if absent or malformed"""
        if self.proxy:
            return self._proxy_credentials(request)

        try:
            creds: Optional[HTTPBasicCredentials] = await self._basic(request)
        except HTTPException:
            # HTTPBasic raises on undecodable credentials even with auto_error=False
            logger.debug("Malformed Basic credentials")
            return None
        if creds is None:
            return None
        return creds.username, creds.password

    def _proxy_credentials(self, request: Request) -> Optional[tuple[str, str]]:
        scheme, param = get_authorization_scheme_param(
            request.headers.get(self.authorization_header)
        )
        if not param or scheme.lower() != "basic":
            return None

        try:
            decoded = base64.b64decode(param, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            logger.debug("Malformed Basic proxy credentials")
            return None

        username, sep, password = decoded.partition(":")
        if not sep:
            return None
        return username, password

    async def check_auth(self, request: Request) -> Optional[str]:
        """
        Check the request's Basic credentials.

        Returns:
            The authenticated username, None if authentication failed
        """
        creds = await self.credentials(request)
        if creds is None:
            return None

        username, password = creds
        secret = self.secrets(request, username, self.realm)
        if not secret or not self.verifier(password, secret):
            logger.info(f"Authentication failed for user {username!r}")
            return None
        return username

    async def authenticate(self, request: Request) -> AuthInfo:
        """Authenticate the request and attach the result to ``request.state.auth_info``"""
        username = await self.check_auth(request)
        if username is None:
            info = AuthInfo(response_headers=self.challenge_headers())
        else:
            info = AuthInfo(authenticated=True, username=username)
        request.state.auth_info = info
        return info

    async def require_user(self, request: Request) -> str:
        """
        Dependency that requires valid Basic credentials.
        Returns username if authenticated, raises HTTPException otherwise.
        """
        info = await self.authenticate(request)
        if not info.authenticated:
            raise HTTPException(
                status_code=self.unauthorized_status,
                detail=FAILURE_DETAIL,
                headers=info.response_headers,
            )
        return info.username

    async def optional_user(self, request: Request) -> Optional[str]:
        """Dependency returning the username if valid credentials were sent, None otherwise"""
        info = await self.authenticate(request)
        return info.username if info.authenticated else None


def auth_info(request: Request) -> Optional[AuthInfo]:
    """Return the AuthInfo attached by BasicAuthenticator.authenticate, if any"""
    return getattr(request.state, "auth_info", None)
