"""FastAPI integration for htauth."""

from htauth.web.auth import AuthInfo, BasicAuthenticator, auth_info

__all__ = ["AuthInfo", "BasicAuthenticator", "auth_info"]
