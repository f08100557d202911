"""Shared API dependencies for authentication and service access."""

from collections.abc import Callable, Iterable
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from smartwill_gate.core.container import ServiceContainer
from smartwill_gate.core.errors import AuthError, MissingToken
from smartwill_gate.core.security import Identity, require_role


def http_error(err: AuthError) -> HTTPException:
    """Translate a core failure into the HTTP response the client sees.

    Args:
        err: Failure raised by a service

    Returns:
        HTTPException carrying the failure's status and non-leaking detail
    """
    headers = None
    if err.status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}
    return HTTPException(status_code=err.status_code, detail=err.to_detail(), headers=headers)


def get_container(request: Request) -> ServiceContainer:
    """Return the service container the application was started with."""
    container: ServiceContainer = request.app.state.container
    return container


ContainerDep = Annotated[ServiceContainer, Depends(get_container)]

# Security scheme for bearer tokens
bearer_scheme = HTTPBearer(auto_error=False)


def get_bearer_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> str:
    """Return the raw token from an ``Authorization: Bearer`` header.

    Raises:
        HTTPException: If the header is absent, empty or uses another scheme
    """
    if credentials is None or not credentials.credentials.strip():
        raise http_error(MissingToken())
    return credentials.credentials.strip()


BearerTokenDep = Annotated[str, Depends(get_bearer_token)]


def get_current_identity(
    container: ContainerDep,
    token: BearerTokenDep,
) -> Identity:
    """Resolve the bearer token on the request to a live identity.

    Args:
        container: Service container
        token: Bearer token presented with the request

    Returns:
        Identity rebuilt from the user store

    Raises:
        HTTPException: If the token is expired, invalid or orphaned
    """
    try:
        return container.authenticator.authenticate(token)
    except AuthError as err:
        raise http_error(err) from err


# Type alias for current identity dependency
CurrentIdentityDep = Annotated[Identity, Depends(get_current_identity)]


def require_roles(roles: Iterable[str]) -> Callable[[Identity], Identity]:
    """Build a dependency that admits only identities holding one of ``roles``."""
    allowed = tuple(roles)

    def _dependency(identity: CurrentIdentityDep) -> Identity:
        try:
            return require_role(identity, allowed)
        except AuthError as err:
            raise http_error(err) from err

    return _dependency


def get_stats_reader(identity: CurrentIdentityDep, container: ContainerDep) -> Identity:
    """Admit identities whose role may read challenge statistics."""
    return require_roles(container.settings.stats_roles)(identity)


StatsReaderDep = Annotated[Identity, Depends(get_stats_reader)]
