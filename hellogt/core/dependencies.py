from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional

from hellogt.core.errors import AuthenticationRequired
from hellogt.core.firebase import verify_id_token
from hellogt.core.session import SessionContext, SessionRegistry


# Security scheme
security = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """
    Dependency to get the signed-in user's id.
    Validates the Firebase ID token sent by the app.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Sign in required",
        )
    try:
        return verify_id_token(credentials.credentials)
    except AuthenticationRequired as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
        )


def get_session_registry(request: Request) -> SessionRegistry:
    """Dependency to get the app-wide session registry."""
    return request.app.state.sessions


async def get_session(
    user_id: str = Depends(get_current_user_id),
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionContext:
    """
    Dependency to get the caller's session context.
    The first authenticated request signs the user in.
    """
    return await registry.sign_in(user_id)
