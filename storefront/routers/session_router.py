"""
Session endpoints.

Registration, the three sign-in flows and logout. Access tokens are
stateless JWTs; sign-in responses also set them as an HTTP-only cookie so
browser clients authenticate without handling the token themselves.
"""

from fastapi import APIRouter, Depends, Query, Response, status

from ..container import ServiceContainer
from ..dependencies import get_container, get_current_claims, get_session_service, require_role
from ..domain.entities import Role, TokenClaims
from ..logging_config import get_logger
from ..models import UserLogin, UserRegister
from ..responses import success, success_message
from ..services.identity_service import PasswordCredentials, SessionService

logger = get_logger(__name__)

router = APIRouter(prefix="/session", tags=["Session"])


def _set_token_cookie(response: Response, token: str, container: ServiceContainer) -> None:
    config = container.config
    response.set_cookie(
        key=config.TOKEN_COOKIE_NAME,
        value=token,
        max_age=config.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=config.TOKEN_COOKIE_SECURE,
        samesite="lax",
    )


@router.post("/register", status_code=status.HTTP_201_CREATED, summary="Register new user")
async def register(user_data: UserRegister, sessions: SessionService = Depends(get_session_service)):
    """
    Register a new local account with role ``user``.

    Raises:
        ConflictError: If the email is already registered
        ValidationFailedError: If the password is too short
    """
    await sessions.register(
        email=user_data.email,
        password=user_data.password,
        first_name=user_data.first_name,
        last_name=user_data.last_name,
    )
    return success_message("User successfully created")


@router.post("/login", summary="Sign in with email and password")
async def login(
    credentials: UserLogin,
    response: Response,
    sessions: SessionService = Depends(get_session_service),
    container: ServiceContainer = Depends(get_container),
):
    user, token = await sessions.sign_in(
        PasswordCredentials(email=credentials.email, password=credentials.password)
    )
    _set_token_cookie(response, token, container)
    return success(user.to_public_dict())


@router.get("/google", summary="Sign in with a Google ID token")
async def google_login(
    response: Response,
    id_token: str = Query(..., min_length=1),
    sessions: SessionService = Depends(get_session_service),
    container: ServiceContainer = Depends(get_container),
):
    """
    Exchange a Google-issued ID token for a storefront session.

    The first login with an unknown Google account registers it.
    """
    assertion = await container.federated_verifier.verify(id_token)
    user, token = await sessions.sign_in_federated(assertion)
    _set_token_cookie(response, token, container)
    return success(user.to_public_dict())


@router.post("/jwt", summary="Issue an access token")
async def issue_token(
    credentials: UserLogin,
    response: Response,
    sessions: SessionService = Depends(get_session_service),
    container: ServiceContainer = Depends(get_container),
):
    user, token = await sessions.sign_in(
        PasswordCredentials(email=credentials.email, password=credentials.password)
    )
    _set_token_cookie(response, token, container)
    return {"status": "success", "payload": user.to_public_dict(), "token": token}


@router.get(
    "/current",
    summary="Show the claims of the presented token",
    dependencies=[Depends(require_role(Role.ADMIN))],
)
async def current(claims: TokenClaims = Depends(get_current_claims)):
    return success(claims.to_dict())


@router.get("/logout", summary="Sign out")
async def logout(response: Response, container: ServiceContainer = Depends(get_container)):
    """
    Clear the token cookie.

    Issued tokens are not revoked; they stay valid until they expire.
    """
    response.delete_cookie(key=container.config.TOKEN_COOKIE_NAME)
    return success_message("Session completed successfully")
