from fastapi import APIRouter, Depends, Request

from app.schemas.auth import CurrentUserResponse, LoginRequest, LoginResponse
from app.services.container import auth_service, config
from app.utils.auth_dependencies import get_current_staff
from app.utils.logger import get_logger
from app.utils.limiter import limiter

logger = get_logger(__name__)

# Staff authentication endpoints
router = APIRouter(prefix="/api", tags=["Auth"])


@router.post("/login", response_model=LoginResponse)
@limiter.limit(config.portal.login_rate_limit)
async def login(request: Request, body: LoginRequest):
  """
  Staff login. Credentials are checked against bcrypt hashes stored in the
  users table; nothing about them is known to the client.
  Rate limited per IP.
  """
  try:
    logger.info(f"[API] Login attempt: {body.email}")
    user = auth_service.authenticate_staff(body.email, body.password)
    if not user:
      logger.warning(f"[API] Login failed: {body.email}")
      return LoginResponse(success=False, error="Invalid HR credentials")

    token = auth_service.generate_token(
      user_id=user['id'],
      role=user['role'],
      email=user['email'],
    )
    logger.info(f"[API] ✅ {user['role'].upper()} login successful: {body.email}")
    return LoginResponse(success=True, token=token, user=user)

  except Exception as e:
    logger.error(f"[API] Login error: {str(e)}", exc_info=True)
    return LoginResponse(success=False, error="Login failed")


@router.get("/me", response_model=CurrentUserResponse)
async def me(current_staff: dict = Depends(get_current_staff)):
  """Return the authenticated staff user."""
  return CurrentUserResponse(**current_staff)
