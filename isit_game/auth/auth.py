import logging
import os
import secrets
from datetime import UTC, datetime, timedelta
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from isit_game.auth.session import ANONYMOUS, PlayerSession
from isit_game.config.loader import get_access_token_expire_minutes
from isit_game.database import get_db
from isit_game.models.user import User

# Set up a dedicated logger for authentication events
logger = logging.getLogger("auth_module")
logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())


# --- Configuration ---
def generate_dev_key() -> str:
    """Generate a secure default key for development environments ONLY."""
    key = secrets.token_urlsafe(48)
    logger.warning(
        "\n"
        + "*" * 80
        + "\n"
        + "DEVELOPMENT MODE: Using generated secret key.\n"
        + "This is NOT secure for production use!\n"
        + "Set ISIT_JWT_SECRET_KEY in your environment variables for production.\n"
        + "*" * 80
    )
    return key


def validate_secret_key(key: str) -> bool:
    """Validate that a JWT secret key meets minimum security requirements."""
    if not key:
        return False
    if len(key) < 32:
        logger.error("JWT secret key must be at least 32 characters long for security.")
        return False
    return True


def _is_production_mode() -> bool:
    env = os.getenv("ISIT_ENV", "development").strip().lower()
    return env in {"production", "prod"}


def _get_access_token_expire_minutes(default: int = 30) -> int:
    """
    Source the access token expiration time from config.yaml, falling back to
    environment variable ISIT_ACCESS_TOKEN_EXPIRE_MINUTES, then a hard default.
    """
    config_value = get_access_token_expire_minutes()
    if config_value:
        logger.info(
            "Token expiration loaded from config.yaml: %s minutes", config_value
        )
        return config_value

    try:
        env_value = int(os.getenv("ISIT_ACCESS_TOKEN_EXPIRE_MINUTES", "0"))
    except ValueError:
        env_value = 0
    if env_value > 0:
        logger.info("Token expiration loaded from environment: %s minutes", env_value)
        return env_value

    logger.info("Token expiration using default: %s minutes", default)
    return default


SECRET_KEY = os.getenv("ISIT_JWT_SECRET_KEY")
ALGORITHM = "HS256"
JWT_ISSUER = os.getenv("ISIT_JWT_ISSUER", "isit-game")
ACCESS_TOKEN_EXPIRE_MINUTES = _get_access_token_expire_minutes()

if not SECRET_KEY:
    if _is_production_mode():
        raise RuntimeError(
            "Missing ISIT_JWT_SECRET_KEY while ISIT_ENV is set to production. "
            + "Configure a strong static secret before startup."
        )
    SECRET_KEY = generate_dev_key()
elif not validate_secret_key(SECRET_KEY):
    raise RuntimeError(
        "Invalid JWT secret key configuration. "
        + "The key must be at least 32 characters long. "
        + "Update ISIT_JWT_SECRET_KEY in your environment variables."
    )
else:
    logger.info("JWT secret key validated and loaded from environment.")


# --- Token Utilities ---


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Creates a new JWT access token.
    The 'sub' (subject) of the token is the player's user_id.
    """
    to_encode = data.copy()
    issued_at = datetime.now(UTC)
    expire = issued_at + (
        expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire, "iat": issued_at, "iss": JWT_ISSUER})

    try:
        encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
        logger.info(f"Successfully created access token for subject: {data.get('sub')}")
        return encoded_jwt
    except Exception as e:
        logger.error(
            f"Error creating access token for subject {data.get('sub')}: {str(e)}",
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not create access token due to an internal error.",
        )


def decode_access_token(token: str) -> Optional[str]:
    """Return the token subject, or None when the token is invalid or expired."""
    try:
        payload = jwt.decode(
            token,
            SECRET_KEY,
            algorithms=[ALGORITHM],
            issuer=JWT_ISSUER,
            options={"verify_aud": False},
        )
    except JWTError as e:
        logger.warning(f"JWT decode failure: {str(e)}")
        return None
    subject = payload.get("sub")
    if not subject:
        logger.warning("Token payload missing 'sub' claim.")
        return None
    return str(subject)


async def get_token_from_request(request: Request) -> Optional[str]:
    """
    Extracts the JWT from the 'access_token' cookie, falling back to an
    'Authorization: Bearer' header. Handles a 'Bearer ' prefix in either.
    """
    raw = request.cookies.get("access_token") or request.headers.get("Authorization")
    if not raw:
        logger.debug("No access token found in request.")
        return None
    if raw.startswith("Bearer "):
        return raw.split(" ", 1)[1].strip() or None
    return raw.strip() or None


# --- Session Dependencies ---


async def get_player_session(
    token: Optional[str] = Depends(get_token_from_request),
    db: Session = Depends(get_db),
) -> PlayerSession:
    """
    FastAPI dependency returning the caller's PlayerSession. Missing, invalid
    or orphaned tokens yield an anonymous session rather than an error so the
    caller can decide whether sign-in is required.
    """
    if not token:
        return ANONYMOUS
    user_id = decode_access_token(token)
    if user_id is None:
        return ANONYMOUS
    user = db.query(User).filter(User.user_id == user_id).first()
    if user is None:
        logger.warning(
            f"Token valid but user '{user_id}' not found in DB (user deleted?)."
        )
        return ANONYMOUS
    return PlayerSession(user_id=user.user_id)
