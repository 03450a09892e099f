# auth.py
import hashlib
import hmac
import logging
import secrets

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session, select

from database import get_session
from models import Auth_Tokens, UserRole, Users_Informations

logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS = 100_000

bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), bytes.fromhex(salt), PBKDF2_ITERATIONS)
    return f"{salt}${digest.hex()}"


def verify_password(password: str, password_hash: str) -> bool:
    try:
        salt, expected = password_hash.split("$", 1)
    except ValueError:
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), bytes.fromhex(salt), PBKDF2_ITERATIONS)
    return hmac.compare_digest(digest.hex(), expected)


def issue_token(session: Session, user: Users_Informations) -> str:
    token = secrets.token_urlsafe(24)
    session.add(Auth_Tokens(token=token, user_id=user.id))
    session.commit()
    return token


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> Users_Informations:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Authentication required")

    token = session.get(Auth_Tokens, credentials.credentials)
    if not token:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    user = session.get(Users_Informations, token.user_id)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return user


def require_roles(*roles: UserRole):
    def checker(user: Users_Informations = Depends(get_current_user)) -> Users_Informations:
        if user.role not in roles:
            logger.warning("User %s (%s) denied, needs one of %s", user.id, user.role.value, [r.value for r in roles])
            raise HTTPException(status_code=403, detail="Unauthorized Access")
        return user

    return checker


def ensure_admin(session: Session, email: str, password: str) -> Users_Informations:
    """Create the bootstrap admin account if it does not exist yet."""
    user = session.exec(select(Users_Informations).where(Users_Informations.email == email)).first()
    if user:
        return user
    user = Users_Informations(
        first_name="Admin",
        email=email,
        role=UserRole.admin,
        password_hash=hash_password(password),
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info("Created admin account %s", email)
    return user
