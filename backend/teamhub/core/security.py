from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy import or_
from sqlalchemy.orm import Session

from teamhub.core.config import settings
from teamhub.core.errors import ForbiddenError
from teamhub.db.session import get_db
from teamhub.models import User


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def _http_401(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_jwt(token: str) -> dict:
    """
    Decode JWT using settings.jwt_secret/jwt_algorithm.
    Raises 401 on any error.
    """
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise _http_401("Invalid or expired token")


def create_access_token(subject: str, *, token_type: str = "access", teams: Optional[list[int]] = None) -> str:
    """
    Mint a token in the shape get_principal expects. Used by scripts and tests.
    """
    claims: dict = {"sub": subject, "type": token_type}
    if teams is not None:
        claims["teams"] = list(teams)
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


@dataclass
class Principal:
    """
    Who is calling.

    auth_type "user" carries a User row; "service" principals are machine
    callers whose `teams` claim lists the team ids they may read.
    """
    auth_type: str = "user"  # "user" | "service"
    user: Optional[User] = None
    subject: Optional[str] = None
    team_ids: set[int] = field(default_factory=set)

    @property
    def is_user(self) -> bool:
        return self.auth_type == "user" and self.user is not None


def get_principal(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> Principal:
    payload = decode_jwt(token)

    sub = payload.get("sub")
    if not sub:
        raise _http_401("Invalid token payload")

    token_type = payload.get("type", "access")

    if token_type == "service":
        raw_teams = payload.get("teams") or []
        try:
            team_ids = {int(t) for t in raw_teams}
        except (TypeError, ValueError):
            raise _http_401("Invalid token payload")
        return Principal(auth_type="service", subject=str(sub), team_ids=team_ids)

    if token_type != "access":
        raise _http_401("Invalid token type")

    sub_str = str(sub).strip()
    user = (
        db.query(User)
        .filter(or_(User.id == sub_str, User.email == sub_str.lower()))
        .first()
    )
    if not user:
        raise _http_401("User not found")

    return Principal(auth_type="user", user=user, subject=user.id)


def assert_principal_is_user(principal: Principal) -> User:
    if not principal.is_user:
        raise ForbiddenError("This operation requires a signed-in user.")
    return principal.user  # type: ignore[return-value]
