"""Authentication dependencies for retrieving the current user and enforcing roles."""

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from propertyhub.app.core.security import user_id_from_token
from propertyhub.app.db.session import get_db
from propertyhub.app.models.user import User, UserRole

STAFF_ROLES = (UserRole.ADMIN, UserRole.AGENT, UserRole.LANDLORD)


def get_current_user(db: Session = Depends(get_db), authorization: str | None = Header(default=None)) -> User:
    # Expect Authorization: Bearer <token>
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Not authenticated")
    token = authorization.split(" ", 1)[1]
    try:
        user_id = user_id_from_token(token)
    except ValueError:
        raise HTTPException(status_code=401, detail="Not authenticated")

    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def require_roles(*roles: UserRole):
    """
    Build a dependency that lets the request through only when the current
    user's role is one of ``roles``.
    """
    allowed = {role.value for role in roles}

    def _dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
        return current_user

    return _dependency


def is_tenant(user: User) -> bool:
    return user.role == UserRole.TENANT.value
