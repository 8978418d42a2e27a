from dataclasses import dataclass
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import jwt
from roms.models.core import Role
from roms.util.security import decode_token

auth_scheme = HTTPBearer(auto_error=False)

STAFF_ROLES = {Role.STAFF, Role.ADMIN}


@dataclass(frozen=True)
class Principal:
    sub: str
    role: Role

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


def require_auth(creds: HTTPAuthorizationCredentials | None = Depends(auth_scheme)) -> Principal:
    if not creds:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        data = decode_token(creds.credentials)
        return Principal(sub=data["sub"], role=Role(data.get("role", Role.CUSTOMER.value)))
    except (jwt.PyJWTError, KeyError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

def require_staff(me: Principal = Depends(require_auth)) -> Principal:
    # admin passes every staff check
    if not me.is_staff:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Staff only")
    return me
