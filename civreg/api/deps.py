# civreg/api/deps.py
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from civreg.core.security import ROLES, decode_token
from civreg.lifecycle.definitions import Lifecycle
from civreg.services.request_service import resolve
from typing import List

security = HTTPBearer()

async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)) -> dict:
    # Users live with the external auth provider; the token claims are all we keep.
    token = credentials.credentials
    try:
        payload = decode_token(token)
        sub = payload.get("sub")
        if not sub:
            raise ValueError()
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid credentials")

    role = str(payload.get("role") or "").upper()
    if role not in ROLES:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return {"id": str(sub), "name": payload.get("name") or str(sub), "role": role}

def require_role(roles: List[str]):
    async def checker(user=Depends(get_current_user)):
        if user.get("role") not in roles:
            raise HTTPException(status_code=403, detail="Not authorized")
        return user
    return checker

def get_resource(resource: str) -> Lifecycle:
    return resolve(resource)
