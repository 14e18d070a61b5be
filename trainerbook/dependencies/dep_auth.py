from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from trainerbook.models.mod_auth import AuthUser, UserRole, TokenData
from trainerbook.configuration.config import Config
import httpx
from datetime import datetime, timezone

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")

_jwks_cache = {}

def _issuer() -> str:
    return f"https://{Config.AZURE_ENTRAID_TENANT_SUBDOMAIN}.b2clogin.com/{Config.AZURE_ENTRAID_TENANT_ID}/v2.0/"

async def get_jwks(refresh: bool = False):
    """
    Fetch and cache the JSON Web Key Set (JWKS) of the identity provider.
    The JWKS contains the public keys used to verify the JWT tokens.
    refresh=True drops the cached set first, e.g. after a key rotation.
    """
    if refresh:
        _jwks_cache.pop("keys", None)
    if "keys" not in _jwks_cache:
        jwks_uri = f"https://{Config.AZURE_ENTRAID_TENANT_SUBDOMAIN}.b2clogin.com/{Config.AZURE_ENTRAID_TENANT_ID}/discovery/v2.0/keys"
        async with httpx.AsyncClient() as client:
            response = await client.get(jwks_uri)
            response.raise_for_status()
            _jwks_cache["keys"] = response.json()["keys"]
    return _jwks_cache["keys"]

async def get_key(kid: str):
    """Get the public key matching the key ID, refetching the JWKS once for unknown ids"""
    for refresh in (False, True):
        for key in await get_jwks(refresh=refresh):
            if key["kid"] == kid:
                return key
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unable to verify credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

def _role_from_claims(payload: dict) -> UserRole:
    roles = payload.get("roles") or [UserRole.CLIENT.value]
    try:
        return UserRole(roles[0])
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Unsupported role '{roles[0]}'"
        )

async def verify_token(token: str) -> TokenData:
    """
    Verify the JWT token and extract its claims.
    Raises HTTPException if token is invalid.
    """
    try:
        header = jwt.get_unverified_header(token)
        key = await get_key(header["kid"])
        payload = jwt.decode(
            token,
            key,
            algorithms=["RS256"],
            audience=Config.AZURE_ENTRAID_CLIENT_ID,
            issuer=_issuer()
        )
        token_data = TokenData(
            id=payload.get("oid"),
            email=payload.get("email"),
            name=payload.get("name"),
            role=_role_from_claims(payload),
            exp=payload.get("exp")
        )
        if token_data.exp and datetime.now(timezone.utc).timestamp() > token_data.exp:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has expired",
                headers={"WWW-Authenticate": "Bearer"},
            )
        return token_data
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

async def get_current_user(token: str = Depends(oauth2_scheme)) -> AuthUser:
    """
    Get the current authenticated user from the token.
    This is the main dependency to be used in protected endpoints.
    """
    token_data = await verify_token(token)
    return AuthUser(
        id=token_data.id,
        email=token_data.email,
        name=token_data.name,
        role=token_data.role
    )

def get_current_trainer(current_user: AuthUser = Depends(get_current_user)) -> AuthUser:
    """Dependency for endpoints that require trainer access"""
    if current_user.role != UserRole.TRAINER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only trainers can perform this action"
        )
    return current_user
