from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer

from app.core.security import SellerClaims, TokenValidationError, get_seller_claims

# Tokens are minted by the identity provider in front of this service.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)


def get_current_seller(token: str | None = Depends(oauth2_scheme)) -> SellerClaims:
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        return get_seller_claims(token)
    except TokenValidationError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc


def get_current_seller_id(claims: SellerClaims = Depends(get_current_seller)) -> str:
    return claims.seller_id
