"""
Cookie-based attribution at the HTTP boundary.

A referral click leaves three cookies on the visitor's browser; a later
conversion report from the same browser can then be credited without the
merchant passing the affiliate id explicitly. Cookies are readable by the
merchant's frontend JS (not httpOnly) and carry the Secure flag outside
local environments.
"""
import os
from typing import Optional

from fastapi import Request, Response

from ..core.env import is_local_env
from ..models import Affiliate, Product

AFFILIATE_ID_COOKIE = "affiliate_id"
PRODUCT_ID_COOKIE = "affiliate_product_id"
REF_COOKIE = "affiliate_ref"

SECONDS_PER_DAY = 24 * 60 * 60


def _should_use_secure_cookie() -> bool:
    """
    Secure everywhere except local environments, where it is only set when
    the service is served over HTTPS (HTTPS=true).
    """
    if not is_local_env():
        return True
    return os.getenv("HTTPS", "").lower() == "true"


def set_attribution_cookies(response: Response, product: Product, affiliate: Affiliate):
    max_age = product.cookie_duration * SECONDS_PER_DAY
    secure = _should_use_secure_cookie()
    for key, value in (
        (AFFILIATE_ID_COOKIE, affiliate.id),
        (PRODUCT_ID_COOKIE, product.id),
        (REF_COOKIE, affiliate.code),
    ):
        response.set_cookie(key=key, value=value, max_age=max_age, samesite="lax", httponly=False, secure=secure)


def resolve_affiliate_id(request: Request, product: Product, explicit_id: Optional[str]) -> Optional[str]:
    """
    Explicit id wins; otherwise use the cookie, but only when it was set for
    the product that is reporting the conversion.
    """
    if explicit_id and explicit_id.strip():
        return explicit_id.strip()

    cookie_affiliate = request.cookies.get(AFFILIATE_ID_COOKIE)
    cookie_product = request.cookies.get(PRODUCT_ID_COOKIE)
    if cookie_affiliate and cookie_product == product.id:
        return cookie_affiliate
    return None
