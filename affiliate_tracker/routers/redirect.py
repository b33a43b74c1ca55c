"""
Server-side referral links: /go/{product_slug}?ref=CODE

Records the click and sets the attribution cookies before sending the
visitor on to the product, so attribution does not depend on frontend JS.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from ..config import Settings, get_settings
from ..db import get_db
from ..services.attribution import resolve_redirect
from ..utils.attribution_cookie import set_attribution_cookies
from .track import click_metadata

router = APIRouter(tags=["redirect"])


@router.get("/go/{product_slug}")
def go(
    product_slug: str,
    request: Request,
    ref: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    redirect = resolve_redirect(
        db,
        product_slug,
        ref,
        click_metadata(request),
        fallback_url=settings.DEFAULT_REDIRECT_URL,
    )
    response = RedirectResponse(url=redirect.url, status_code=302)
    if redirect.click:
        set_attribution_cookies(response, redirect.product, redirect.affiliate)
    return response
