"""
Tracking API Router

Public click tracking and product-authenticated conversion reports.
"""
from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from ..core.errors import InvalidInputError
from ..db import get_db
from ..dependencies.auth import require_product_key
from ..models import Product
from ..schemas.track import ClickRequest, ClickResponse, ConversionRequest, ConversionResponse
from ..services.attribution import ClickMetadata, record_click, resolve_conversion_target
from ..services.conversions import ConversionService
from ..utils.attribution_cookie import resolve_affiliate_id, set_attribution_cookies
from ..utils.log import get_logger

router = APIRouter(prefix="/api/v1/track", tags=["track"])
logger = get_logger(__name__)


def click_metadata(request: Request) -> ClickMetadata:
    return ClickMetadata(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
        referrer=request.headers.get("referer"),
    )


@router.post("/click", response_model=ClickResponse)
def track_click(
    payload: ClickRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
):
    """Record a referral visit and drop the attribution cookies."""
    click = record_click(db, payload.product_slug, payload.ref_code, click_metadata(request))
    product, affiliate = click.product, click.affiliate

    set_attribution_cookies(response, product, affiliate)

    return ClickResponse(
        click_id=click.id,
        affiliate_id=affiliate.id,
        product_id=product.id,
        cookie_duration=product.cookie_duration,
    )


@router.post("/conversion", response_model=ConversionResponse)
def track_conversion(
    payload: ConversionRequest,
    request: Request,
    product: Product = Depends(require_product_key),
    db: Session = Depends(get_db),
):
    """
    Report an order. The product is identified by its X-API-Key; the
    affiliate comes from the body or, failing that, the attribution cookie.
    """
    affiliate_id = resolve_affiliate_id(request, product, payload.affiliate_id)
    if not affiliate_id:
        raise InvalidInputError(
            "affiliate_id is required (body or attribution cookie)",
            {"order_id": payload.order_id, "product_id": product.id},
        )

    product, affiliate = resolve_conversion_target(db, product.api_key, payload.order_id, affiliate_id)
    conversion = ConversionService.report_conversion(
        db, product, affiliate, payload.order_id, payload.order_amount
    )

    return ConversionResponse(
        conversion_id=conversion.id,
        product_slug=product.slug,
        commission_amount=conversion.commission_amount,
        status=conversion.status,
    )
