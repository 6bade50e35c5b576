import base64
import logging
from typing import Optional

from fastapi import APIRouter, File, Form, HTTPException, UploadFile

from green_scanner.api.routes_tools import resolve_request
from green_scanner.core import gemini
from green_scanner.schemas.product import SustainableResult
from green_scanner.schemas.sources import ImageIdentification
from green_scanner.schemas.tool import ToolRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["scan"])

DEFAULT_CONTENT_TYPE = "image/jpeg"


def to_data_url(data: bytes, content_type: Optional[str]) -> str:
    """Raw upload -> "data:image/...;base64,..." as the widget would send it."""
    mime = content_type if content_type and content_type.startswith("image/") else DEFAULT_CONTENT_TYPE
    return f"data:{mime};base64,{base64.b64encode(data).decode('utf-8')}"


async def _read_image(image: Optional[UploadFile]) -> Optional[str]:
    if image is None:
        return None
    img_bytes = await image.read()
    if not img_bytes:
        return None
    return to_data_url(img_bytes, image.content_type)


@router.post("/scan", response_model=SustainableResult)
async def scan(
    image: Optional[UploadFile] = File(None),
    product_query: str = Form(""),
):
    """
    Multipart variant of /api/find: a photo straight from the camera plus an
    optional product name.
    """
    image_data = await _read_image(image)
    return await resolve_request(ToolRequest(product_query=product_query, image_base64=image_data))


@router.post("/identify", response_model=ImageIdentification)
async def identify(image: UploadFile = File(...)):
    """Name the product in a photo without looking anything up."""
    image_data = await _read_image(image)
    if image_data is None:
        raise HTTPException(status_code=400, detail={"error": "invalid_input", "message": "Empty image upload."})

    result = await gemini.identify_from_image(image_data)
    if result is None:
        # Missing key, upstream failure or unusable model output
        raise HTTPException(
            status_code=422,
            detail={"error": "identification_failed", "message": "Could not identify the product."},
        )
    logger.info("Identified upload as %r / %r", result.brand, result.name)
    return result
