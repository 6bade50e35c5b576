import logging
from typing import List

from fastapi import APIRouter, HTTPException

from green_scanner.core import resolver
from green_scanner.core.errors import InvalidInputError
from green_scanner.schemas.product import SustainableResult
from green_scanner.schemas.tool import TOOL_NAME, ToolDescriptor, ToolRequest, ToolResponse, tool_descriptor

logger = logging.getLogger(__name__)

router = APIRouter(tags=["tools"])


def invalid_input(e: InvalidInputError) -> HTTPException:
    return HTTPException(status_code=400, detail={"error": "invalid_input", "message": e.message})


def internal_error(e: Exception) -> HTTPException:
    return HTTPException(status_code=500, detail={"error": "internal_error", "message": str(e)})


async def resolve_request(body: ToolRequest) -> SustainableResult:
    """
    Validate, then resolve. Invalid input -> 400, anything unexpected -> 500.
    """
    try:
        query, image = body.checked()
    except InvalidInputError as e:
        raise invalid_input(e)

    try:
        return await resolver.resolve(query, image)
    except Exception as e:
        logger.exception("Unexpected error resolving %r", query)
        raise internal_error(e)


@router.get("/v1/tools", response_model=List[ToolDescriptor])
def list_tools():
    return [tool_descriptor()]


@router.post(f"/v1/tools/{TOOL_NAME}", response_model=ToolResponse)
async def find_sustainable_alternative(body: ToolRequest):
    """
    Agent-host tool call: narrative text for display plus the structured
    result for machine consumption.
    """
    result = await resolve_request(body)
    return ToolResponse.from_result(result)


@router.post("/api/find", response_model=SustainableResult)
async def find(body: ToolRequest):
    """Widget endpoint: the bare SustainableResult."""
    return await resolve_request(body)
