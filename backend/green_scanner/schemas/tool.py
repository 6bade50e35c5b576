from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel

from green_scanner.core.errors import InvalidInputError
from green_scanner.schemas.product import SustainableResult

TOOL_NAME = "find_sustainable_alternative"
TOOL_DESCRIPTION = "Identifies a product from a search query and finds more sustainable alternatives."


class ToolRequest(BaseModel):
    product_query: str = ""
    image_base64: Optional[str] = None

    def checked(self) -> Tuple[str, Optional[str]]:
        """
        -> (query, image). Raises InvalidInputError when both are missing.
        """
        query = (self.product_query or "").strip()
        image = self.image_base64 if self.image_base64 else None
        if not query and not image:
            raise InvalidInputError()
        return query, image


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ToolResponse(BaseModel):
    content: List[TextContent]
    structuredContent: SustainableResult
    isError: bool = False

    @classmethod
    def from_result(cls, result: SustainableResult) -> "ToolResponse":
        return cls(content=[TextContent(text=result.text)], structuredContent=result)


class ToolDescriptor(BaseModel):
    name: str
    description: str
    inputSchema: Dict[str, Any]


def tool_descriptor() -> ToolDescriptor:
    return ToolDescriptor(
        name=TOOL_NAME,
        description=TOOL_DESCRIPTION,
        inputSchema={
            "type": "object",
            "properties": {
                "product_query": {
                    "type": "string",
                    "description": "The text identified from the user's photo (e.g., 'Barilla Spaghetti').",
                },
                "image_base64": {
                    "type": "string",
                    "description": "Optional product image as a data URL for image-based estimation.",
                },
            },
            "required": ["product_query"],
        },
    )
