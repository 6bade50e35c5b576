from typing import Optional


class UpstreamError(Exception):
    """
    An external service (Open Food Facts, Brave, Gemini) could not be used:
    transport error, non-2xx status or an unusable body.

    Raised inside a gateway and caught at its boundary; callers only ever see
    an empty/null result.
    """

    def __init__(self, service: str, message: str, status_code: Optional[int] = None, body: str = ""):
        self.service = service
        self.message = message
        self.status_code = status_code
        self.body = body
        super().__init__(f"{service}: {message}")


class InvalidInputError(ValueError):
    """Neither a product query nor an image was supplied."""

    def __init__(self, message: str = "product_query or image_base64 is required."):
        self.message = message
        super().__init__(message)
