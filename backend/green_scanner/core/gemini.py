import asyncio
import json
import logging
import random
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx
from pydantic import ValidationError

from green_scanner.core.config import settings
from green_scanner.core.errors import UpstreamError
from green_scanner.schemas.product import EstimationResult
from green_scanner.schemas.sources import ImageIdentification, WebResult

logger = logging.getLogger(__name__)

# Service endpoint for Gemini API (v1beta)
API_BASE = "https://generativelanguage.googleapis.com/v1beta"

DEFAULT_IMAGE_MIME = "image/jpeg"

ESTIMATE_FIELDS = (
    "name",
    "brand",
    "categories",
    "packaging",
    "labels",
    "ingredients",
    "ecoscore",
    "nutriscore",
    "imageUrl",
)

ESTIMATE_SYSTEM_PROMPT = (
    "You are a product sustainability assistant. Estimate missing product fields and "
    "Eco/Nutri scores (A-E).\n"
    'Never return "Unknown". If uncertain, provide a best-guess string and set '
    'ecoscore/nutriscore to "C".\n'
    "Return JSON ONLY with keys: " + ", ".join(ESTIMATE_FIELDS) + ".\n"
)

IDENTIFY_SYSTEM_PROMPT = (
    "Identify the packaged grocery product in the image. Return JSON ONLY with keys: name, brand. "
    "Use a specific product name (e.g., 'Lay's Classic Potato Chips'). "
    "If unsure, provide a best-guess and never return 'Unknown'.\n"
    "No markdown. No code fences. No extra text.\n"
)

_DATA_URL = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(;[\w=-]+)*;base64,(?P<data>.*)$", re.DOTALL)


def _redact_key(s: str) -> str:
    """
    Redact 'key=...' in URLs or text so we never leak API keys in logs/responses.
    """
    if not s:
        return s
    # Replace key=XXXXX (until & or whitespace)
    return re.sub(r"(key=)([^&\s]+)", r"\1REDACTED", s)


def _get_api_key() -> str:
    return (getattr(settings, "GEMINI_API_KEY", "") or "").strip()


def _model_path() -> str:
    name = (settings.GEMINI_MODEL or "").strip()
    return name if name.startswith("models/") else f"models/{name}"


def _split_data_url(image_data: str) -> Optional[Tuple[str, str]]:
    """
    "data:image/png;base64,AAAA" -> ("image/png", "AAAA").
    Bare base64 is assumed to be a JPEG; remote URLs can't be inlined.
    """
    if not image_data:
        return None
    s = image_data.strip()
    m = _DATA_URL.match(s)
    if m:
        return (m.group("mime") or DEFAULT_IMAGE_MIME), m.group("data")
    if s.startswith(("http://", "https://", "data:")):
        return None
    return DEFAULT_IMAGE_MIME, s


def _image_part(image_data: Optional[str]) -> Optional[Dict[str, Any]]:
    if not image_data:
        return None
    split = _split_data_url(image_data)
    if split is None:
        logger.debug("Image is not inline base64; sending text only")
        return None
    mime, data = split
    return {"inline_data": {"mime_type": mime, "data": data}}


def _identify_schema() -> Dict[str, Any]:
    """
    JSON Schema for ImageIdentification.
    Used by Gemini Structured Output.
    """
    return {
        "type": "object",
        "properties": {
            "name": {"type": "string"},
            "brand": {"type": "string"},
        },
        "required": ["name", "brand"],
        "additionalProperties": False,
    }


def _estimate_schema() -> Dict[str, Any]:
    return {
        "type": "object",
        "properties": {k: {"type": "string"} for k in ESTIMATE_FIELDS},
        "required": list(ESTIMATE_FIELDS),
        "additionalProperties": False,
    }


def _extract_json_best_effort(text: str) -> Dict[str, Any]:
    """
    Robust JSON extraction (handles fenced blocks, extra text, etc.).
    Returns the first valid JSON object found.
    """
    # 1) Prefer fenced ```json ... ```
    fenced = re.search(r"```json\s*(\{.*?\})\s*```", text, re.DOTALL | re.IGNORECASE)
    if fenced:
        return json.loads(fenced.group(1).strip())

    # 2) Try non-greedy blocks
    blocks = re.findall(r"\{.*?\}", text, re.DOTALL)
    for b in blocks:
        try:
            return json.loads(b.strip())
        except ValueError:
            continue

    # 3) Greedy fallback
    m = re.search(r"\{.*\}", text, re.DOTALL)
    if not m:
        raise ValueError("No JSON object found in model output")
    return json.loads(m.group(0))


def _load_json_text(text: str) -> Optional[Dict[str, Any]]:
    try:
        obj: Any = json.loads(text)
    except ValueError:
        try:
            obj = _extract_json_best_effort(text)
        except ValueError:
            return None

    # Some responses double-encode: a JSON string holding the object
    if isinstance(obj, str):
        return _load_json_text(obj)
    return obj if isinstance(obj, dict) else None


def parse_structured_output(data: Any) -> Optional[Dict[str, Any]]:
    """
    Find the JSON object in a generateContent response.

    A part may carry it pre-parsed (functionCall.args) or as text containing
    JSON. Anything else decodes to None.
    """
    if not isinstance(data, dict):
        return None

    texts: List[str] = []
    candidates = data.get("candidates")
    for cand in candidates if isinstance(candidates, list) else []:
        content = cand.get("content") if isinstance(cand, dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            continue
        for part in parts:
            if not isinstance(part, dict):
                continue
            call = part.get("functionCall")
            if isinstance(call, dict) and isinstance(call.get("args"), dict):
                return call["args"]
            text = part.get("text")
            if isinstance(text, str) and text.strip():
                texts.append(text)

    for text in texts:
        obj = _load_json_text(text)
        if obj is not None:
            return obj
    return None


async def _sleep_for_retry(resp: httpx.Response, attempt: int) -> None:
    """
    Respect Retry-After header when present; otherwise exponential backoff with jitter.
    """
    max_backoff = settings.GEMINI_MAX_BACKOFF_SECONDS
    retry_after = resp.headers.get("retry-after")
    if retry_after:
        try:
            wait = float(retry_after)
            await asyncio.sleep(max(0.0, min(wait, max_backoff)))
            return
        except ValueError:
            pass

    # Exponential backoff with jitter
    base = min(max_backoff, (2 ** attempt) * 0.25)
    jitter = random.uniform(0.0, 0.25)
    await asyncio.sleep(min(max_backoff, base + jitter))


async def _post_with_retry(
    client: httpx.AsyncClient,
    url: str,
    *,
    params: Dict[str, Any],
    json_payload: Dict[str, Any],
    max_retries: Optional[int] = None,
) -> httpx.Response:
    """
    POST with retries for 429/503.
    """
    if max_retries is None:
        max_retries = settings.GEMINI_MAX_RETRIES

    resp = await client.post(url, params=params, json=json_payload)
    for attempt in range(max_retries):
        if resp.status_code not in (429, 503):
            break
        await _sleep_for_retry(resp, attempt)
        resp = await client.post(url, params=params, json=json_payload)
    return resp


async def _generate(parts: List[Dict[str, Any]], schema: Dict[str, Any], system: str) -> Dict[str, Any]:
    """
    One structured generateContent call. Raises UpstreamError on any failure.
    """
    api_key = _get_api_key()
    if not api_key:
        raise UpstreamError("gemini", "GEMINI_API_KEY is not set")

    url = f"{API_BASE}/{_model_path()}:generateContent"
    payload = {
        "system_instruction": {"parts": [{"text": system}]},
        "contents": [{"role": "user", "parts": parts}],
        "generationConfig": {
            "response_mime_type": "application/json",
            "response_json_schema": schema,
            "temperature": 0.2,
        },
    }

    try:
        async with httpx.AsyncClient(timeout=settings.ESTIMATOR_TIMEOUT_SECONDS) as client:
            r = await _post_with_retry(client, url, params={"key": api_key}, json_payload=payload)
    except httpx.HTTPError as e:
        raise UpstreamError("gemini", _redact_key(f"transport error: {e}")) from e

    if r.status_code >= 400:
        raise UpstreamError(
            "gemini",
            "request failed",
            status_code=r.status_code,
            body=_redact_key(r.text)[:2000],
        )

    try:
        data = r.json()
    except ValueError as e:
        raise UpstreamError("gemini", "invalid JSON body", status_code=r.status_code) from e

    obj = parse_structured_output(data)
    if obj is None:
        raise UpstreamError("gemini", f"unexpected response shape; raw={json.dumps(data)[:500]}")
    return obj


async def _generate_bounded(parts: List[Dict[str, Any]], schema: Dict[str, Any], system: str) -> Optional[Dict[str, Any]]:
    """
    _generate under the estimator deadline. Timeouts and upstream failures
    both come back as None.
    """
    try:
        return await asyncio.wait_for(_generate(parts, schema, system), timeout=settings.ESTIMATOR_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        logger.warning("Gemini call timed out after %ss", settings.ESTIMATOR_TIMEOUT_SECONDS)
    except UpstreamError as e:
        logger.warning("Gemini call failed: %s (status=%s) %s", e, e.status_code, e.body[:200])
    return None


async def identify_from_image(image_data: str) -> Optional[ImageIdentification]:
    """
    Ask Gemini to name the product (and brand) shown in an image.
    Returns None on missing key, failure or unusable output.
    """
    image_part = _image_part(image_data)
    if image_part is None:
        return None

    parts = [{"text": "Identify the product in this image."}, image_part]
    obj = await _generate_bounded(parts, _identify_schema(), IDENTIFY_SYSTEM_PROMPT)
    if obj is None:
        return None

    try:
        return ImageIdentification.model_validate(obj)
    except ValidationError as e:
        logger.warning("Gemini identification did not match schema: %s", e)
        return None


def _web_text(web_results: Sequence[WebResult]) -> str:
    if not web_results:
        return "No web results available."
    return "\n\n".join(
        f"Result {i + 1}: {r.title}\n{r.snippet}\n{r.url}" for i, r in enumerate(web_results)
    )


async def estimate(
    name: str,
    web_results: Sequence[WebResult],
    image_data: Optional[str] = None,
) -> Optional[EstimationResult]:
    """
    Estimate every ProductDetails text field plus Eco/Nutri letters for a
    product, using up to 3 web snippets and an optional image as evidence.
    """
    user_text = f"Product query: {name}\n\nWeb results:\n{_web_text(list(web_results)[:3])}"
    parts: List[Dict[str, Any]] = [{"text": user_text}]
    image_part = _image_part(image_data) if image_data else None
    if image_part is not None:
        parts.append(image_part)

    obj = await _generate_bounded(parts, _estimate_schema(), ESTIMATE_SYSTEM_PROMPT)
    if obj is None:
        return None

    try:
        return EstimationResult.model_validate(obj)
    except ValidationError as e:
        logger.warning("Gemini estimate did not match schema: %s", e)
        return None
