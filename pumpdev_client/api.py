"""
HTTP request builder for the PumpDev API.

Each operation is a single JSON POST. Responses are returned as-is: a non-200 status is
not raised here, callers inspect ``ApiResponse.ok`` and abandon the operation.
"""

import json
import time
from pathlib import Path
from typing import Any, Dict, Optional, Union

import httpx
from mcp.server.fastmcp.utilities.logging import get_logger

from .errors import ApiError, MetadataUploadError
from .models import ApiModel, TokenMetadata

logger = get_logger(__name__)

PUMP_FUN_IPFS_URL = "https://pump.fun/api/ipfs"

# --- Endpoint paths ---
TRADE_LOCAL = "/api/trade-local"
TRADE_BUNDLE = "/api/trade-bundle"
CREATE = "/api/create"
CREATE_BUNDLE = "/api/create-bundle"
CLAIM_ACCOUNT = "/api/claim-account"
CLAIM_ALL = "/api/claim-all"
CLAIM_DISTRIBUTE = "/api/claim-distribute"
TRANSFER = "/api/transfer"
TRANSFER_ALL = "/api/transfer-all"


class ApiResponse:
    def __init__(self, response: httpx.Response, elapsed_ms: float = 0.0):
        self.response = response
        self.elapsed_ms = elapsed_ms

    @property
    def status_code(self) -> int:
        return self.response.status_code

    @property
    def ok(self) -> bool:
        return self.response.status_code == 200

    @property
    def content(self) -> bytes:
        return self.response.content

    def json(self) -> Any:
        return self.response.json()

    @property
    def error_message(self) -> str:
        """The ``error`` field of a JSON error body, else the raw body text."""
        try:
            body = self.response.json()
        except ValueError:
            return self.response.text
        if isinstance(body, dict) and body.get("error"):
            return str(body["error"])
        return json.dumps(body)

    def to_error(self) -> ApiError:
        return ApiError(self.status_code, self.error_message)


class PumpDevApi:
    def __init__(self, http: httpx.AsyncClient, base_url: str):
        self.http = http
        self.base_url = base_url.rstrip("/")

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    async def post(self, path: str, request: Union[ApiModel, Dict[str, Any]]) -> ApiResponse:
        body = request.to_body() if isinstance(request, ApiModel) else request
        url = self.url(path)
        logger.debug(f"POST {url}")
        started = time.monotonic()
        response = await self.http.post(url, json=body, headers={"Content-Type": "application/json"})
        elapsed_ms = (time.monotonic() - started) * 1000
        logger.info(f"POST {path} -> {response.status_code} in {elapsed_ms:.0f}ms")
        return ApiResponse(response, elapsed_ms)

    async def upload_metadata(
        self, image_path: Union[str, Path], metadata: TokenMetadata, url: Optional[str] = None
    ) -> str:
        """Uploads the token image and metadata to pump.fun IPFS, returns the metadata URI."""
        image = Path(image_path)
        fields = metadata.model_dump(by_alias=True)
        with open(image, "rb") as f:
            files = {"file": ("token-image.jpg", f.read(), "image/jpeg")}
        response = await self.http.post(url or PUMP_FUN_IPFS_URL, data=fields, files=files)
        if not response.is_success:
            raise MetadataUploadError(f"Failed to upload metadata ({response.status_code}): {response.text}")
        uri = response.json().get("metadataUri")
        if not uri:
            raise MetadataUploadError("IPFS response did not include a metadataUri")
        logger.info(f"Metadata uploaded: {uri}")
        return uri
