"""
Content-addressed storage for portraits and metadata documents.

Content is identified by a URI of the form ipfs://<cid>. Publishing the same
bytes twice yields the same URI.
"""

import hashlib
import json
from typing import Any

import httpx

from ..error_types import ValidationReason
from ..exceptions import NotFoundFailure, PublishFailure, ValidationFailure, create_error_context
from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)

URI_SCHEME = "ipfs://"


def encode_content(content: bytes | dict[str, Any]) -> bytes:
    """Canonical byte form of publishable content; JSON documents use sorted keys."""
    if isinstance(content, bytes):
        return content
    if isinstance(content, dict):
        return json.dumps(content, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    raise ValidationFailure(
        f"Content must be bytes or a JSON object, got {type(content).__name__}",
        field="content",
        value=type(content).__name__,
    )


def cid_from_uri(uri: str) -> str:
    """Extract the content identifier from an ipfs:// URI."""
    if not isinstance(uri, str) or not uri.startswith(URI_SCHEME) or len(uri) == len(URI_SCHEME):
        raise ValidationFailure(
            f"Not a content URI: {uri!r}",
            field="uri",
            value=uri,
            reason=ValidationReason.INVALID_CID,
        )
    return uri[len(URI_SCHEME) :]


class InMemoryContentPublisher:
    """Content store keeping pinned content in a dict keyed by its sha256 digest."""

    def __init__(self) -> None:
        self._pins: dict[str, bytes] = {}
        self._names: dict[str, str] = {}

    @property
    def pinned(self) -> dict[str, str]:
        """Pinned URIs mapped to their display names."""
        return {f"{URI_SCHEME}{cid}": name for cid, name in self._names.items()}

    async def publish(self, content: bytes | dict[str, Any], display_name: str) -> str:
        data = encode_content(content)
        cid = hashlib.sha256(data).hexdigest()
        self._pins[cid] = data
        self._names.setdefault(cid, display_name)
        logger.info("Content pinned", display_name=display_name, size=len(data), cid=cid)
        return f"{URI_SCHEME}{cid}"

    async def unpin(self, uri: str) -> bool:
        cid = cid_from_uri(uri)
        self._names.pop(cid, None)
        return self._pins.pop(cid, None) is not None

    async def fetch(self, uri: str) -> bytes:
        cid = cid_from_uri(uri)
        try:
            return self._pins[cid]
        except KeyError as e:
            raise NotFoundFailure(
                f"No content pinned at {uri}",
                create_error_context(operation="fetch"),
                resource_type="content",
                resource_id=uri,
            ) from e


class PinataContentPublisher:
    """
    Content store backed by the Pinata pinning API.

    Files go to /pinning/pinFileToIPFS as multipart uploads, JSON documents to
    /pinning/pinJSONToIPFS. Content is read back through a public gateway.
    """

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        base_url: str = "https://api.pinata.cloud",
        gateway_url: str = "https://ipfs.io/ipfs",
        timeout: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            headers={"pinata_api_key": api_key, "pinata_secret_api_key": api_secret},
            timeout=timeout,
        )
        self._gateway_url = gateway_url.rstrip("/")
        logger.info("PinataContentPublisher initialized", base_url=base_url)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def publish(self, content: bytes | dict[str, Any], display_name: str) -> str:
        try:
            if isinstance(content, bytes):
                response = await self._client.post(
                    "/pinning/pinFileToIPFS",
                    files={"file": (display_name, content)},
                    data={"pinataMetadata": json.dumps({"name": display_name})},
                )
            else:
                encode_content(content)
                response = await self._client.post(
                    "/pinning/pinJSONToIPFS",
                    json={"pinataContent": content, "pinataMetadata": {"name": display_name}},
                )
            response.raise_for_status()
            cid = response.json()["IpfsHash"]
        except httpx.HTTPStatusError as e:
            raise PublishFailure(
                f"Pinning {display_name} failed with HTTP {e.response.status_code}",
                create_error_context(operation="publish"),
                details={"status_code": e.response.status_code, "display_name": display_name},
            ) from e
        except httpx.TimeoutException as e:
            raise PublishFailure(
                f"Pinning {display_name} timed out",
                create_error_context(operation="publish"),
                details={"timeout": True, "display_name": display_name},
            ) from e
        except (httpx.HTTPError, ValueError, KeyError) as e:
            raise PublishFailure(
                f"Pinning {display_name} failed: {e}",
                create_error_context(operation="publish"),
                details={"display_name": display_name},
            ) from e

        logger.info("Content pinned", display_name=display_name, cid=cid)
        return f"{URI_SCHEME}{cid}"

    async def unpin(self, uri: str) -> bool:
        cid = cid_from_uri(uri)
        try:
            response = await self._client.delete(f"/pinning/unpin/{cid}")
        except httpx.HTTPError as e:
            raise PublishFailure(f"Unpinning {uri} failed: {e}", create_error_context(operation="unpin")) from e
        if response.status_code == 404:
            return False
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise PublishFailure(
                f"Unpinning {uri} failed with HTTP {response.status_code}",
                create_error_context(operation="unpin"),
                details={"status_code": response.status_code},
            ) from e
        return True

    async def fetch(self, uri: str) -> bytes:
        cid = cid_from_uri(uri)
        try:
            response = await self._client.get(f"{self._gateway_url}/{cid}")
        except httpx.HTTPError as e:
            raise PublishFailure(f"Fetching {uri} failed: {e}", create_error_context(operation="fetch")) from e
        if response.status_code == 404:
            raise NotFoundFailure(
                f"No content pinned at {uri}",
                create_error_context(operation="fetch"),
                resource_type="content",
                resource_id=uri,
            )
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise PublishFailure(
                f"Fetching {uri} failed with HTTP {response.status_code}",
                create_error_context(operation="fetch"),
                details={"status_code": response.status_code},
            ) from e
        return response.content
