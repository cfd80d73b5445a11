"""
Request handling for the signed-URL gateway.

Per request:

    classify -> PUBLIC    -> fetch                -> 200 (public cache)
             -> GENERATE  -> issue                -> 200 text/plain signed URL
             -> PROTECTED -> verify -> fetch      -> 200 (private, no-store)
             -> DENIED                            -> 403

Verification always happens before the object store is touched.
"""

import logging
from typing import Optional

from fastapi import status
from fastapi.responses import PlainTextResponse, Response, StreamingResponse

from .auth.policy import AccessPolicy, PathClassifier, strip_generate_prefix
from .backends.base import ObjectStore, iter_bytes
from .core.errors import ObjectNotFound, PolicyDenied, VerificationError
from .core.signing import URLSigner

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
PUBLIC_CACHE_CONTROL = "public, max-age=86400"
PRIVATE_CACHE_CONTROL = "private, no-store"


def object_key(path: str) -> str:
    """Object key for a request path (leading slash removed)."""
    return path[1:] if path.startswith("/") else path


def is_clean_path(path: str) -> bool:
    """
    True if `path` has no `.`, `..` or empty segments.

    A trailing slash is allowed (`/generate/`). Paths are classified by
    prefix, so anything a store could normalize into another prefix is
    refused before classification.
    """
    if not path.startswith("/"):
        return False
    *inner, last = path[1:].split("/")
    if any(segment in ("", ".", "..") for segment in inner):
        return False
    return last not in (".", "..")


def error_response(status_code: int, message: str) -> Response:
    return PlainTextResponse(message, status_code=status_code)


class GatewayHandler:
    """
    Orchestrates classification, signing/verification and object fetches.

    Holds no per-request state; one instance serves all requests.
    """

    def __init__(
        self,
        signer: URLSigner,
        store: ObjectStore,
        classifier: Optional[PathClassifier] = None,
    ):
        self.signer = signer
        self.store = store
        self.classifier = classifier or PathClassifier()

    async def handle(
        self,
        path: str,
        verify_param: Optional[str] = None,
        head: bool = False,
    ) -> Response:
        """
        Handle one GET (or HEAD) request.

        Args:
            path: Decoded request path
            verify_param: Value of the `verify` query parameter, if any
            head: Answer with headers only; the object body is never read

        Returns:
            Response ready to send
        """
        if not is_clean_path(path):
            logger.info(f"403 {path!r}: non-canonical path")
            return error_response(status.HTTP_403_FORBIDDEN, "Access denied")

        policy = self.classifier.classify(path)

        try:
            if policy is AccessPolicy.PUBLIC:
                return await self._serve(path, PUBLIC_CACHE_CONTROL, head)

            if policy is AccessPolicy.GENERATE:
                return self._generate(path)

            if policy is AccessPolicy.PROTECTED:
                self.signer.verify(path, verify_param)
                return await self._serve(path, PRIVATE_CACHE_CONTROL, head)

            raise PolicyDenied(path)

        except VerificationError as e:
            logger.info(f"403 {path}: {e.reason}")
            return error_response(status.HTTP_403_FORBIDDEN, e.public_message)
        except PolicyDenied:
            logger.info(f"403 {path}: no matching access rule")
            return error_response(status.HTTP_403_FORBIDDEN, "Access denied")
        except ObjectNotFound as e:
            logger.info(f"404 {path}: object {e.key} not found")
            return error_response(status.HTTP_404_NOT_FOUND, "Object Not Found")

    def _generate(self, path: str) -> Response:
        target = strip_generate_prefix(path)
        if target == "/":
            return error_response(status.HTTP_400_BAD_REQUEST, "Missing target path")

        signed = self.signer.issue(target)
        logger.info(f"Issued signed URL for {target}")
        return PlainTextResponse(signed.url)

    async def _serve(self, path: str, cache_control: str, head: bool = False) -> Response:
        obj = await self.store.get(object_key(path))

        headers = {"Cache-Control": cache_control}
        if obj.size is not None:
            headers["Content-Length"] = str(obj.size)

        body = obj.body
        if head:
            await obj.discard()
            body = iter_bytes(b"")

        return StreamingResponse(
            body,
            media_type=obj.content_type or DEFAULT_CONTENT_TYPE,
            headers=headers,
        )
