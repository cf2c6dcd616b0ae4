"""
Snapshot integrity verification.

After an upload, the stored copy is downloaded again and compared with the
bytes we sent: SHA-256 checksum and byte length must both match. The result
is an audit record; a failed check never fails the snapshot itself.
"""

import asyncio
import hashlib
import logging

import aiohttp
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .exceptions import IntegrityMismatchError
from .models import IntegrityCheck, utcnow

logger = logging.getLogger(__name__)

SIZE_TOLERANCE = 0.01

TRANSIENT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError)


def calculate_checksum(content: bytes | str) -> str:
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.sha256(content).hexdigest()


class IntegrityVerifier:
    """Re-fetches uploaded snapshots and compares them with the original."""

    def __init__(self, timeout: float = 30, attempts: int = 3, backoff: float = 1):
        self.timeout = timeout
        self.attempts = attempts
        self.backoff = backoff

    async def _download(self, url: str) -> bytes:
        async with aiohttp.ClientSession() as session:
            async with session.get(
                url,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                allow_redirects=True,
            ) as resp:
                resp.raise_for_status()
                return await resp.read()

    async def _head_content_length(self, url: str) -> int | None:
        async with aiohttp.ClientSession() as session:
            async with session.head(
                url,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                allow_redirects=True,
            ) as resp:
                resp.raise_for_status()
                length = resp.headers.get("Content-Length")
                return int(length) if length else None

    async def fetch_with_retry(self, url: str) -> bytes:
        """Download with exponential backoff on transient failures."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential(multiplier=self.backoff, min=self.backoff, max=10),
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._download(url)

    async def verify(
        self,
        article_id: str,
        snapshot_url: str,
        original_content: bytes | str,
        original_size: int,
    ) -> IntegrityCheck:
        """
        Compare the uploaded copy at snapshot_url with the original content.

        Never raises; any failure yields an invalid check with
        verified_size 0 and an empty checksum.
        """
        try:
            original_checksum = calculate_checksum(original_content)
            uploaded = await self.fetch_with_retry(snapshot_url)
        except (*TRANSIENT_ERRORS, ValueError) as e:
            logger.warning(f"Integrity check FAILED for article {article_id}: {e}")
            return IntegrityCheck(
                article_id=article_id,
                snapshot_url=snapshot_url,
                original_size=original_size,
                verified_size=0,
                checksum="",
                is_valid=False,
                checked_at=utcnow(),
            )

        uploaded_checksum = calculate_checksum(uploaded)
        is_valid = uploaded_checksum == original_checksum and len(uploaded) == original_size

        if is_valid:
            logger.info(
                f"Integrity check PASSED for article {article_id} ({len(uploaded)}/{original_size} bytes)"
            )
        else:
            # Recorded on the audit entry only, never raised
            logger.warning(
                f"Integrity check FAILED for article {article_id} [{IntegrityMismatchError.code}] "
                f"({len(uploaded)}/{original_size} bytes)"
            )
        return IntegrityCheck(
            article_id=article_id,
            snapshot_url=snapshot_url,
            original_size=original_size,
            verified_size=len(uploaded),
            checksum=uploaded_checksum,
            is_valid=is_valid,
            checked_at=utcnow(),
        )

    async def verify_size(self, snapshot_url: str, expected_size: int) -> bool:
        """Quick HEAD check: Content-Length within 1% of the expected size."""
        try:
            actual = await self._head_content_length(snapshot_url)
        except (*TRANSIENT_ERRORS, ValueError) as e:
            logger.warning(f"Size verification failed for {snapshot_url}: {e}")
            return False
        if actual is None:
            return False
        return abs(actual - expected_size) <= expected_size * SIZE_TOLERANCE
