"""
Access token resolution for a user's active storage connection.

Connections and their encrypted token blobs are written by the storage
connection flow elsewhere; this module only reads them. Decryption goes
through an injected TokenCipher so the key material never reaches the
pipeline.
"""

import json
import logging
from typing import Callable, Protocol

from ..exceptions import UploadError
from ..models import OAuthTokens, StorageConnection
from ..repository import ArticleRepository
from .base import StorageClient

logger = logging.getLogger(__name__)


class TokenCipher(Protocol):
    def decrypt(self, ciphertext: str | bytes) -> str: ...


class PlaintextTokenCipher:
    """Cipher for development stores that keep token JSON unencrypted."""

    def decrypt(self, ciphertext: str | bytes) -> str:
        if isinstance(ciphertext, bytes):
            return ciphertext.decode("utf-8")
        return ciphertext


async def resolve_access_token(
    repository: ArticleRepository,
    cipher: TokenCipher,
    user_id: str,
    client_for: Callable[[StorageConnection], StorageClient],
) -> tuple[StorageConnection, str] | None:
    """
    Find the user's active connection and a usable access token for it.

    Expired tokens are refreshed in memory only; the refreshed token is not
    written back and not cached between calls.

    Returns:
        (connection, access_token), or None when the user has no active connection

    Raises:
        UploadError: If tokens are missing, unreadable or can't be refreshed
    """
    connection = await repository.get_active_connection(user_id)
    if connection is None:
        return None

    encrypted = await repository.get_encrypted_tokens(connection.id)
    if encrypted is None:
        raise UploadError(
            "Storage connection has no stored tokens",
            details={"connectionId": connection.id},
        )

    try:
        tokens = OAuthTokens.from_dict(json.loads(cipher.decrypt(encrypted)))
    except (ValueError, KeyError, TypeError) as e:
        raise UploadError(
            "Stored storage tokens could not be read",
            details={"connectionId": connection.id},
        ) from e

    if tokens.is_expired():
        if not tokens.refresh_token:
            raise UploadError(
                "Storage access token expired and no refresh token is available",
                details={"connectionId": connection.id},
            )
        logger.info(f"Refreshing expired {connection.provider.value} token for connection {connection.id}")
        tokens = await client_for(connection).refresh_token(tokens.refresh_token)

    return connection, tokens.access_token
