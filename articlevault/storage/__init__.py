"""
Cloud storage upload: Google Drive, Dropbox and OneDrive behind one protocol.
"""

from .base import StorageClient, StorageQuota, StorageUserInfo, UploadResult, join_storage_path
from .credentials import PlaintextTokenCipher, TokenCipher, resolve_access_token
from .dropbox import DropboxClient
from .factory import get_storage_client, upload_to_cloud_storage
from .google_drive import GoogleDriveClient
from .onedrive import OneDriveClient

__all__ = [
    "DropboxClient",
    "GoogleDriveClient",
    "OneDriveClient",
    "PlaintextTokenCipher",
    "StorageClient",
    "StorageQuota",
    "StorageUserInfo",
    "TokenCipher",
    "UploadResult",
    "get_storage_client",
    "join_storage_path",
    "resolve_access_token",
    "upload_to_cloud_storage",
]
