"""
Ingest caller-supplied media into the active storage backend.

Media arrives either as base64 data or as a URL to download. Once stored, the
returned object key can be passed to later operations that take an input
image or video.
"""

import base64
import binascii
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import httpx

from genmedia.services.storage.exceptions import MediaDownloadError
from genmedia.services.storage.interfaces import StorageBackend

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = 'upload'
DOWNLOAD_TIMEOUT = 60.0


@dataclass
class UploadedMedia:
    object_key: str
    location: str
    mime_type: str
    size: int
    uploaded_at: str
    download_url: Optional[str] = None
    expires_at: Optional[str] = None
    message: str = 'Media uploaded successfully'

    def to_dict(self):
        data = {
            'object_key': self.object_key,
            'mime_type': self.mime_type,
            'size': self.size,
            'message': self.message,
            'uploaded_at': self.uploaded_at,
        }
        if self.download_url:
            data['download_url'] = self.download_url
        if self.expires_at:
            data['expires_at'] = self.expires_at
        return data

    def summary(self):
        """Human-readable description for the caller."""
        if self.download_url:
            text = f"Media uploaded successfully.\nObject Key: {self.object_key}\nDownload URL: {self.download_url}"
            if self.expires_at:
                text += f"\nURL expires at: {self.expires_at}"
        else:
            text = f"Media uploaded successfully.\nStored at: {self.location}"
        text += f"\n\nUse object_key '{self.object_key}' as the input path of later image or video operations."
        return text


def decode_base64_media(data):
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"failed to decode base64 data: {e}") from e


def download_media(url, http_client=None):
    """Fetch media bytes from a URL. Raises MediaDownloadError on any failure."""
    logger.info(f"Downloading media from URL: {url}")
    client = http_client or httpx.Client(timeout=DOWNLOAD_TIMEOUT, follow_redirects=True)
    try:
        response = client.get(url)
    except httpx.HTTPError as e:
        raise MediaDownloadError(f"failed to download from URL: {e}", url=url) from e
    finally:
        if http_client is None:
            client.close()

    if response.status_code != 200:
        raise MediaDownloadError(f"failed to download from URL: status {response.status_code}",
                                 url=url, status_code=response.status_code)
    logger.info(f"Downloaded {len(response.content)} bytes from URL")
    return response.content


def upload_media(backend: StorageBackend, *, mime_type, data=None, url=None,
                 prefix=DEFAULT_PREFIX, http_client=None) -> UploadedMedia:
    """
    Store base64 data or the content of a URL and describe the result.

    Raises:
        ValueError: if neither data nor url is given, mime_type is missing,
            or data is not valid base64
        MediaDownloadError: if the URL could not be fetched
        StorageError: if the backend failed to store the media
    """
    if not data and not url:
        raise ValueError("one of 'data' (base64) or 'url' is required")
    if not mime_type:
        raise ValueError('mime_type is required')

    if data:
        payload = decode_base64_media(data)
        logger.info(f"Uploading {len(payload)} bytes of {mime_type} data")
    else:
        payload = download_media(url, http_client=http_client)

    result = backend.store(payload, mime_type, prefix or DEFAULT_PREFIX)
    logger.info(f"Stored uploaded media: {result.object_key}")

    uploaded = UploadedMedia(
        object_key=result.object_key,
        location=result.location,
        mime_type=mime_type,
        size=result.size,
        uploaded_at=datetime.now().strftime('%Y%m%d_%H%M%S'),
    )
    if backend.is_remote:
        uploaded.download_url = result.location
        if result.expires_at:
            uploaded.expires_at = result.expires_at.strftime('%Y-%m-%dT%H:%M:%SZ')
    return uploaded
