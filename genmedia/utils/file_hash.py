"""Content hashing and content-addressed naming for stored media."""

import hashlib

# Number of hex characters of the content hash used in object names
HASH_PREFIX_LENGTH = 16

MIME_EXTENSIONS = {
    'image/png': '.png',
    'image/jpeg': '.jpg',
    'image/webp': '.webp',
    'image/gif': '.gif',
    'video/mp4': '.mp4',
    'video/webm': '.webm',
    'application/json': '.json',
}


def compute_content_sha256(data):
    """
    Compute the SHA-256 hash of an in-memory payload.

    Args:
        data: Raw bytes to hash (not modified)

    Returns:
        64-character hex digest string
    """
    return hashlib.sha256(data).hexdigest()


def extension_from_mime(mime_type):
    """Return the file extension for a MIME type, or '' for unknown types."""
    return MIME_EXTENSIONS.get(mime_type, '')


def build_object_filename(prefix, content_hash, mime_type):
    """Build the '<prefix>_<hash16><ext>' name shared by all backends."""
    return f"{prefix}_{content_hash[:HASH_PREFIX_LENGTH]}{extension_from_mime(mime_type)}"


def content_address(data, mime_type, prefix):
    """
    Derive the content address of a payload.

    Returns:
        Tuple of (content_hash, filename)
    """
    content_hash = compute_content_sha256(data)
    return content_hash, build_object_filename(prefix, content_hash, mime_type)
