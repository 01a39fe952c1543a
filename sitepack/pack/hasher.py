import hashlib
from typing import Union

HASH_LENGTH = 8


def content_hash(content: Union[bytes, str]) -> str:
    """Return the first 8 hex chars of the sha256 digest of ``content``.

    Text is hashed as its UTF-8 encoding.
    """
    if isinstance(content, str):
        content = content.encode("utf8")
    return hashlib.sha256(content).hexdigest()[:HASH_LENGTH]
