"""Product image references.

Images are stored as bare file names (whatever the upload path looked like)
and exposed to clients as URLs under the configured base. Absolute http(s)
URLs, e.g. seeded stock photos, pass through untouched.
"""
import posixpath
from typing import Optional


def is_absolute_url(ref: str) -> bool:
    return ref.startswith(("http://", "https://"))


def normalize_image_ref(ref: str) -> str:
    ref = ref.strip()
    if is_absolute_url(ref):
        return ref
    # Handle both Windows and Unix upload paths
    return posixpath.basename(ref.replace("\\", "/"))


def image_url(ref: Optional[str], base: str) -> Optional[str]:
    if not ref:
        return None
    if is_absolute_url(ref):
        return ref
    return f"{base.rstrip('/')}/{ref}"
