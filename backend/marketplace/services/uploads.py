"""
Signed direct-upload handshake for the image host (Cloudinary)

The browser uploads straight to Cloudinary with these parameters, then records
the returned URL through POST /listings/{id}/images.
"""
import time
from typing import Any, Dict, Optional

from cloudinary.utils import api_sign_request

from marketplace.core.config import settings
from marketplace.core.exceptions import ServiceUnavailableError


def upload_configured() -> bool:
    return bool(
        settings.CLOUDINARY_CLOUD_NAME
        and settings.CLOUDINARY_API_KEY
        and settings.CLOUDINARY_API_SECRET
    )


def build_upload_signature(subject_id: int, timestamp: Optional[int] = None) -> Dict[str, Any]:
    """
    Raises:
        ServiceUnavailableError: If Cloudinary credentials are not configured
    """
    if not upload_configured():
        raise ServiceUnavailableError("Image uploads are not configured")

    timestamp = timestamp or int(time.time())
    folder = f"{settings.CLOUDINARY_UPLOAD_FOLDER}/{subject_id}"
    params = {"timestamp": timestamp, "folder": folder}
    signature = api_sign_request(params, settings.CLOUDINARY_API_SECRET)

    return {
        "cloud_name": settings.CLOUDINARY_CLOUD_NAME,
        "api_key": settings.CLOUDINARY_API_KEY,
        "timestamp": timestamp,
        "folder": folder,
        "signature": signature,
        "upload_url": f"https://api.cloudinary.com/v1_1/{settings.CLOUDINARY_CLOUD_NAME}/image/upload",
    }
