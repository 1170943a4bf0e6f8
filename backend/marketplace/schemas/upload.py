"""
Upload Schemas
"""
from pydantic import BaseModel


class UploadSignatureResponse(BaseModel):
    """Parameters for a signed direct upload to the image host"""
    cloud_name: str
    api_key: str
    timestamp: int
    folder: str
    signature: str
    upload_url: str
