"""
Upload API endpoints
"""
from fastapi import APIRouter, Depends

from marketplace.api.deps import get_current_subject
from marketplace.core.security import Subject
from marketplace.schemas.upload import UploadSignatureResponse
from marketplace.services.uploads import build_upload_signature


router = APIRouter()


@router.post("/signature", response_model=UploadSignatureResponse)
async def create_upload_signature(
    subject: Subject = Depends(get_current_subject),
) -> UploadSignatureResponse:
    """Short-lived signed upload parameters; 503 when the image host isn't configured"""
    return UploadSignatureResponse(**build_upload_signature(subject.subject_id))
