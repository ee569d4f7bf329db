"""
Attachment upload route
"""
from fastapi import APIRouter, Depends, File, UploadFile
import logging

from ...config import settings
from ...errors import ErrorKind
from ...domain.models import MessageType, User
from ...schemas import ServiceResult, UploadPayload
from ...storage import StorageError
from ...container import ServiceContainer
from ..dependencies import get_current_user, get_services, to_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/uploads", tags=["Uploads"])


def attachment_type(mime_type: str) -> MessageType:
    """Map a MIME type onto the message type used to send it"""
    mime_type = (mime_type or "").lower()
    if mime_type == "application/pdf":
        return MessageType.PDF
    major = mime_type.split("/", 1)[0]
    if major in ("image", "video", "audio"):
        return MessageType(major)
    if major in ("application", "text"):
        return MessageType.FILE
    return MessageType.OTHER


@router.post("")
async def upload_attachment(
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
):
    """
    Upload a message attachment

    Returns the object key and a presigned URL; send the URL as the text
    of a message whose messageType is the returned fileType.
    """
    if services.storage is None:
        return to_response(ServiceResult.fail(ErrorKind.INTERNAL, "Object storage is disabled"))

    data = await file.read()
    if not data:
        return to_response(ServiceResult.fail(ErrorKind.INVALID_ARGUMENT, "File is empty"))
    if len(data) > settings.MAX_UPLOAD_SIZE:
        return to_response(ServiceResult.fail(
            ErrorKind.INVALID_ARGUMENT,
            f"File size exceeds maximum allowed size of {settings.MAX_UPLOAD_SIZE} bytes",
        ))

    mime_type = file.content_type or "application/octet-stream"
    filename = file.filename or "upload"
    try:
        key = await services.storage.store(data, filename, mime_type, settings.UPLOAD_FOLDER)
        url = await services.storage.presign(key, settings.PRESIGNED_URL_TTL_SECONDS)
    except StorageError as e:
        logger.error(f"Upload by {current_user.id} failed: {e}")
        return to_response(ServiceResult.fail(ErrorKind.INTERNAL, "Failed to store file"))

    return to_response(ServiceResult.ok(
        "File uploaded successfully",
        UploadPayload(
            key=key,
            url=url,
            file_name=filename,
            file_type=attachment_type(mime_type).value,
            size=len(data),
        ),
        status_code=201,
    ))
