"""
upload_service.py — Image attachment validation and upload.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from config import MAX_IMAGE_BYTES
from errors import UploadError, ValidationError
from supabase_client import upload_to_storage

logger = logging.getLogger(__name__)


@dataclass
class ImageUpload:
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def is_image(self) -> bool:
        return (self.content_type or "").startswith("image/")


def validate_image(upload: ImageUpload | None):
    """Checked before any upload is attempted."""
    if upload is None:
        raise ValidationError("No file provided")
    if not upload.is_image:
        raise ValidationError("Please select an image file")
    if upload.size > MAX_IMAGE_BYTES:
        raise ValidationError("Image size should be less than 5MB")


class Uploader(ABC):
    @abstractmethod
    async def upload(self, owner_id: str, upload: ImageUpload) -> str:
        """Store the file and return its public URL."""
        ...


class SupabaseUploader(Uploader):
    async def upload(self, owner_id: str, upload: ImageUpload) -> str:
        if not upload.is_image:
            raise UploadError("File must be an image")
        if upload.size > MAX_IMAGE_BYTES:
            raise UploadError("Image size should be less than 5MB")
        try:
            return await upload_to_storage(owner_id, upload.filename, upload.content_type, upload.data)
        except Exception as e:
            logger.error(f"Upload error: {e}")
            raise UploadError("Failed to upload image. Please try again or choose a different image.") from e
