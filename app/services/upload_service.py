"""Upload service for image validation and storage."""
import io
from enum import Enum
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from app.core.exceptions import StorefrontError
from app.core.storage import StorageClient


class UploadCategory(str, Enum):
    """Folder an upload is filed under."""
    PAYMENTS = "payments"
    PRODUCTS = "products"


# Allowed MIME types
ALLOWED_IMAGE_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
}

# Size limits in bytes
MAX_IMAGE_SIZE = 5 * 1024 * 1024  # 5MB


class UploadError(StorefrontError):
    """Raised when an uploaded file is rejected."""
    pass


class UploadService:
    """Service for handling image uploads."""

    @staticmethod
    def validate_image(
        content: bytes,
        content_type: str,
        filename: str
    ) -> Tuple[bool, Optional[str]]:
        """
        Validate image file.

        Args:
            content: File content as bytes
            content_type: MIME type
            filename: Original filename

        Returns:
            Tuple of (is_valid, error_message)
        """
        # Check content type
        if content_type not in ALLOWED_IMAGE_TYPES:
            return False, f"Invalid image type: {content_type}. Allowed: {', '.join(ALLOWED_IMAGE_TYPES.keys())}"

        if not content:
            return False, f"Empty file: {filename}"

        # Check file size
        if len(content) > MAX_IMAGE_SIZE:
            max_mb = MAX_IMAGE_SIZE / (1024 * 1024)
            actual_mb = len(content) / (1024 * 1024)
            return False, f"Image too large: {actual_mb:.1f}MB. Maximum: {max_mb}MB"

        try:
            img = Image.open(io.BytesIO(content))
            img.verify()
        except (UnidentifiedImageError, OSError, SyntaxError):
            return False, "Invalid or corrupted image file"

        return True, None

    @classmethod
    async def upload_image(
        cls,
        content: bytes,
        filename: str,
        content_type: str,
        category: UploadCategory
    ) -> str:
        """
        Validate and store an image.

        Returns:
            Public URL of the stored image

        Raises:
            UploadError: If the image is rejected
        """
        is_valid, error = cls.validate_image(content, content_type, filename)
        if not is_valid:
            raise UploadError(error)

        # Extension follows the verified type, not the client's filename
        path = StorageClient.generate_unique_filename(
            f"upload{ALLOWED_IMAGE_TYPES[content_type]}", category.value
        )
        return StorageClient.upload(content, path, content_type)
