"""Local file storage for uploaded images."""
import uuid
from pathlib import Path
from typing import Optional

from app.config import settings


class StorageClient:
    """
    Stores uploads under UPLOAD_DIR and serves them from UPLOAD_URL_PREFIX.

    app.main mounts UPLOAD_DIR as static files at UPLOAD_URL_PREFIX, so the
    URL returned by ``upload`` is directly fetchable.
    """

    @classmethod
    def root(cls) -> Path:
        return Path(settings.UPLOAD_DIR)

    @classmethod
    def upload(
        cls,
        content: bytes,
        path: str,
        content_type: str
    ) -> str:
        """
        Write a file into the upload directory.

        Args:
            content: File content as bytes
            path: Storage path (e.g., "products/3f2a9c1b0d4e.png")
            content_type: MIME type (e.g., "image/png")

        Returns:
            Public URL of the uploaded file
        """
        target = cls.root() / path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
        return cls.get_public_url(path)

    @classmethod
    def delete(cls, path: str) -> bool:
        """
        Delete a stored file.

        Args:
            path: Storage path or public URL

        Returns:
            True if a file was deleted
        """
        if path.startswith(settings.UPLOAD_URL_PREFIX):
            path = cls.extract_path_from_url(path)

        if not path:
            return False

        target = cls.root() / path
        if not target.is_file():
            return False
        target.unlink()
        return True

    @classmethod
    def get_public_url(cls, path: str) -> str:
        return f"{settings.UPLOAD_URL_PREFIX.rstrip('/')}/{path}"

    @classmethod
    def extract_path_from_url(cls, url: str) -> Optional[str]:
        """
        Extract storage path from a public URL.

        Returns:
            Storage path or None if the URL is not one of ours
        """
        if not url:
            return None

        prefix = settings.UPLOAD_URL_PREFIX.rstrip('/') + '/'
        if url.startswith(prefix):
            return url[len(prefix):]

        return None

    @classmethod
    def generate_unique_filename(cls, original_filename: str, prefix: str = "") -> str:
        """
        Generate a unique filename to prevent collisions.

        Args:
            original_filename: Original file name
            prefix: Optional prefix for organization (e.g., "payments", "products")

        Returns:
            Unique filename with path
        """
        # Get file extension
        ext = ""
        if "." in original_filename:
            ext = "." + original_filename.rsplit(".", 1)[1].lower()

        # Generate unique ID
        unique_id = uuid.uuid4().hex[:12]

        # Build path
        if prefix:
            return f"{prefix}/{unique_id}{ext}"
        return f"{unique_id}{ext}"
