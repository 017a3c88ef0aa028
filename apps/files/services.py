import logging
import os

from django.core.files.storage import default_storage
from django.core.files.uploadedfile import UploadedFile

from apps.common.exceptions import ValidationError

logger = logging.getLogger(__name__)


class FileValidationService:
    """Checks uploads against size and extension limits before they are stored."""

    @staticmethod
    def get_extension(filename: str) -> str:
        _, extension = os.path.splitext(filename or "")
        return extension.lstrip(".").lower()

    @staticmethod
    def validate(file: UploadedFile, max_size: int, allowed_extensions: list[str]):
        """
        Raises ValidationError when ``file`` is larger than ``max_size`` bytes or
        its extension is not in ``allowed_extensions`` (case-insensitive).
        """
        if file is None:
            raise ValueError("No file provided for validation.")

        if file.size is not None and file.size > max_size:
            max_mb = max_size // (1024 * 1024)
            logger.warning(f"Rejected upload '{file.name}': {file.size} bytes > {max_size}")
            raise ValidationError(
                f"File too large. Maximum allowed size is {max_mb}MB.",
                details={"max_file_size": max_size, "file_size": file.size},
            )

        allowed = [ext.lower().lstrip(".") for ext in allowed_extensions]
        extension = FileValidationService.get_extension(file.name)
        if extension not in allowed:
            logger.warning(f"Rejected upload '{file.name}': extension '{extension}' not allowed")
            raise ValidationError(
                f"File type not allowed. Allowed types: {', '.join(allowed)}",
                details={"allowed_file_types": allowed},
            )


class StorageService:
    """Thin wrapper around Django's default storage."""

    @staticmethod
    def get_file_url(name: str) -> str | None:
        if not name:
            return None
        try:
            return default_storage.url(name)
        except Exception as e:
            logger.error(f"Error generating URL for file {name}: {e}", exc_info=True)
            return None
