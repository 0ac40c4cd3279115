import logging
import shutil
import uuid
from pathlib import Path
from typing import List, NamedTuple

import config
from errors import ValidationFailedError

logger = logging.getLogger(__name__)


class StoredPhoto(NamedTuple):
    filename: str
    original_name: str
    path: str


class LocalPhotoStorage:
    """Keeps report photos as plain files in the uploads directory."""

    def __init__(self, directory=None, max_files=None, max_bytes=None):
        self.directory = Path(directory or config.UPLOAD_DIR)
        self.max_files = max_files or config.MAX_PHOTOS
        self.max_bytes = max_bytes or config.MAX_PHOTO_BYTES
        self.directory.mkdir(parents=True, exist_ok=True)

    def save_uploads(self, uploads) -> List[StoredPhoto]:
        uploads = [u for u in uploads if u is not None and u.filename]
        if len(uploads) > self.max_files:
            raise ValidationFailedError(f"Too many files. Maximum is {self.max_files} files.")
        for upload in uploads:
            if not (upload.content_type or "").startswith("image/"):
                raise ValidationFailedError("Only image files (JPEG, PNG, GIF) are allowed.")

        stored = []
        try:
            for upload in uploads:
                stored.append(self._save(upload))
        except (ValidationFailedError, OSError):
            for photo in stored:
                self.delete(photo.filename)
            raise
        return stored

    def _save(self, upload) -> StoredPhoto:
        suffix = Path(upload.filename).suffix.lower()
        filename = f"photos-{uuid.uuid4().hex}{suffix}"
        file_location = self.directory / filename

        with open(file_location, "wb+") as file_object:
            shutil.copyfileobj(upload.file, file_object)

        if file_location.stat().st_size > self.max_bytes:
            file_location.unlink()
            limit_mb = self.max_bytes // (1024 * 1024)
            raise ValidationFailedError(f"File too large. Maximum size is {limit_mb}MB.")

        return StoredPhoto(filename=filename, original_name=upload.filename, path=str(file_location))

    def delete(self, filename: str) -> bool:
        file_location = self.directory / Path(filename).name
        if not file_location.exists():
            return False
        file_location.unlink()
        return True


def get_storage() -> LocalPhotoStorage:
    return LocalPhotoStorage()
