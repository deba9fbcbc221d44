"""
File Service

Local file storage for profile pictures, program images and documents.
Files live under STORAGE_ROOT in one folder per record (`<type>/<id>`)
and are served from STORAGE_PUBLIC_URL.
"""

from typing import Optional, Dict, Any, List, Tuple
import logging
import os
import shutil
from datetime import datetime
from werkzeug.utils import secure_filename
from flask import current_app

logger = logging.getLogger(__name__)


class FileService:
    """Service class for file storage operations"""

    ALLOWED_EXTENSIONS = {'pdf', 'png', 'jpg', 'jpeg', 'gif', 'webp'}
    MAX_FILE_SIZE = 16 * 1024 * 1024  # 16MB

    def storage_root(self) -> str:
        return current_app.config['STORAGE_ROOT']

    def allowed_file(self, filename: str) -> bool:
        """Check if file extension is allowed."""
        return '.' in filename and \
               filename.rsplit('.', 1)[1].lower() in self.ALLOWED_EXTENSIONS

    @staticmethod
    def record_folder(record_type: str, record_id: Any) -> str:
        return f"{record_type}/{record_id}"

    def _resolve(self, relative_path: str) -> str:
        root = os.path.abspath(self.storage_root())
        path = os.path.abspath(os.path.join(root, relative_path))
        if path != root and not path.startswith(root + os.sep):
            raise ValueError(f"Path escapes storage root: {relative_path}")
        return path

    def save_uploaded_file(self, file, folder: str,
                           prefix: str = 'file') -> Tuple[bool, Optional[str], Optional[str]]:
        """
        Save an uploaded file under a storage folder.

        Args:
            file: Flask uploaded file object
            folder: Storage folder, usually record_folder(type, id)
            prefix: Filename prefix (e.g., 'profile', 'program')

        Returns:
            tuple: (success: bool, relative_path: str, error_message: str)
        """
        try:
            if not file or not file.filename:
                return False, None, "No file provided"

            if not self.allowed_file(file.filename):
                return False, None, f"File type not allowed. Allowed types: {', '.join(sorted(self.ALLOWED_EXTENSIONS))}"

            file.seek(0, 2)
            file_size = file.tell()
            file.seek(0)

            if file_size > self.MAX_FILE_SIZE:
                return False, None, f"File too large. Maximum size: {self.MAX_FILE_SIZE // (1024*1024)}MB"

            original_filename = secure_filename(file.filename)
            timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
            filename = f"{prefix}_{timestamp}_{original_filename}"

            target_folder = self._resolve(folder)
            os.makedirs(target_folder, exist_ok=True)
            file.save(os.path.join(target_folder, filename))

            relative_path = f"{folder.strip('/')}/{filename}"
            logger.info(f"File uploaded successfully: {relative_path} ({file_size} bytes)")
            return True, relative_path, None

        except Exception as e:
            logger.error(f"Error saving uploaded file: {str(e)}")
            return False, None, f"Upload failed: {str(e)}"

    def get_public_url(self, relative_path: Optional[str]) -> Optional[str]:
        """Public URL of a stored file, or None when there is no file"""
        if not relative_path:
            return None
        if relative_path.startswith(('http://', 'https://')):
            return relative_path
        base = (current_app.config.get('STORAGE_PUBLIC_URL') or '/storage').rstrip('/')
        return f"{base}/{relative_path.lstrip('/')}"

    def list_folder(self, folder: str) -> List[Dict[str, Any]]:
        """Files directly inside a storage folder"""
        try:
            path = self._resolve(folder)
            if not os.path.isdir(path):
                return []
            files = []
            for name in sorted(os.listdir(path)):
                full_path = os.path.join(path, name)
                if os.path.isfile(full_path):
                    stat_info = os.stat(full_path)
                    files.append({
                        'name': name,
                        'path': f"{folder.strip('/')}/{name}",
                        'size': stat_info.st_size,
                        'modified': datetime.fromtimestamp(stat_info.st_mtime).isoformat(),
                    })
            return files
        except Exception as e:
            logger.error(f"Error listing folder {folder}: {str(e)}")
            return []

    def delete_file(self, relative_path: str) -> bool:
        """
        Delete a single stored file.

        Returns:
            bool: True if deletion successful
        """
        try:
            path = self._resolve(relative_path)
            if os.path.isfile(path):
                os.remove(path)
                logger.info(f"File deleted: {relative_path}")
                return True
            logger.warning(f"File not found for deletion: {relative_path}")
            return False
        except Exception as e:
            logger.error(f"Error deleting file {relative_path}: {str(e)}")
            return False

    def delete_folder(self, folder: str) -> Tuple[bool, Optional[str]]:
        """
        Delete a storage folder and everything in it.

        A folder that does not exist counts as deleted.

        Returns:
            tuple: (success: bool, error_message: str)
        """
        try:
            path = self._resolve(folder)
            if os.path.isdir(path):
                shutil.rmtree(path)
                logger.info(f"Storage folder deleted: {folder}")
            return True, None
        except Exception as e:
            logger.error(f"Error deleting storage folder {folder}: {str(e)}")
            return False, str(e)
