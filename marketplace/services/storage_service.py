# marketplace/services/storage_service.py
from io import BytesIO
from pathlib import Path

from flask import current_app
from werkzeug.utils import secure_filename

from ..errors import Forbidden, InvalidArgument, NotFound

DEFAULT_EXTENSIONS = {"pdf", "doc", "docx", "odt", "rtf", "txt"}


def _ensure_base() -> Path:
    # <instance>/uploads when UPLOAD_FOLDER is not configured
    base = current_app.config.get("UPLOAD_FOLDER")
    base = Path(base) if base else Path(current_app.instance_path) / "uploads"
    base.mkdir(parents=True, exist_ok=True)
    return base.resolve()


def allowed_ext(filename: str) -> bool:
    exts = current_app.config.get("ALLOWED_EXTENSIONS") or DEFAULT_EXTENSIONS
    suffix = Path(filename).suffix.lower().lstrip(".")
    return bool(suffix) and suffix in exts


def _safe_path(relpath: str) -> Path:
    base = _ensure_base()
    path = (base / (relpath or "")).resolve()
    if base != path and base not in path.parents:
        raise Forbidden("File is outside of the upload folder", operation="open_upload")
    return path


def save_upload(file_storage, subdir: str = "", filename: str | None = None) -> str:
    """
    Saves file to UPLOAD_FOLDER / subdir / <safe_name>, returns the path relative to the base.
    ``filename`` overrides the name the client sent with the file.
    """
    safe_name = secure_filename(filename or file_storage.filename or "")
    if not safe_name:
        raise InvalidArgument("Empty filename", operation="save_upload")
    if not allowed_ext(safe_name):
        raise InvalidArgument(f"Unsupported file type: {safe_name}", operation="save_upload")

    base = _ensure_base()
    target_dir = _safe_path(subdir) if subdir else base
    target_dir.mkdir(parents=True, exist_ok=True)

    dest = target_dir / safe_name
    file_storage.save(dest)
    return str(dest.relative_to(base))


def load_upload(relpath: str) -> BytesIO:
    path = _safe_path(relpath)
    if not path.is_file():
        raise NotFound("Stored file is missing", operation="open_upload")
    return BytesIO(path.read_bytes())


def remove_upload(relpath: str) -> None:
    _safe_path(relpath).unlink(missing_ok=True)


def upload_size(relpath: str) -> int:
    return _safe_path(relpath).stat().st_size
