"""
图片上传 - 保存到本地 UPLOAD_DIR，通过 /uploads 静态路径访问
"""
import logging
import time
import uuid
from pathlib import Path
from typing import Optional

from fastapi import UploadFile

from services.errors import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}
MAX_UPLOAD_BYTES = 5 * 1024 * 1024  # 5MB
UPLOAD_URL_PREFIX = "/uploads/"


async def save_image(upload: Optional[UploadFile], upload_dir: str) -> Optional[str]:
    """保存上传的图片，返回相对 URL；未上传文件时返回 None"""
    if upload is None or not upload.filename:
        return None

    ext = ALLOWED_CONTENT_TYPES.get(upload.content_type or "")
    if not ext:
        raise ValidationError("Only jpeg, png, webp or gif images are allowed")

    content = await upload.read()
    if len(content) > MAX_UPLOAD_BYTES:
        raise ValidationError("Image is too large (max 5MB)")

    target_dir = Path(upload_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    filename = f"{int(time.time())}_{uuid.uuid4().hex[:8]}.{ext}"
    (target_dir / filename).write_bytes(content)

    logger.info(f"🖼️ Saved upload {upload.filename} -> {filename}")
    return f"{UPLOAD_URL_PREFIX}{filename}"


def discard_image(url: Optional[str], upload_dir: str) -> None:
    """删除 save_image 保存的文件（后续校验失败时调用）"""
    if not url or not url.startswith(UPLOAD_URL_PREFIX):
        return
    path = Path(upload_dir) / url[len(UPLOAD_URL_PREFIX):]
    path.unlink(missing_ok=True)
    logger.info(f"🧹 Discarded upload {path.name}")
