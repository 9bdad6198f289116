# app/core/data_uri.py
"""
Data URI 工具：
- 圖片一律以 `data:image/<subtype>;base64,<payload>` 字串在前後端間傳遞。
- 伺服端只檢查前綴；客戶端負責把 bytes 編成 data URI。
"""
import base64
from typing import Tuple

IMAGE_DATA_URI_PREFIX = "data:image/"


def is_image_data_uri(value: object) -> bool:
    return isinstance(value, str) and value.startswith(IMAGE_DATA_URI_PREFIX)


def encode_data_uri(raw: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64," + base64.b64encode(raw).decode("ascii")


def decode_data_uri(data_uri: str) -> Tuple[str, bytes]:
    """
    拆出 (mime_type, bytes)。
    只接受 base64 形式；格式不符時拋 ValueError。
    """
    if not data_uri.startswith("data:") or "," not in data_uri:
        raise ValueError("not a data URI")
    header, payload = data_uri[len("data:"):].split(",", 1)
    mime_type, _, encoding = header.partition(";")
    if encoding != "base64":
        raise ValueError("data URI is not base64-encoded")
    return mime_type, base64.b64decode(payload, validate=True)

