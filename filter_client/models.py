"""
Pydantic models for the upload pipeline
"""
from enum import Enum
from pathlib import PurePosixPath
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .errors import ErrorKind, FilterClientError

JPEG_EXTENSIONS = (".jpg", ".jpeg")


def infer_content_type(name: str) -> str:
    """Map a file name to the content type sent with the image part."""
    if PurePosixPath(name).suffix.lower() in JPEG_EXTENSIONS:
        return "image/jpeg"
    return "image/png"


def upload_filename(name: str) -> str:
    """Name of the image part, always ``image.<ext>``."""
    if infer_content_type(name) == "image/jpeg":
        return "image.jpg"
    return "image.png"


class Credential(BaseModel):
    token: str
    expires_at: float  # unix timestamp

    def is_valid(self, now: float) -> bool:
        return bool(self.token) and now < self.expires_at


class UploadRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    image: bytes = Field(min_length=1)
    filename: str = "image.png"  # original name, only its extension matters
    style: str = Field(min_length=1)
    push_token: Optional[str] = None

    @property
    def content_type(self) -> str:
        return infer_content_type(self.filename)

    @property
    def upload_filename(self) -> str:
        return upload_filename(self.filename)

    def multipart_files(self) -> dict:
        return {"image": (self.upload_filename, self.image, self.content_type)}

    def multipart_data(self) -> dict:
        data = {"filter": self.style}
        if self.push_token:
            data["fcmToken"] = self.push_token
        return data


class UploadSuccess(BaseModel):
    image_url: str = Field(min_length=1)


class UploadFailure(BaseModel):
    kind: ErrorKind
    message: str
    status: Optional[int] = None  # set for API errors

    @classmethod
    def from_error(cls, error: FilterClientError) -> "UploadFailure":
        return cls(kind=error.kind, message=error.message, status=getattr(error, "status", None))


UploadResult = Union[UploadSuccess, UploadFailure]


class UploadState(str, Enum):
    IDLE = "idle"
    AUTHENTICATING = "authenticating"
    UPLOADING = "uploading"
    AWAITING_RESPONSE = "awaiting_response"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (UploadState.SUCCEEDED, UploadState.FAILED)


# Forward-only ordering of the per-call state machine
STATE_ORDER = {
    UploadState.IDLE: 0,
    UploadState.AUTHENTICATING: 1,
    UploadState.UPLOADING: 2,
    UploadState.AWAITING_RESPONSE: 3,
    UploadState.SUCCEEDED: 4,
    UploadState.FAILED: 4,
}
