"""
Upload broker: presigned S3 PUT URLs for admin uploads
"""
import logging
import time
from typing import Callable, NamedTuple, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .errors import UpstreamFailure
from .utils import sanitize_filename

logger = logging.getLogger(__name__)

KEY_PREFIX = "uploads"


class PresignedUpload(NamedTuple):
    upload_url: str
    key: str
    public_url: str


def build_object_key(filename: str, timestamp_ms: int) -> str:
    """``uploads/<epoch-ms>_<sanitized filename>``; the timestamp keeps keys unique."""
    return f"{KEY_PREFIX}/{timestamp_ms}_{sanitize_filename(filename)}"


class S3UploadBroker:
    """Requests time-limited write URLs from S3. Keeps no record of issued keys."""

    def __init__(
        self,
        bucket: Optional[str],
        region: str,
        expires_in: int = 900,
        client=None,
        clock: Callable[[], float] = time.time,
    ):
        self.bucket = bucket
        self.region = region
        self.expires_in = expires_in
        self.client = client if client is not None else boto3.client("s3", region_name=region)
        self.clock = clock

    def public_url(self, key: str) -> str:
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    def presign_upload(self, filename: str, content_type: str) -> PresignedUpload:
        """
        Generate a presigned PUT URL for a new object

        Args:
            filename: Client-side file name, sanitized into the key
            content_type: Content-Type the upload must be sent with

        Returns:
            Upload URL, object key and the object's public URL

        Raises:
            UpstreamFailure: If the bucket is not configured or signing fails
        """
        if not self.bucket:
            logger.error("presign requested but S3_BUCKET is not configured")
            raise UpstreamFailure("presign failed")

        key = build_object_key(filename, int(self.clock() * 1000))
        try:
            url = self.client.generate_presigned_url(
                "put_object",
                Params={"Bucket": self.bucket, "Key": key, "ContentType": content_type},
                ExpiresIn=self.expires_in,
            )
        except (BotoCoreError, ClientError) as e:
            logger.exception("presign failed for key %s", key)
            raise UpstreamFailure("presign failed") from e

        return PresignedUpload(upload_url=url, key=key, public_url=self.public_url(key))
