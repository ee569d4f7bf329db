"""
Object storage for message attachments (S3/MinIO)
"""
import boto3
from botocore.exceptions import ClientError
from abc import ABC, abstractmethod
from datetime import datetime
import asyncio
import io
import logging
import os
import uuid

from .config import settings

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when an object cannot be stored or signed"""


class ObjectStorage(ABC):
    """Narrow storage interface used by the core"""

    @abstractmethod
    async def store(self, data: bytes, filename: str, mime_type: str, folder: str) -> str:
        """Store bytes and return the object key"""
        pass

    @abstractmethod
    async def presign(self, key: str, ttl_seconds: int) -> str:
        """Sign a key into a temporary URL"""
        pass


def build_object_key(filename: str, folder: str) -> str:
    """folder/YYYY/MM/DD/<uuid><ext>"""
    ext = os.path.splitext(filename)[1].lower()
    date_path = datetime.utcnow().strftime("%Y/%m/%d")
    return f"{folder.strip('/')}/{date_path}/{uuid.uuid4().hex}{ext}"


class S3ObjectStorage(ObjectStorage):
    """boto3-backed storage; blocking client calls run in a worker thread"""

    def __init__(self):
        if settings.STORAGE_TYPE == "minio":
            self.client = boto3.client(
                "s3",
                endpoint_url=settings.S3_ENDPOINT_URL,
                aws_access_key_id=settings.AWS_ACCESS_KEY_ID or "minioadmin",
                aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or "minioadmin",
                region_name=settings.AWS_REGION
            )
        else:
            self.client = boto3.client(
                "s3",
                aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
                aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
                region_name=settings.AWS_REGION
            )

        self.bucket_name = settings.S3_BUCKET_NAME

    async def connect(self):
        await asyncio.to_thread(self._ensure_bucket_exists)

    def _ensure_bucket_exists(self):
        """Create bucket if it doesn't exist"""
        try:
            self.client.head_bucket(Bucket=self.bucket_name)
            logger.info(f"Bucket {self.bucket_name} exists")
        except ClientError:
            try:
                if settings.AWS_REGION == "us-east-1":
                    self.client.create_bucket(Bucket=self.bucket_name)
                else:
                    self.client.create_bucket(
                        Bucket=self.bucket_name,
                        CreateBucketConfiguration={'LocationConstraint': settings.AWS_REGION}
                    )
                logger.info(f"Created bucket {self.bucket_name}")
            except ClientError as e:
                logger.error(f"Failed to create bucket: {e}")

    def _upload(self, data: bytes, key: str, mime_type: str, filename: str):
        self.client.upload_fileobj(
            io.BytesIO(data),
            self.bucket_name,
            key,
            ExtraArgs={
                'ContentType': mime_type,
                'Metadata': {'original-filename': filename},
            }
        )

    async def store(self, data: bytes, filename: str, mime_type: str, folder: str) -> str:
        key = build_object_key(filename, folder)
        try:
            await asyncio.to_thread(self._upload, data, key, mime_type, filename)
        except ClientError as e:
            logger.error(f"Failed to upload {key}: {e}")
            raise StorageError(f"Failed to store {filename}") from e
        logger.info(f"Uploaded {key} to {self.bucket_name}")
        return key

    async def presign(self, key: str, ttl_seconds: int) -> str:
        try:
            return await asyncio.to_thread(
                self.client.generate_presigned_url,
                'get_object',
                Params={'Bucket': self.bucket_name, 'Key': key},
                ExpiresIn=ttl_seconds
            )
        except ClientError as e:
            logger.error(f"Failed to generate presigned URL for {key}: {e}")
            raise StorageError(f"Failed to sign {key}") from e
