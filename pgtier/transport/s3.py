# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
S3 Store - Backups kept as objects in an S3 bucket.

Keys mirror the ssh layout: <prefix>/<tier>/<timestamp>. S3 has no
rename, so a promotion is a server-side copy followed by a delete.

Dumps are uploaded as multipart uploads and downloaded in chunks, so
memory use does not grow with the dump size.
"""

from pathlib import Path
from typing import Any, List

import aiofiles
import structlog

from pgtier.exceptions import ListingError, TransferError
from pgtier.process import make_work_file
from pgtier.retention.tiers import Tier

logger = structlog.get_logger()

# S3 rejects parts under 5 MiB except the last one
DEFAULT_PART_SIZE = 8 * 1024 * 1024


class S3Store:
    """Transfer and listing against an S3 bucket via aiobotocore."""

    def __init__(
        self,
        bucket: str,
        prefix: str = "backups",
        region: str = "us-east-1",
        endpoint_url: str | None = None,
        work_dir: Path | None = None,
        session: Any = None,
        part_size: int = DEFAULT_PART_SIZE,
    ):
        if session is None:
            from aiobotocore.session import get_session

            session = get_session()

        self.bucket = bucket
        self.prefix = prefix.strip("/")
        self.region = region
        self.endpoint_url = endpoint_url
        self.work_dir = work_dir
        self.part_size = part_size
        self._session = session

    def tier_prefix(self, tier: Tier) -> str:
        if self.prefix:
            return f"{self.prefix}/{tier.value}/"
        return f"{tier.value}/"

    def key(self, tier: Tier, timestamp: int) -> str:
        return f"{self.tier_prefix(tier)}{timestamp}"

    def _client(self) -> Any:
        return self._session.create_client(
            "s3",
            region_name=self.region,
            endpoint_url=self.endpoint_url,
        )

    async def store(self, file: Path, tier: Tier, timestamp: int) -> None:
        key = self.key(tier, timestamp)
        try:
            async with self._client() as client:
                size = await self._upload_parts(client, file, key)
        except Exception as e:
            raise TransferError(
                f"Failed to upload backup: {e}",
                details={"bucket": self.bucket, "key": key},
            )

        logger.info("backup_uploaded", bucket=self.bucket, key=key, size=size)

    async def _upload_parts(self, client: Any, file: Path, key: str) -> int:
        """Upload a file part by part; the upload is aborted on any failure."""
        upload = await client.create_multipart_upload(Bucket=self.bucket, Key=key)
        upload_id = upload["UploadId"]
        parts: List[dict] = []
        size = 0
        try:
            async with aiofiles.open(file, "rb") as f:
                while True:
                    chunk = await f.read(self.part_size)
                    # An empty file still needs one part
                    if not chunk and parts:
                        break
                    part_number = len(parts) + 1
                    response = await client.upload_part(
                        Bucket=self.bucket,
                        Key=key,
                        UploadId=upload_id,
                        PartNumber=part_number,
                        Body=chunk,
                    )
                    parts.append({"PartNumber": part_number, "ETag": response["ETag"]})
                    size += len(chunk)
                    if len(chunk) < self.part_size:
                        break
            await client.complete_multipart_upload(
                Bucket=self.bucket,
                Key=key,
                UploadId=upload_id,
                MultipartUpload={"Parts": parts},
            )
        except Exception:
            await client.abort_multipart_upload(
                Bucket=self.bucket, Key=key, UploadId=upload_id
            )
            raise
        return size

    async def move(self, timestamp: int, from_tier: Tier, to_tier: Tier) -> None:
        source = self.key(from_tier, timestamp)
        target = self.key(to_tier, timestamp)
        try:
            async with self._client() as client:
                await client.copy_object(
                    Bucket=self.bucket,
                    Key=target,
                    CopySource={"Bucket": self.bucket, "Key": source},
                )
                await client.delete_object(Bucket=self.bucket, Key=source)
        except Exception as e:
            raise TransferError(
                f"Failed to move backup: {e}",
                details={"bucket": self.bucket, "source": source, "target": target},
            )

    async def remove(self, timestamp: int, tier: Tier) -> None:
        key = self.key(tier, timestamp)
        try:
            async with self._client() as client:
                await client.delete_object(Bucket=self.bucket, Key=key)
        except Exception as e:
            raise TransferError(
                f"Failed to remove backup: {e}",
                details={"bucket": self.bucket, "key": key},
            )

    async def fetch(self, tier: Tier, timestamp: int) -> Path:
        key = self.key(tier, timestamp)
        try:
            target = make_work_file(self.work_dir, prefix=f"pgtier-{timestamp}-")
        except OSError as e:
            raise TransferError(
                f"Failed to create local file for backup: {e}",
                details={"work_dir": str(self.work_dir)},
            )
        try:
            async with self._client() as client:
                response = await client.get_object(Bucket=self.bucket, Key=key)
                async with response["Body"] as stream, aiofiles.open(target, "wb") as f:
                    while True:
                        chunk = await stream.read(self.part_size)
                        if not chunk:
                            break
                        await f.write(chunk)
        except Exception as e:
            target.unlink(missing_ok=True)
            raise TransferError(
                f"Failed to download backup: {e}",
                details={"bucket": self.bucket, "key": key},
            )
        return target

    async def list(self, tier: Tier) -> str:
        prefix = self.tier_prefix(tier)
        names: List[str] = []
        try:
            async with self._client() as client:
                paginator = client.get_paginator("list_objects_v2")
                async for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                    for obj in page.get("Contents", []):
                        name = obj["Key"][len(prefix):]
                        # Only direct children of the tier prefix are backups
                        if name and "/" not in name:
                            names.append(name)
        except Exception as e:
            raise ListingError(
                f"Failed to list tier {tier.value}: {e}",
                details={"bucket": self.bucket, "prefix": prefix},
            )
        return "\n".join(names)
