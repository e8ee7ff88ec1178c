import hashlib
import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Union

import boto3
from botocore.config import Config as BotoConfig
from fastapi.concurrency import run_in_threadpool

from app.features.scan.schemas.scan import EvidenceRefs, PageSnapshot

logger = logging.getLogger(__name__)

SAFE_KEY_PATTERN = re.compile(r"[^a-zA-Z0-9\-_]")
SAFE_KEY_MAX_LENGTH = 120
URL_DIGEST_LENGTH = 12


class ObjectStore(ABC):
    """Blob storage capability for scan evidence."""

    name: str = "object-store"

    @abstractmethod
    def put(self, key: str, body: Union[bytes, str], content_type: str) -> None:
        """Write one object; raise on failure."""


class S3ObjectStore(ObjectStore):
    name = "s3"

    def __init__(
        self,
        bucket: str,
        region: str,
        endpoint: str,
        access_key_id: str,
        secret_access_key: str,
    ):
        self.bucket = bucket
        self.client = boto3.client(
            "s3",
            region_name=region,
            endpoint_url=endpoint,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            config=BotoConfig(s3={"addressing_style": "path"}),
        )

    def put(self, key: str, body: Union[bytes, str], content_type: str) -> None:
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.client.put_object(Bucket=self.bucket, Key=key, Body=body, ContentType=content_type)


class LocalObjectStore(ObjectStore):
    """Evidence on local disk, for development without S3."""

    name = "local"

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def put(self, key: str, body: Union[bytes, str], content_type: str) -> None:
        path = self.root / key
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(body, str):
            body = body.encode("utf-8")
        with open(path, "wb") as f:
            f.write(body)


def evidence_base_key(scan_id: str, url: str) -> str:
    """Readable prefix plus a digest of the full url, so distinct pages never share a key."""
    safe = SAFE_KEY_PATTERN.sub("_", url)[:SAFE_KEY_MAX_LENGTH]
    digest = hashlib.sha256(url.encode("utf-8")).hexdigest()[:URL_DIGEST_LENGTH]
    return f"scans/{scan_id}/{safe}-{digest}"


class EvidenceStore:
    """
    Uploads per-page screenshot and HTML. A failed upload loses only that
    artifact; without an object store nothing is uploaded at all.
    """

    def __init__(self, object_store: Optional[ObjectStore] = None):
        self.object_store = object_store

    async def store_snapshots(
        self,
        snapshots: List[PageSnapshot],
        scan_id: str,
    ) -> Dict[str, EvidenceRefs]:
        evidence: Dict[str, EvidenceRefs] = {}
        if self.object_store is None:
            return evidence

        for snapshot in snapshots:
            base_key = evidence_base_key(scan_id, snapshot.url)
            screenshot_key = None
            html_key = None

            if snapshot.screenshot:
                screenshot_key = await self._put(
                    f"{base_key}.png", snapshot.screenshot, "image/png", scan_id, snapshot.url
                )
            if snapshot.html:
                html_key = await self._put(
                    f"{base_key}.html", snapshot.html, "text/html; charset=utf-8", scan_id, snapshot.url
                )

            evidence[snapshot.url] = EvidenceRefs(screenshot_key=screenshot_key, html_key=html_key)

        logger.info(f"[{scan_id}] Stored evidence for {len(evidence)} pages")
        return evidence

    async def _put(
        self,
        key: str,
        body: Union[bytes, str],
        content_type: str,
        scan_id: str,
        url: str,
    ) -> Optional[str]:
        try:
            await run_in_threadpool(self.object_store.put, key, body, content_type)
            return key
        except Exception as e:
            logger.warning(f"[{scan_id}] Evidence upload failed for {url} ({key}): {e}")
            return None


def build_object_store(settings) -> Optional[ObjectStore]:
    if settings.s3_configured:
        return S3ObjectStore(
            bucket=settings.S3_BUCKET,
            region=settings.S3_REGION,
            endpoint=settings.S3_ENDPOINT,
            access_key_id=settings.S3_ACCESS_KEY_ID,
            secret_access_key=settings.S3_SECRET_ACCESS_KEY,
        )
    if settings.EVIDENCE_LOCAL_DIR:
        return LocalObjectStore(settings.EVIDENCE_LOCAL_DIR)
    return None
