"""
Transient object storage for long-running recognition.

Audio longer than the synchronous limit is uploaded to a Cloud Storage bucket,
referenced by URI in the recognition request, and deleted afterwards.
"""

import logging
from typing import Optional, Tuple

from google.api_core.exceptions import GoogleAPIError
from google.cloud import storage

from .credentials import ServiceAccountCredential

logger = logging.getLogger(__name__)


def parse_gcs_uri(location: str) -> Tuple[str, str]:
    """Split ``gs://bucket/path/name`` into (bucket, object name)."""
    if not location.startswith("gs://"):
        raise ValueError(f"Not a gs:// location: {location}")
    bucket, _, name = location[len("gs://") :].partition("/")
    if not bucket or not name:
        raise ValueError(f"Incomplete gs:// location: {location}")
    return bucket, name


class GCSObjectStorage:
    """Upload/delete helper bound to one bucket."""

    def __init__(self, bucket_name: str, credential: ServiceAccountCredential):
        self.bucket_name = bucket_name
        self.credential = credential
        self._client: Optional[storage.Client] = None

    def _get_client(self) -> storage.Client:
        if self._client is None:
            self._client = storage.Client(
                project=self.credential.project_id, credentials=self.credential.google_credentials
            )
        return self._client

    def upload(self, data: bytes, destination_name: str, content_type: Optional[str] = None) -> str:
        """Upload bytes and return the ``gs://`` location."""
        blob = self._get_client().bucket(self.bucket_name).blob(destination_name)
        blob.upload_from_string(data, content_type=content_type)
        location = f"gs://{self.bucket_name}/{destination_name}"
        logger.info(f"Uploaded {len(data)} bytes to {location}")
        return location

    def delete(self, location: str) -> None:
        """Best-effort deletion; failures are logged and swallowed."""
        try:
            bucket_name, name = parse_gcs_uri(location)
            self._get_client().bucket(bucket_name).blob(name).delete()
            logger.info(f"Deleted {location}")
        except (GoogleAPIError, ValueError) as e:
            logger.warning(f"Failed to clean up {location}: {e}")
