from __future__ import annotations

import json
import logging
from threading import Lock
from urllib.parse import quote
from uuid import uuid4

import google.auth
from google.auth.transport.requests import AuthorizedSession

from mockup_studio.application.ports.storage_port import StoragePort
from mockup_studio.domain.exceptions import StorageError


logger = logging.getLogger(__name__)

STORAGE_SCOPE = "https://www.googleapis.com/auth/devstorage.read_write"
GCS_API_BASE = "https://storage.googleapis.com"
DOWNLOAD_BASE = "https://firebasestorage.googleapis.com/v0/b"


def build_download_url(*, bucket: str, path: str, token: str) -> str:
    return f"{DOWNLOAD_BASE}/{bucket}/o/{quote(path, safe='')}?alt=media&token={token}"


class CloudStorageClient(StoragePort):
    """Cloud Storage JSON API client writing Firebase-style download URLs."""

    def __init__(self, *, bucket: str, timeout_seconds: float = 60.0, session=None):
        self._bucket = bucket
        self._timeout_seconds = timeout_seconds
        self._session = session
        self._lock = Lock()

    def _get_session(self):
        with self._lock:
            if self._session is None:
                credentials, _project = google.auth.default(scopes=[STORAGE_SCOPE])
                self._session = AuthorizedSession(credentials)
            return self._session

    def upload_bytes(self, *, path: str, payload: bytes, content_type: str) -> str:
        token = str(uuid4())
        metadata = {
            "name": path,
            "contentType": content_type,
            "metadata": {"firebaseStorageDownloadTokens": token},
        }
        boundary = uuid4().hex
        body = (
            f"--{boundary}\r\n"
            "Content-Type: application/json; charset=UTF-8\r\n\r\n"
            f"{json.dumps(metadata)}\r\n"
            f"--{boundary}\r\n"
            f"Content-Type: {content_type}\r\n\r\n"
        ).encode("utf-8") + payload + f"\r\n--{boundary}--\r\n".encode("utf-8")

        url = f"{GCS_API_BASE}/upload/storage/v1/b/{self._bucket}/o"
        response = self._get_session().post(
            url,
            params={"uploadType": "multipart"},
            data=body,
            headers={"Content-Type": f"multipart/related; boundary={boundary}"},
            timeout=self._timeout_seconds,
        )
        if response.status_code >= 400:
            raise StorageError(f"Upload failed status={response.status_code} path={path}")

        logger.info("cloud_storage_client: uploaded path=%s bytes=%s", path, len(payload))
        return build_download_url(bucket=self._bucket, path=path, token=token)

    def delete_prefix(self, *, prefix: str) -> int:
        session = self._get_session()
        list_url = f"{GCS_API_BASE}/storage/v1/b/{self._bucket}/o"
        deleted = 0
        page_token: str | None = None

        while True:
            params = {"prefix": prefix, "fields": "items(name),nextPageToken"}
            if page_token:
                params["pageToken"] = page_token
            response = session.get(list_url, params=params, timeout=self._timeout_seconds)
            if response.status_code >= 400:
                raise StorageError(f"List failed status={response.status_code} prefix={prefix}")
            payload = response.json()

            for item in payload.get("items") or []:
                name = item["name"]
                delete_response = session.delete(
                    f"{list_url}/{quote(name, safe='')}",
                    timeout=self._timeout_seconds,
                )
                if delete_response.status_code == 404:
                    continue
                if delete_response.status_code >= 400:
                    raise StorageError(f"Delete failed status={delete_response.status_code} path={name}")
                deleted += 1

            page_token = payload.get("nextPageToken")
            if not page_token:
                break

        logger.info("cloud_storage_client: deleted prefix=%s files=%s", prefix, deleted)
        return deleted
