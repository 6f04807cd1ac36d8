"""
storage.py: blob-storage settings, workbook download and document links

The workbook lives in an Azure blob container and is fetched over plain
HTTPS with a SAS token, so no storage SDK is needed:

    https://<account>.blob.core.windows.net/<container>/<file>?<sas>
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Callable, Mapping, Optional
from urllib.parse import quote

import requests

from statement_review.errors import ConfigurationError, TransportError

DEFAULT_CONTAINER = "bronze"
DEFAULT_FILE_NAME = "underscore.xlsx"
DEFAULT_TIMEOUT = 60
DEFAULT_MAX_MB = 100
DEFAULT_DOC_LINK_TEMPLATE = "https://{account}.blob.core.windows.net/{container}/{prefix}{doc_id}{sas}"
LINK_PLACEHOLDERS = ("account", "container", "prefix", "doc_id", "sas")
CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class StorageSettings:
    account_name: str
    sas_token: str
    container_name: str = DEFAULT_CONTAINER
    file_name: str = DEFAULT_FILE_NAME
    timeout: float = DEFAULT_TIMEOUT
    max_bytes: int = DEFAULT_MAX_MB * 1024 * 1024
    doc_link_template: str = DEFAULT_DOC_LINK_TEMPLATE

    @property
    def sas_query(self) -> str:
        token = self.sas_token.strip()
        return token if token.startswith("?") else f"?{token}"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "StorageSettings":
        env = os.environ if environ is None else environ
        account_name = (env.get("AZURE_STORAGE_ACCOUNT_NAME") or "").strip()
        sas_token = (env.get("AZURE_STORAGE_SAS_TOKEN") or "").strip()
        if not account_name or not sas_token:
            raise ConfigurationError(
                "Missing storage configuration. Set AZURE_STORAGE_ACCOUNT_NAME and AZURE_STORAGE_SAS_TOKEN."
            )
        return cls(
            account_name=account_name,
            sas_token=sas_token,
            container_name=env.get("AZURE_CONTAINER_NAME") or DEFAULT_CONTAINER,
            file_name=env.get("AZURE_FILE_NAME") or DEFAULT_FILE_NAME,
            timeout=_positive_number(env, "REVIEW_DOWNLOAD_TIMEOUT", DEFAULT_TIMEOUT),
            max_bytes=int(_positive_number(env, "REVIEW_MAX_DOWNLOAD_MB", DEFAULT_MAX_MB) * 1024 * 1024),
            doc_link_template=check_link_template(env.get("REVIEW_DOC_LINK_TEMPLATE") or DEFAULT_DOC_LINK_TEMPLATE),
        )


def _positive_number(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {raw!r}")
    return value


def account_url(settings: StorageSettings) -> str:
    return f"https://{settings.account_name}.blob.core.windows.net"


def blob_url(settings: StorageSettings, blob_name: Optional[str] = None) -> str:
    name = quote(blob_name or settings.file_name)
    return f"{account_url(settings)}/{quote(settings.container_name)}/{name}{settings.sas_query}"


def download_workbook(settings: StorageSettings, session: Optional[requests.Session] = None) -> bytes:
    url = blob_url(settings)
    http = session or requests
    max_mb = settings.max_bytes // (1024 * 1024)
    try:
        response = http.get(url, timeout=settings.timeout, stream=True)
    except requests.RequestException as exc:
        raise TransportError(f"Failed to download '{settings.file_name}': {exc}") from exc

    try:
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise TransportError(
                f"Failed to download '{settings.file_name}': HTTP {response.status_code}"
            ) from exc

        content_length = response.headers.get("Content-Length")
        if content_length:
            try:
                declared_size = int(content_length)
            except ValueError:
                declared_size = None
            if declared_size and declared_size > settings.max_bytes:
                raise TransportError(f"Workbook is larger than {max_mb} MB.")

        chunks: list[bytes] = []
        downloaded = 0
        try:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if not chunk:
                    continue
                downloaded += len(chunk)
                if downloaded > settings.max_bytes:
                    raise TransportError(f"Workbook is larger than {max_mb} MB.")
                chunks.append(chunk)
        except requests.RequestException as exc:
            raise TransportError(f"Download of '{settings.file_name}' was interrupted: {exc}") from exc
    finally:
        response.close()

    content = b"".join(chunks)
    if not content:
        raise TransportError(f"Failed to download '{settings.file_name}': empty response body")
    return content


def check_link_template(template: str) -> str:
    """Reject document link templates that cannot be filled from LINK_PLACEHOLDERS."""
    try:
        template.format(**{name: "x" for name in LINK_PLACEHOLDERS})
    except (KeyError, IndexError, AttributeError, ValueError) as exc:
        allowed = ", ".join("{%s}" % name for name in LINK_PLACEHOLDERS)
        raise ConfigurationError(
            f"REVIEW_DOC_LINK_TEMPLATE {template!r} is invalid ({exc!r}). Allowed placeholders: {allowed}"
        ) from exc
    return template


def document_link_builder(settings: StorageSettings, prefix: str) -> Callable[[str], str]:
    """
    Link builder for one batch: doc_id → retrievable document URL.

    {prefix} expands to "<prefix>/" or to nothing when the batch has no
    prefix, so templates write it directly before {doc_id}.
    """
    template = check_link_template(settings.doc_link_template)
    clean_prefix = prefix.strip("/")
    prefix_segment = f"{quote(clean_prefix)}/" if clean_prefix else ""

    def build(doc_id: str) -> str:
        return template.format(
            account=settings.account_name,
            container=quote(settings.container_name),
            prefix=prefix_segment,
            doc_id=quote(doc_id),
            sas=settings.sas_query,
        )

    return build
