"""
Application Service

Handles candidate application records and their documents with Supabase.
"""

from typing import Optional, Dict, Any, List, Tuple
import base64
import binascii
import re
import uuid
from io import StringIO

import pandas as pd

from app.config import Config
from app.db.supabase import get_supabase
from app.schemas.applications import (
    DOCUMENT_TYPES,
    SCHEMA_VERSION,
    ApplicationStatus,
    FileAttachment,
)
from app.utils.logger import get_logger
from app.utils.exceptions import PortalError, NotFoundError, SubmissionRejected
from app.utils.datetime_utils import get_now_ist, parse_datetime_safe

logger = get_logger(__name__)

SAFE_NAME = re.compile(r"[^A-Za-z0-9._-]")

EXPORT_COLUMNS = [
    "id", "kind", "status", "full_name", "team_name", "leader_name", "email",
    "phone", "department", "track", "address", "created_at", "updated_at",
]


class ApplicationService:
    """Service for managing candidate applications using Supabase"""

    def __init__(self, config: Config, client=None):
        self.config = config
        self._client = client
        self.table_name = config.supabase.applications_table
        self.bucket = config.supabase.documents_bucket

    @property
    def client(self):
        if self._client is None:
            self._client = get_supabase()
        return self._client

    def _table(self):
        return self.client.table(self.table_name)

    def _map_to_record(self, row: Dict[str, Any]) -> Dict[str, Any]:
        """Flatten a database row (form_data JSONB) into the record shape."""
        record = {
            "id": row.get("id"),
            "kind": row.get("kind") or "individual",
            "status": row.get("status") or ApplicationStatus.PENDING.value,
            "documents": row.get("documents") or {},
            "created_at": row.get("created_at"),
            "updated_at": row.get("updated_at"),
            "schema_version": row.get("schema_version") or SCHEMA_VERSION,
        }
        form_data = row.get("form_data") or {}
        if isinstance(form_data, dict):
            for key, value in form_data.items():
                record.setdefault(key, value)
        return record

    # ---- documents ----

    def validate_document(self, key: str, content: bytes, content_type: Optional[str]) -> Tuple[bool, Optional[str]]:
        """
        Validate one decoded document.

        Returns:
            Tuple of (is_valid, error_message)
        """
        if key not in DOCUMENT_TYPES:
            return False, f"Unknown document type: {key}"
        if not content:
            return False, f"{DOCUMENT_TYPES[key][0]} is empty"
        max_size = self.config.portal.max_file_size
        if len(content) > max_size:
            return False, f"{DOCUMENT_TYPES[key][0]} exceeds maximum of {max_size // (1024 * 1024)}MB"
        accepted = DOCUMENT_TYPES[key][1]
        if content_type not in accepted:
            return False, f"{DOCUMENT_TYPES[key][0]} must be one of: {', '.join(accepted)}"
        return True, None

    def decode_files(self, files: Dict[str, FileAttachment]) -> Dict[str, Tuple[str, str, bytes]]:
        """Decode base64 attachments into (filename, content_type, bytes) and validate each."""
        decoded: Dict[str, Tuple[str, str, bytes]] = {}
        for key, attachment in files.items():
            try:
                content = base64.b64decode(attachment.base64, validate=True)
            except (binascii.Error, ValueError):
                raise SubmissionRejected(f"{key}: file content is not valid base64", "ApplicationService")
            ok, error = self.validate_document(key, content, attachment.type)
            if not ok:
                raise SubmissionRejected(error, "ApplicationService")
            decoded[key] = (attachment.name, attachment.type, content)
        return decoded

    def _document_path(self, application_id: str, key: str, filename: str) -> str:
        safe = SAFE_NAME.sub("_", filename.split("/")[-1]) or key
        return f"{application_id}/{key}_{safe}"

    def discard_documents(self, paths: List[str]) -> None:
        """Best-effort removal of uploaded objects after a failed submission."""
        if not paths:
            return
        try:
            self.client.storage.from_(self.bucket).remove(paths)
            logger.info(f"[ApplicationService] Removed {len(paths)} orphaned upload(s)")
        except Exception as e:
            logger.error(f"[ApplicationService] Could not remove orphaned uploads {paths}: {e}", exc_info=True)

    def upload_documents(self, application_id: str, decoded: Dict[str, Tuple[str, str, bytes]]) -> Dict[str, str]:
        """
        Upload decoded documents to Supabase Storage and return key -> public URL.
        If any upload fails, the ones already stored are removed again.
        """
        urls: Dict[str, str] = {}
        uploaded: List[str] = []
        bucket = self.client.storage.from_(self.bucket)
        for key, (filename, content_type, content) in decoded.items():
            path = self._document_path(application_id, key, filename)
            try:
                bucket.upload(path=path, file=content, file_options={"content-type": content_type})
                uploaded.append(path)
                urls[key] = bucket.get_public_url(path)
            except Exception as e:
                logger.error(f"[ApplicationService] Upload failed for {path}: {e}", exc_info=True)
                self.discard_documents(uploaded)
                raise PortalError(f"Failed to upload {DOCUMENT_TYPES[key][0]}: {str(e)}", "ApplicationService")
        logger.info(f"[ApplicationService] Uploaded {len(urls)} document(s) for {application_id}")
        return urls

    # ---- records ----

    def submit_application(self, kind: str, data: Dict[str, Any], files: Dict[str, FileAttachment]) -> Dict[str, Any]:
        category = data.get("department") if kind == "individual" else data.get("track")
        if category not in self.config.portal.departments:
            raise SubmissionRejected(
                f"Department must be one of: {', '.join(self.config.portal.departments)}",
                "ApplicationService",
            )

        decoded = self.decode_files(files)
        application_id = str(uuid.uuid4())
        documents = self.upload_documents(application_id, decoded) if decoded else {}

        now_iso = get_now_ist().isoformat()
        db_data = {
            "id": application_id,
            "kind": kind,
            "status": ApplicationStatus.PENDING.value,
            "form_data": data,
            "documents": documents,
            "schema_version": SCHEMA_VERSION,
            "created_at": now_iso,
            "updated_at": now_iso,
        }
        try:
            response = self._table().insert(db_data).execute()
        except Exception as e:
            logger.error(f"[ApplicationService] Error submitting application: {e}", exc_info=True)
            self.discard_documents([
                self._document_path(application_id, key, filename)
                for key, (filename, _, _) in decoded.items()
            ])
            raise PortalError(f"Failed to submit application: {str(e)}", "ApplicationService")

        result = response.data[0] if response.data else db_data
        logger.info(f"[ApplicationService] ✅ Application {application_id} submitted ({kind}, {category})")
        return self._map_to_record(result)

    def list_applications(
        self,
        status: Optional[str] = None,
        department: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """All applications, newest first. Department matches department or track."""
        try:
            query = self._table().select("*")
            if status:
                query = query.eq("status", status)
            response = query.order("created_at", desc=True).execute()
        except Exception as e:
            logger.error(f"[ApplicationService] Error listing applications: {e}", exc_info=True)
            raise PortalError(f"Failed to list applications: {str(e)}", "ApplicationService")

        records = [self._map_to_record(row) for row in (response.data or [])]
        if department and department != "all":
            records = [
                r for r in records
                if (r.get("department") if r["kind"] == "individual" else r.get("track")) == department
            ]
        return records

    def get_application(self, application_id: str) -> Optional[Dict[str, Any]]:
        try:
            response = self._table().select("*").eq("id", application_id).execute()
        except Exception as e:
            logger.error(f"[ApplicationService] Error fetching application: {e}", exc_info=True)
            raise PortalError(f"Failed to fetch application: {str(e)}", "ApplicationService")
        if not response.data:
            return None
        return self._map_to_record(response.data[0])

    def update_status(self, application_id: str, status: ApplicationStatus) -> Dict[str, Any]:
        try:
            response = self._table().update({
                "status": ApplicationStatus(status).value,
                "updated_at": get_now_ist().isoformat(),
            }).eq("id", application_id).execute()
        except Exception as e:
            logger.error(f"[ApplicationService] Error updating status: {e}", exc_info=True)
            raise PortalError(f"Failed to update status: {str(e)}", "ApplicationService")

        if not response.data:
            raise NotFoundError(f"Application {application_id} not found", "ApplicationService")
        logger.info(f"[ApplicationService] Application {application_id} -> {ApplicationStatus(status).value}")
        return self._map_to_record(response.data[0])

    def delete_application(self, application_id: str) -> None:
        try:
            response = self._table().delete().eq("id", application_id).execute()
        except Exception as e:
            logger.error(f"[ApplicationService] Error deleting application: {e}", exc_info=True)
            raise PortalError(f"Failed to delete application: {str(e)}", "ApplicationService")

        if not response.data:
            raise NotFoundError(f"Application {application_id} not found", "ApplicationService")
        logger.info(f"[ApplicationService] Deleted application {application_id}")

    # ---- reporting ----

    def summarize(self, records: List[Dict[str, Any]], recent_limit: int = 5) -> Dict[str, Any]:
        """Counts by status, per-department breakdown and the most recent submissions."""
        counts = {s.value: 0 for s in ApplicationStatus}
        departments = {d: 0 for d in self.config.portal.departments}
        for r in records:
            counts[r["status"]] = counts.get(r["status"], 0) + 1
            category = r.get("department") if r["kind"] == "individual" else r.get("track")
            if category in departments:
                departments[category] += 1

        def _created(r: Dict[str, Any]):
            try:
                return parse_datetime_safe(r.get("created_at") or "").timestamp()
            except ValueError:
                return 0.0

        recent = sorted(records, key=_created, reverse=True)[:recent_limit]
        return {
            "total": len(records),
            "pending": counts[ApplicationStatus.PENDING.value],
            "verified": counts[ApplicationStatus.VERIFIED.value],
            "rejected": counts[ApplicationStatus.REJECTED.value],
            "departments": departments,
            "recent": recent,
        }

    def export_csv(self, records: List[Dict[str, Any]]) -> str:
        """Render records as CSV. Document URLs become one column per document key."""
        rows = []
        for r in records:
            row = {col: r.get(col) for col in EXPORT_COLUMNS}
            if r.get("members"):
                row["members"] = "; ".join(r["members"])
            for key in DOCUMENT_TYPES:
                row[f"doc_{key}"] = (r.get("documents") or {}).get(key)
            rows.append(row)

        columns = EXPORT_COLUMNS + ["members"] + [f"doc_{key}" for key in DOCUMENT_TYPES]
        df = pd.DataFrame(rows, columns=columns)
        buffer = StringIO()
        df.to_csv(buffer, index=False)
        return buffer.getvalue()
