"""
Candidate Registration Form

Collects field values and document attachments, validates them locally and
sends one submission to the portal API.

State machine: idle -> submitting -> done | error. ``done`` is terminal until
``reset()``; ``error`` keeps every field and attachment so the user can retry.
"""

import base64
import mimetypes
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import EmailStr, TypeAdapter, ValidationError

from app.schemas.applications import DOCUMENT_TYPES
from app.utils.exceptions import FormValidationError, PortalError
from app.utils.logger import get_logger

from app.client.notifications import Notifier

logger = get_logger(__name__)

_EMAIL = TypeAdapter(EmailStr)

MAX_LENGTHS = {
    "full_name": 100,
    "team_name": 100,
    "leader_name": 100,
    "email": 255,
    "phone": 20,
    "address": 500,
}

REQUIRED_FIELDS = {
    "individual": ("full_name", "email", "department"),
    "team": ("team_name", "leader_name", "email", "track"),
}

FIELD_LABELS = {
    "full_name": "Full name",
    "team_name": "Team name",
    "leader_name": "Team leader",
    "email": "Email",
    "phone": "Phone",
    "department": "Department",
    "track": "Track",
    "address": "Address",
}


class FormState(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    DONE = "done"
    ERROR = "error"


@dataclass
class Attachment:
    name: str
    content_type: str
    content: bytes

    @classmethod
    def from_path(cls, path: str, content_type: Optional[str] = None) -> "Attachment":
        p = Path(path)
        guessed, _ = mimetypes.guess_type(p.name)
        return cls(
            name=p.name,
            content_type=content_type or guessed or "application/octet-stream",
            content=p.read_bytes(),
        )

    @property
    def size(self) -> int:
        return len(self.content)

    def encode(self) -> Dict[str, str]:
        return {
            "name": self.name,
            "type": self.content_type,
            "base64": base64.b64encode(self.content).decode("ascii"),
        }


class ApplicationForm:
    """One registration form instance (individual or team)"""

    def __init__(
        self,
        client,
        notifier: Optional[Notifier] = None,
        departments: Optional[List[str]] = None,
        max_file_size: int = 5 * 1024 * 1024,
        kind: str = "individual",
        require_documents: bool = False,
    ):
        if kind not in REQUIRED_FIELDS:
            raise ValueError(f"Unknown form kind: {kind}")
        self.client = client
        self.notifier = notifier or Notifier()
        self.departments = list(departments or [])
        self.max_file_size = max_file_size
        self.kind = kind
        self.require_documents = require_documents

        self.values: Dict[str, Any] = {}
        self.files: Dict[str, Attachment] = {}
        self.errors: Dict[str, str] = {}
        self.state = FormState.IDLE
        self.result: Optional[Dict[str, Any]] = None
        self.error: Optional[str] = None

    def set_field(self, name: str, value: Any) -> None:
        self.values[name] = value
        self.errors.pop(name, None)

    def attach(self, key: str, attachment: Attachment) -> bool:
        """
        Attach a document after checking its type and size.

        A rejected file is reported via a notification and leaves any
        previously attached file for ``key`` in place.
        """
        if key not in DOCUMENT_TYPES:
            raise ValueError(f"Unknown document type: {key}")
        label, accepted, _ = DOCUMENT_TYPES[key]

        if attachment.size > self.max_file_size:
            self.notifier.error(
                "File too large",
                f"{label} must be under {self.max_file_size // (1024 * 1024)}MB",
            )
            return False
        if attachment.content_type not in accepted:
            self.notifier.error("Unsupported file type", f"{label} must be one of: {', '.join(accepted)}")
            return False

        self.files[key] = attachment
        self.errors.pop(key, None)
        return True

    def detach(self, key: str) -> None:
        self.files.pop(key, None)

    def validate(self) -> Dict[str, str]:
        """Per-field error map. Empty when the form can be submitted."""
        errors: Dict[str, str] = {}

        for name in REQUIRED_FIELDS[self.kind]:
            value = self.values.get(name)
            if value is None or (isinstance(value, str) and not value.strip()):
                errors[name] = f"{FIELD_LABELS[name]} is required"

        for name, limit in MAX_LENGTHS.items():
            value = self.values.get(name)
            if isinstance(value, str) and len(value.strip()) > limit:
                errors.setdefault(name, f"{FIELD_LABELS[name]} must be at most {limit} characters")

        email = self.values.get("email")
        if "email" not in errors and email:
            try:
                _EMAIL.validate_python(email.strip())
            except ValidationError:
                errors["email"] = "Enter a valid email address"

        category_field = "department" if self.kind == "individual" else "track"
        category = self.values.get(category_field)
        if category_field not in errors and self.departments and category not in self.departments:
            errors[category_field] = f"{FIELD_LABELS[category_field]} must be one of: {', '.join(self.departments)}"

        if self.require_documents:
            for key, (label, _, required) in DOCUMENT_TYPES.items():
                if required and key not in self.files:
                    errors[key] = f"{label} is required"

        return errors

    def build_payload(self) -> Dict[str, Any]:
        """The ``{kind, data, files}`` body for POST /applications."""
        data: Dict[str, Any] = {}
        for name, value in self.values.items():
            if isinstance(value, str):
                value = value.strip()
                if not value:
                    continue
            data[name] = value
        if self.kind == "team":
            members = data.get("members", [])
            if isinstance(members, str):
                members = re.split(r"[,\n]", members)
            data["members"] = [m.strip() for m in members if m and m.strip()]
        return {
            "kind": self.kind,
            "data": data,
            "files": {key: attachment.encode() for key, attachment in self.files.items()},
        }

    async def submit(self) -> Dict[str, Any]:
        """
        Validate and send the form.

        Raises:
            FormValidationError: local validation failed; nothing was sent
            PortalError: the backend refused or could not be reached
        """
        if self.state == FormState.SUBMITTING:
            raise PortalError("Submission already in progress", "ApplicationForm")
        if self.state == FormState.DONE:
            raise PortalError("Form already submitted, reset it to submit another response", "ApplicationForm")

        errors = self.validate()
        if errors:
            self.errors = errors
            raise FormValidationError(errors)

        self.errors = {}
        self.error = None
        self.state = FormState.SUBMITTING
        payload = self.build_payload()
        try:
            result = await self.client.submit_application(payload)
        except PortalError as e:
            self.state = FormState.ERROR
            self.error = e.message
            logger.error(f"[ApplicationForm] Submission failed: {e}")
            self.notifier.error("Submission failed", e.message)
            raise

        self.result = result
        self.state = FormState.DONE
        logger.info(f"[ApplicationForm] Submitted {self.kind} application {result.get('id')}")
        self.notifier.success("Application submitted", "We will review your details shortly.")
        return result

    def reset(self) -> None:
        self.values = {}
        self.files = {}
        self.errors = {}
        self.result = None
        self.error = None
        self.state = FormState.IDLE
