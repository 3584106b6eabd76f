"""Submission moderation workflow and catalog mutations.

A submission is created by the public submit action and lives until an
admin approves it (it is moved into the tool collection under a fresh id)
or rejects it (it is deleted). Neither transition leaves a trace in the
submission collection.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any
from typing import Dict
from typing import List
from typing import Optional
from urllib.parse import urlparse

from .errors import DuplicateKeyError
from .errors import NotFoundError
from .errors import ValidationError
from .models import MAX_DESCRIPTION_LENGTH
from .models import MAX_TAGS
from .models import Submission
from .models import Tool
from .models import ToolPayload
from .models import now_iso
from .slugs import generate_submission_id
from .slugs import generate_tool_id
from .storage import SUBMISSIONS
from .storage import TOOLS
from .storage import CatalogStore

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("name", "url", "category", "description")
OPTIONAL_URL_FIELDS = (("thumbnailUrl", "thumbnail_url"), ("demoVideoUrl", "demo_video_url"))
MIN_TAG_TOKEN_LENGTH = 5
ID_RETRIES = 5


@dataclass(frozen=True)
class ValidationResult:
    payload: Optional[ToolPayload] = None
    error: Optional[ValidationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> ToolPayload:
        if self.error is not None:
            raise self.error
        return self.payload


def derive_tags(text: str) -> List[str]:
    """First three lower-cased tokens longer than four characters."""
    tokens = re.split(r"[^a-z0-9]+", str(text or "").lower())
    return [token for token in tokens if len(token) >= MIN_TAG_TOKEN_LENGTH][:MAX_TAGS]


def url_error(value: str) -> Optional[str]:
    """Return a reason when value is not an absolute http(s) URL."""
    try:
        parsed = urlparse(value.strip())
    except ValueError:
        return "Invalid URL"
    if not parsed.scheme or not parsed.netloc:
        return "Invalid URL"
    if parsed.scheme.lower() not in ("http", "https"):
        return "URL must be http or https"
    return None


def _field(data: Dict[str, Any], wire_name: str, attr_name: str) -> Any:
    if wire_name in data:
        return data[wire_name]
    return data.get(attr_name)


def _clean_tags(value: Any) -> Optional[List[str]]:
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(tag, str) for tag in value):
        raise ValidationError("tags", "Tags must be a list of strings")
    tags = [tag.strip().lower() for tag in value if tag.strip()]
    return tags[:MAX_TAGS]


def _clean_votes(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError("votes", "Votes must be a non-negative integer")
    if isinstance(value, int):
        votes = value
    elif isinstance(value, str) and value.strip().isdigit():
        votes = int(value.strip())
    else:
        raise ValidationError("votes", "Votes must be a non-negative integer")
    if votes < 0:
        raise ValidationError("votes", "Votes must be a non-negative integer")
    return votes


def _check_payload(data: Any, allow_votes: bool) -> ToolPayload:
    if not isinstance(data, dict):
        raise ValidationError("payload", "Invalid payload")

    for field in REQUIRED_FIELDS:
        value = data.get(field)
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(field, f"Invalid {field}")

    reason = url_error(data["url"])
    if reason:
        raise ValidationError("url", reason)

    if len(data["description"]) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError("description", "Description is too long")

    optional_urls: Dict[str, Optional[str]] = {}
    for wire_name, attr_name in OPTIONAL_URL_FIELDS:
        value = _field(data, wire_name, attr_name)
        if value is None or (isinstance(value, str) and not value.strip()):
            optional_urls[attr_name] = None
            continue
        if not isinstance(value, str):
            raise ValidationError(wire_name, f"Invalid {wire_name}")
        reason = url_error(value)
        if reason:
            raise ValidationError(wire_name, reason)
        optional_urls[attr_name] = value.strip()

    tags = _clean_tags(data.get("tags"))
    votes = _clean_votes(data.get("votes")) if allow_votes else None

    return ToolPayload(
        name=data["name"].strip(),
        url=data["url"].strip(),
        category=data["category"].strip(),
        description=data["description"].strip(),
        tags=tags,
        votes=votes,
        **optional_urls,
    )


def validate_payload(data: Any, *, allow_votes: bool = False) -> ValidationResult:
    """Run the validation gate, returning the cleaned payload or the first failure."""
    try:
        return ValidationResult(payload=_check_payload(data, allow_votes))
    except ValidationError as e:
        return ValidationResult(error=e)


class ModerationService:
    """Public submissions, admin decisions and catalog edits over a store."""

    def __init__(self, store: CatalogStore) -> None:
        self.store = store

    # Reads

    def list_tools(self) -> List[Tool]:
        return [Tool.from_record(record) for record in self.store.list(TOOLS)]

    def list_submissions(self) -> List[Submission]:
        return [Submission.from_record(record) for record in self.store.list(SUBMISSIONS)]

    # Public actions

    def submit(self, data: Any) -> Submission:
        payload = validate_payload(data).unwrap()
        submission = Submission(
            id=generate_submission_id(),
            name=payload.name,
            url=payload.url,
            category=payload.category,
            description=payload.description,
            tags=derive_tags(payload.description),
            votes=0,
            thumbnail_url=payload.thumbnail_url,
            demo_video_url=payload.demo_video_url,
        )
        self.store.insert(SUBMISSIONS, submission.to_record())
        logger.info(f"Queued submission {submission.id} ({submission.name})")
        return submission

    def vote(self, tool_id: str) -> int:
        votes = self.store.increment_vote(TOOLS, tool_id)
        logger.info(f"Vote recorded for {tool_id} (now {votes})")
        return votes

    # Admin actions

    def approve(self, submission_id: str) -> Tool:
        """Move a submission into the tool collection under a fresh id."""

        def to_tool(record: Dict[str, Any]) -> Dict[str, Any]:
            submission = Submission.from_record(record)
            tool = Tool(
                id=generate_tool_id(submission.name),
                name=submission.name,
                url=submission.url,
                category=submission.category,
                description=submission.description,
                tags=submission.tags,
                votes=submission.votes,
                thumbnail_url=submission.thumbnail_url,
                demo_video_url=submission.demo_video_url,
                created_at=now_iso(),
            )
            return tool.to_record()

        for attempt in range(1, ID_RETRIES + 1):
            try:
                record = self.store.move(SUBMISSIONS, TOOLS, submission_id, to_tool)
            except DuplicateKeyError as e:
                logger.warning(f"Tool id collision on approve ({e.record_id}), attempt {attempt}/{ID_RETRIES}")
                continue
            except NotFoundError:
                # A concurrent approve/reject got there first.
                logger.info(f"Submission {submission_id} already resolved or missing")
                raise
            logger.info(f"Approved submission {submission_id} as {record['id']}")
            return Tool.from_record(record)

        raise DuplicateKeyError(TOOLS, submission_id)

    def reject(self, submission_id: str) -> None:
        try:
            self.store.delete(SUBMISSIONS, submission_id)
        except NotFoundError:
            logger.info(f"Submission {submission_id} already resolved or missing")
            raise
        logger.info(f"Rejected submission {submission_id}")

    def publish(self, data: Any) -> Tool:
        """Add a tool directly, bypassing the submission queue."""
        payload = validate_payload(data, allow_votes=True).unwrap()
        for attempt in range(1, ID_RETRIES + 1):
            tool = Tool(
                id=generate_tool_id(payload.name),
                name=payload.name,
                url=payload.url,
                category=payload.category,
                description=payload.description,
                tags=payload.tags if payload.tags is not None else derive_tags(payload.description),
                votes=payload.votes or 0,
                thumbnail_url=payload.thumbnail_url,
                demo_video_url=payload.demo_video_url,
            )
            try:
                self.store.insert(TOOLS, tool.to_record())
            except DuplicateKeyError:
                logger.warning(f"Tool id collision on publish ({tool.id}), attempt {attempt}/{ID_RETRIES}")
                continue
            logger.info(f"Published {tool.id} ({tool.name})")
            return tool

        raise DuplicateKeyError(TOOLS, payload.name)

    def edit(self, tool_id: str, data: Any) -> Tool:
        """Replace the mutable fields of a tool; id and createdAt are kept."""
        payload = validate_payload(data, allow_votes=True).unwrap()
        patch: Dict[str, Any] = {
            "name": payload.name,
            "url": payload.url,
            "category": payload.category,
            "description": payload.description,
            "tags": payload.tags if payload.tags is not None else derive_tags(payload.description),
            "thumbnailUrl": payload.thumbnail_url,
            "demoVideoUrl": payload.demo_video_url,
        }
        if payload.votes is not None:
            patch["votes"] = payload.votes
        record = self.store.update(TOOLS, tool_id, patch)
        logger.info(f"Edited {tool_id}")
        return Tool.from_record(record)

    def delete(self, tool_id: str) -> None:
        self.store.delete(TOOLS, tool_id)
        logger.info(f"Deleted {tool_id}")
