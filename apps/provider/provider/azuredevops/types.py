"""Wire models for Azure DevOps service-hook ``resource`` objects.

Passive data contracts: field names follow the JSON payload (camelCase,
mapped through an alias generator) and every field defaults to its zero
value, since Azure DevOps omits empty fields freely. Fields that are
genuinely nullable in the payload are Optional.

Azure DevOps writes "0001-01-01T00:00:00" (no offset) or "" for unset
dates. Both decode to ZERO_TIME; anything else must be strict RFC 3339.
"""

import re
from datetime import datetime, timezone
from typing import Annotated, Any, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)
_ZERO_TIME_LITERAL = "0001-01-01T00:00:00"

_RFC3339 = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}[Tt]\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<frac>\d+))?"
    r"(?P<tz>[Zz]|[+-]\d{2}:\d{2})$"
)


def parse_azure_time(value: Any) -> datetime:
    """Decode an Azure DevOps timestamp.

    Raises:
        ValueError: *value* is neither a zero-time marker nor RFC 3339.
    """
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValueError(f"expected a timestamp string, got {type(value).__name__}")
    if value in ("", _ZERO_TIME_LITERAL):
        return ZERO_TIME

    match = _RFC3339.match(value)
    if match is None:
        raise ValueError(f"timestamp {value!r} is not RFC 3339")

    # Azure sends 7 fractional digits; datetime only holds microseconds.
    frac = match.group("frac")
    frac = f".{frac[:6].ljust(6, '0')}" if frac else ""
    tz = match.group("tz")
    tz = "+00:00" if tz in ("Z", "z") else tz
    base = match.group("base").replace("t", "T")
    return datetime.fromisoformat(f"{base}{frac}{tz}")


AzureTime = Annotated[datetime, BeforeValidator(parse_azure_time)]


class _AzureModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Href(_AzureModel):
    href: str = ""


class Links(_AzureModel):
    web: Href = Field(default_factory=Href)
    statuses: Href = Field(default_factory=Href)
    avatar: Href = Field(default_factory=Href)


class Container(_AzureModel):
    id: str = ""


class ResourceContainers(_AzureModel):
    collection: Container = Field(default_factory=Container)
    account: Container = Field(default_factory=Container)
    project: Container = Field(default_factory=Container)


class User(_AzureModel):
    name: str = ""
    email: str = ""
    date: AzureTime = ZERO_TIME
    display_name: str = ""
    url: str = ""
    links: Links = Field(default_factory=Links, alias="_links")
    id: str = ""
    unique_name: str = ""
    image_url: str = ""
    descriptor: str = ""


class Project(_AzureModel):
    id: str = ""
    name: str = ""
    url: str = ""
    state: str = ""
    revision: int = 0
    visibility: str = ""
    last_update_time: AzureTime = ZERO_TIME


class Repository(_AzureModel):
    id: str = ""
    name: str = ""
    url: str = ""
    project: Project = Field(default_factory=Project)
    default_branch: str = ""
    size: Optional[int] = None
    remote_url: str = ""
    ssh_url: Optional[str] = None
    web_url: Optional[str] = None
    is_disabled: Optional[bool] = None
    is_in_maintenance: Optional[bool] = None


class Commit(_AzureModel):
    commit_id: str = ""
    author: User = Field(default_factory=User)
    committer: User = Field(default_factory=User)
    comment: str = ""
    url: str = ""


class RefUpdate(_AzureModel):
    name: str = ""
    old_object_id: str = ""
    new_object_id: str = ""


class PullRequestEventResource(_AzureModel):
    """``resource`` of a git.pullrequest.created / updated service hook."""

    repository: Repository = Field(default_factory=Repository)
    pull_request_id: int = 0
    code_review_id: int = 0
    status: str = ""
    created_by: User = Field(default_factory=User)
    creation_date: AzureTime = ZERO_TIME
    title: str = ""
    description: str = ""
    source_ref_name: str = ""
    target_ref_name: str = ""
    merge_status: str = ""
    is_draft: bool = False
    merge_id: str = ""
    last_merge_source_commit: Commit = Field(default_factory=Commit)
    last_merge_target_commit: Commit = Field(default_factory=Commit)
    last_merge_commit: Commit = Field(default_factory=Commit)
    reviewers: list[User] = []
    url: str = ""
    links: Links = Field(default_factory=Links, alias="_links")
    supports_iterations: bool = False
    artifact_id: str = ""


class PushEventResource(_AzureModel):
    """``resource`` of a git.push service hook."""

    commits: list[Commit] = []
    ref_updates: list[RefUpdate] = []
    repository: Repository = Field(default_factory=Repository)
    pushed_by: User = Field(default_factory=User)
    push_id: int = 0
    date: AzureTime = ZERO_TIME
    url: str = ""
