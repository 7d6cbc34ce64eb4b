"""
Data models for flightcheck runs.

These models represent the domain objects exchanged between the bus, the
hooks and the aggregator, independent of the bus transport in use.
"""

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from .errors import InvalidJobError


def _freeze_ref(value: Any, name: str) -> Mapping[str, Any]:
    """Copy a database reference into a read-only mapping."""
    if not isinstance(value, Mapping):
        raise InvalidJobError(f"Job field '{name}' must be an object")
    if "_id" not in value:
        raise InvalidJobError(f"Job field '{name}' has no _id")
    return MappingProxyType(copy.deepcopy(dict(value)))


def _count(value: Any, name: str) -> int:
    """Validate an error/warning counter."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"'{name}' must be an integer, got {value!r}")
    if value < 0:
        raise ValueError(f"'{name}' must not be negative, got {value}")
    return value


@dataclass(frozen=True)
class Job:
    """
    Represents one unit of work received with a cycle:start event.

    The project, release and cycle fields are references to database
    documents owned by the sender. They carry at least an "_id" key and are
    read-only once the job is constructed, so every hook of a run can share
    the same instance.
    """

    repo: str  # git repo, e.g. "git@github.com:elementary/houston.git"
    tag: str  # git tag or branch, e.g. "master"
    project: Mapping[str, Any]
    cycle: Mapping[str, Any]
    release: Mapping[str, Any] | None = None

    @property
    def cycle_id(self) -> Any:
        return self.cycle["_id"]

    @property
    def project_id(self) -> Any:
        return self.project["_id"]

    @property
    def release_id(self) -> Any | None:
        return self.release["_id"] if self.release is not None else None

    @property
    def project_name(self) -> str:
        """Human readable project name for log lines."""
        return str(self.project.get("name", self.project["_id"]))

    def to_dict(self) -> dict[str, Any]:
        """Convert job to the bus payload format."""
        return {
            "repo": self.repo,
            "tag": self.tag,
            "project": copy.deepcopy(dict(self.project)),
            "release": copy.deepcopy(dict(self.release))
            if self.release is not None
            else None,
            "cycle": copy.deepcopy(dict(self.cycle)),
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Job":
        """
        Create a job from a cycle:start payload.

        Raises:
            InvalidJobError: If a required field is missing or malformed
        """
        if not isinstance(data, Mapping):
            raise InvalidJobError("Job payload must be an object")

        for key in ("repo", "tag"):
            if not isinstance(data.get(key), str):
                raise InvalidJobError(f"Job field '{key}' must be a string")

        release = data.get("release")
        return cls(
            repo=data["repo"],
            tag=data["tag"],
            project=_freeze_ref(data.get("project"), "project"),
            cycle=_freeze_ref(data.get("cycle"), "cycle"),
            release=_freeze_ref(release, "release") if release is not None else None,
        )


@dataclass(frozen=True)
class Issue:
    """Feedback to be filed against the project's repository."""

    title: str
    body: str

    def to_dict(self) -> dict[str, str]:
        return {"title": self.title, "body": self.body}

    @classmethod
    def from_dict(cls, data: Any) -> "Issue":
        if not isinstance(data, Mapping):
            raise ValueError(f"Issue must be an object, got {data!r}")
        title = data.get("title")
        body = data.get("body")
        if not isinstance(title, str) or not isinstance(body, str):
            raise ValueError("Issue requires string 'title' and 'body'")
        return cls(title=title, body=body)


@dataclass(frozen=True)
class PartialResult:
    """
    The result produced by exactly one hook.

    Counters are non-negative. The information mapping holds values to be
    written back to the project's database record.
    """

    errors: int = 0
    warnings: int = 0
    information: Mapping[str, Any] = field(default_factory=dict)
    issue: Issue | None = None

    def __post_init__(self):
        _count(self.errors, "errors")
        _count(self.warnings, "warnings")
        if not isinstance(self.information, Mapping):
            raise ValueError("'information' must be a mapping")

    def to_dict(self) -> dict[str, Any]:
        return {
            "errors": self.errors,
            "warnings": self.warnings,
            "information": dict(self.information),
            "issue": self.issue.to_dict() if self.issue is not None else None,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "PartialResult":
        """
        Create a partial result from the mapping shape a hook may return.

        Missing counters default to zero and a missing information mapping
        defaults to empty.

        Raises:
            ValueError: If a field has the wrong type
        """
        if not isinstance(data, Mapping):
            raise ValueError(f"Hook result must be an object, got {data!r}")

        issue = data.get("issue")
        information = data.get("information")
        if information is not None and not isinstance(information, Mapping):
            raise ValueError("'information' must be a mapping")
        return cls(
            errors=data.get("errors", 0),
            warnings=data.get("warnings", 0),
            information=dict(information) if information is not None else {},
            issue=Issue.from_dict(issue) if issue is not None else None,
        )


@dataclass(frozen=True)
class HookOutcome:
    """
    Tagged result of one hook execution.

    Exactly one of result (hook settled) or error (hook failed) is set.
    """

    hook: str
    result: PartialResult | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_partial(self) -> PartialResult:
        """
        Fold the outcome into a partial result.

        A failed hook counts as one error and leaves a note naming the hook.
        """
        if self.result is not None:
            return self.result
        return PartialResult(
            errors=1, information={f"{self.hook}.error": self.error or "failed"}
        )


@dataclass
class AggregateReport:
    """
    The merged result of every hook run for one job.

    Built by the aggregator, then handed to the worker for publication as
    the cycle:finished payload.
    """

    cycle: Any
    project: Any
    release: Any | None = None
    errors: int = 0
    warnings: int = 0
    information: dict[str, Any] = field(default_factory=dict)
    issues: list[Issue] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert report to the cycle:finished payload format."""
        return {
            "cycle": self.cycle,
            "project": self.project,
            "release": self.release,
            "errors": self.errors,
            "warnings": self.warnings,
            "information": dict(self.information),
            "issues": [issue.to_dict() for issue in self.issues],
        }
