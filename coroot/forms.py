"""Validation of the JSON forms submitted to the API."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, ClassVar, Protocol, TypeVar
from urllib.parse import urlsplit

_SLUG = re.compile(r"[-_0-9a-z]{3,}")
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


class InvalidForm(ValueError):
    """A submitted form is malformed or fails validation."""

    def __init__(self, message: str = "invalid form") -> None:
        super().__init__(message)


class _Form(Protocol):
    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> _Form: ...

    def valid(self) -> bool: ...


F = TypeVar("F", bound=_Form)


def _str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise InvalidForm(f"{key} must be a string")
    return value


def _bool(data: dict[str, Any], key: str) -> bool:
    value = data.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise InvalidForm(f"{key} must be a boolean")
    return value


def _number(data: dict[str, Any], key: str) -> float:
    value = data.get(key)
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidForm(f"{key} must be a number")
    return float(value)


def _object(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise InvalidForm(f"{key} must be an object")
    return value


def _objects(data: dict[str, Any], key: str) -> list[dict[str, Any]]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, dict) for v in value):
        raise InvalidForm(f"{key} must be a list of objects")
    return value


def _valid_url(url: str) -> bool:
    if any(ord(c) < 0x20 or ord(c) == 0x7F for c in url):
        return False
    if url.startswith(":"):
        return False
    if _BAD_ESCAPE.search(url):
        return False
    try:
        parts = urlsplit(url)
        _ = parts.port
    except ValueError:
        return False
    return True


def _glob_escape(pattern: str, i: int) -> tuple[str, int] | None:
    if i >= len(pattern) or pattern[i] in "-]":
        return None
    if pattern[i] == "\\":
        i += 1
        if i >= len(pattern):
            return None
    return pattern[i], i + 1


def _valid_glob(pattern: str) -> bool:
    i, n = 0, len(pattern)
    while i < n:
        c = pattern[i]
        if c == "\\":
            if i + 1 >= n:
                return False
            i += 2
        elif c == "[":
            i += 1
            if i < n and pattern[i] == "^":
                i += 1
            ranges = 0
            while True:
                if i < n and pattern[i] == "]" and ranges > 0:
                    i += 1
                    break
                lo = _glob_escape(pattern, i)
                if lo is None:
                    return False
                low, i = lo
                if i < n and pattern[i] == "-":
                    hi = _glob_escape(pattern, i + 1)
                    if hi is None:
                        return False
                    high, i = hi
                    if low > high:
                        return False
                ranges += 1
        else:
            i += 1
    return True


def glob_validate(patterns: list[str]) -> bool:
    """Return True if every pattern is a well-formed shell glob."""
    return all(_valid_glob(p) for p in patterns)


def read_and_validate(form_class: type[F], body: str | bytes) -> F:
    """Decode a JSON request body into `form_class` and validate it.

    Raises json.JSONDecodeError for malformed JSON and InvalidForm for a form
    of the wrong shape or one that fails validation.
    """
    data = json.loads(body)
    if not isinstance(data, dict):
        raise InvalidForm("form must be a JSON object")
    form = form_class.from_dict(data)
    if not form.valid():
        raise InvalidForm()
    return form


@dataclass
class ProjectForm:
    """A project's name and its Prometheus settings."""

    name: str = ""
    prometheus: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProjectForm:
        return cls(name=_str(data, "name"), prometheus=_object(data, "prometheus"))

    def valid(self) -> bool:
        if not _SLUG.fullmatch(self.name):
            return False
        url = self.prometheus.get("url", "")
        if not isinstance(url, str):
            return False
        return _valid_url(url)


@dataclass
class CheckConfigSLOAvailabilityForm:
    """Availability objectives of an application."""

    configs: list[dict[str, Any]] = field(default_factory=list)
    default: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CheckConfigSLOAvailabilityForm:
        return cls(configs=_objects(data, "configs"), default=_bool(data, "default"))

    def valid(self) -> bool:
        for c in self.configs:
            if _bool(c, "custom") and (
                not _str(c, "total_requests_query") or not _str(c, "failed_requests_query")
            ):
                return False
        return True


@dataclass
class CheckConfigSLOLatencyForm:
    """Latency objectives of an application."""

    configs: list[dict[str, Any]] = field(default_factory=list)
    default: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CheckConfigSLOLatencyForm:
        return cls(configs=_objects(data, "configs"), default=_bool(data, "default"))

    def valid(self) -> bool:
        for c in self.configs:
            if _bool(c, "custom") and (
                not _str(c, "histogram_query") or _number(c, "objective_bucket") <= 0
            ):
                return False
        return True


@dataclass
class ApplicationCategoryForm:
    """A renamed application category and its custom `namespace/name` patterns."""

    name: str = ""
    new_name: str = ""
    custom_patterns: str = ""
    patterns: list[str] = field(default_factory=list, init=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ApplicationCategoryForm:
        return cls(
            name=_str(data, "name"),
            new_name=_str(data, "new_name"),
            custom_patterns=_str(data, "custom_patterns"),
        )

    def valid(self) -> bool:
        if not _SLUG.fullmatch(self.new_name):
            return False
        self.patterns = self.custom_patterns.split()
        if not glob_validate(self.patterns):
            return False
        return all(p.count("/") == 1 and p.index("/") >= 1 for p in self.patterns)


@dataclass
class IntegrationsForm:
    """The base URL used in links sent by integrations; trailing slashes are dropped."""

    base_url: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IntegrationsForm:
        return cls(base_url=_str(data, "base_url"))

    def valid(self) -> bool:
        if not self.base_url or not _valid_url(self.base_url):
            return False
        self.base_url = self.base_url.rstrip("/")
        return True


@dataclass
class IntegrationsSlackForm:
    """Slack credentials and the channel alerts go to."""

    token: str = ""
    channel: str = ""
    enabled: bool = False

    _REQUIRED: ClassVar[tuple[str, ...]] = ("token", "channel")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IntegrationsSlackForm:
        return cls(
            token=_str(data, "token"),
            channel=_str(data, "channel"),
            enabled=_bool(data, "enabled"),
        )

    def valid(self) -> bool:
        return all(getattr(self, name) for name in self._REQUIRED)