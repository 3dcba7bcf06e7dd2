"""
Prompt template manager.

Named prompt templates rendered with Jinja2 before dispatch. Templates come
from PROMPT_TEMPLATES_DIR and from in-memory registrations; a backend-specific
variant (``<backend>/<name>``) wins over the generic one.

Registered templates are versioned: every registration appends a numbered
version, and exactly one version per template is active at a time. Versions
can be activated, rolled back and compared. History is process-local.
Directory templates are not versioned.
"""

import difflib
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import structlog
from jinja2 import (
    ChoiceLoader,
    DictLoader,
    Environment,
    FileSystemLoader,
    StrictUndefined,
    Template,
    TemplateNotFound,
    TemplateSyntaxError,
    UndefinedError,
    meta,
)

from inference_gateway.llm.exceptions import InvalidRequestError
from inference_gateway.models.selection import utcnow

logger = structlog.get_logger(__name__)

TEMPLATE_SUFFIXES = ("", ".txt", ".j2")


@dataclass(frozen=True)
class PromptTemplateVersion:
    """One immutable revision of a registered template."""

    key: str
    version: int
    source: str
    variables: tuple[str, ...]
    author: Optional[str] = None
    reason: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class VersionComparison:
    old: PromptTemplateVersion
    new: PromptTemplateVersion
    differences: list[str]
    diff: str


class PromptTemplateManager:
    def __init__(self, templates_dir: Optional[str | Path] = None):
        """
        Args:
            templates_dir: Directory of template files; may be missing, in
                which case only registered templates resolve.
        """
        # DictLoader re-checks this mapping on every lookup, so swapping the
        # active source invalidates the compiled template.
        self._registered: dict[str, str] = {}
        self._versions: dict[str, list[PromptTemplateVersion]] = {}
        self._active: dict[str, int] = {}
        loaders: list = [DictLoader(self._registered)]
        if templates_dir is not None:
            loaders.append(FileSystemLoader(str(templates_dir)))

        self.jinja_env = Environment(
            loader=ChoiceLoader(loaders),
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
            autoescape=False,  # prompts, not HTML
        )
        logger.info("PromptTemplateManager initialized", templates_dir=str(templates_dir))

    @staticmethod
    def _key(name: str, backend: Optional[str]) -> str:
        return f"{backend}/{name}" if backend else name

    def register(self, name: str, source: str, backend: Optional[str] = None) -> None:
        """Register an in-memory template, optionally for one backend only."""
        self.create_version(name, source, backend=backend, activate=True)

    def create_version(
        self,
        name: str,
        source: str,
        backend: Optional[str] = None,
        author: Optional[str] = None,
        reason: Optional[str] = None,
        activate: bool = True,
    ) -> PromptTemplateVersion:
        """
        Append a new version of ``name``.

        Version numbers start at 1 and increase by one per template. With
        ``activate=False`` the version is stored but the current one keeps
        serving renders.

        Raises:
            InvalidRequestError: source is not a valid Jinja2 template
        """
        key = self._key(name, backend)
        try:
            variables = tuple(sorted(meta.find_undeclared_variables(self.jinja_env.parse(source))))
        except TemplateSyntaxError as e:
            raise InvalidRequestError(
                f"Prompt template {key!r} is malformed: {e.message}",
                details={"template": key},
            ) from e

        history = self._versions.setdefault(key, [])
        record = PromptTemplateVersion(
            key=key,
            version=len(history) + 1,
            source=source,
            variables=variables,
            author=author,
            reason=reason,
        )
        history.append(record)
        logger.debug("Prompt template version created", template=key, version=record.version)

        if activate:
            self._set_active(record)
        return record

    def _set_active(self, record: PromptTemplateVersion) -> None:
        self._registered[record.key] = record.source
        self._active[record.key] = record.version

    def get_version(
        self, name: str, version: int, backend: Optional[str] = None
    ) -> Optional[PromptTemplateVersion]:
        history = self._versions.get(self._key(name, backend), [])
        if 1 <= version <= len(history):
            return history[version - 1]
        return None

    def list_versions(
        self, name: str, backend: Optional[str] = None, limit: Optional[int] = None
    ) -> list[PromptTemplateVersion]:
        """Versions of ``name``, newest first."""
        history = list(reversed(self._versions.get(self._key(name, backend), [])))
        return history[:limit] if limit is not None else history

    def active_version(self, name: str, backend: Optional[str] = None) -> Optional[int]:
        return self._active.get(self._key(name, backend))

    def activate_version(
        self, name: str, version: int, backend: Optional[str] = None
    ) -> PromptTemplateVersion:
        """
        Make ``version`` the one served by ``render``.

        Raises:
            KeyError: no such template or version
        """
        record = self.get_version(name, version, backend)
        if record is None:
            raise KeyError(f"Prompt template {self._key(name, backend)!r} has no version {version}")
        self._set_active(record)
        logger.info("Prompt template version activated", template=record.key, version=version)
        return record

    def rollback(
        self, name: str, version: Optional[int] = None, backend: Optional[str] = None
    ) -> PromptTemplateVersion:
        """
        Reactivate an earlier version; defaults to the one before the active one.

        Raises:
            KeyError: template unknown or requested version missing
            ValueError: active version is already the first one
        """
        key = self._key(name, backend)
        current = self._active.get(key)
        if current is None:
            raise KeyError(f"Prompt template {key!r} has no active version")
        if version is None:
            if current <= 1:
                raise ValueError(f"Prompt template {key!r} has no earlier version")
            version = current - 1
        record = self.activate_version(name, version, backend)
        logger.info("Prompt template rolled back", template=key, from_version=current, to_version=version)
        return record

    def compare_versions(
        self, name: str, old: int, new: int, backend: Optional[str] = None
    ) -> VersionComparison:
        """
        Compare two versions of ``name``.

        ``differences`` holds one line per changed aspect (content, variables,
        author); ``diff`` is a unified diff of the sources.

        Raises:
            KeyError: either version is missing
        """
        old_record = self.get_version(name, old, backend)
        new_record = self.get_version(name, new, backend)
        if old_record is None or new_record is None:
            missing = old if old_record is None else new
            raise KeyError(f"Prompt template {self._key(name, backend)!r} has no version {missing}")

        differences: list[str] = []
        if old_record.source != new_record.source:
            differences.append("Content differs")
        added = sorted(set(new_record.variables) - set(old_record.variables))
        removed = sorted(set(old_record.variables) - set(new_record.variables))
        if added:
            differences.append(f"Variables added: {', '.join(added)}")
        if removed:
            differences.append(f"Variables removed: {', '.join(removed)}")
        if old_record.author != new_record.author:
            differences.append(f"Author differs: {old_record.author} vs {new_record.author}")

        diff = "\n".join(
            difflib.unified_diff(
                old_record.source.splitlines(),
                new_record.source.splitlines(),
                fromfile=f"{old_record.key}@v{old}",
                tofile=f"{new_record.key}@v{new}",
                lineterm="",
            )
        )
        return VersionComparison(old=old_record, new=new_record, differences=differences, diff=diff)

    def get_template(self, name: str, backend: Optional[str] = None) -> Optional[Template]:
        """Resolve ``name``, preferring the backend-specific variant. None if absent."""
        candidates = [f"{backend}/{name}"] if backend else []
        candidates.append(name)
        for candidate in candidates:
            for suffix in TEMPLATE_SUFFIXES:
                try:
                    return self.jinja_env.get_template(candidate + suffix)
                except TemplateNotFound:
                    continue
                except TemplateSyntaxError as e:
                    raise InvalidRequestError(
                        f"Prompt template {candidate + suffix!r} is malformed: {e.message}",
                    ) from e
        return None

    def render(
        self,
        name: str,
        variables: Optional[dict[str, Any]] = None,
        backend: Optional[str] = None,
        default: Optional[str] = None,
    ) -> Optional[str]:
        """
        Render template ``name``; returns ``default`` when it does not exist.

        Raises:
            InvalidRequestError: template references a variable that was not supplied
        """
        template = self.get_template(name, backend)
        if template is None:
            logger.warning("Prompt template not found, using raw prompt", template=name, backend=backend)
            return default
        try:
            return template.render(**(variables or {})).strip()
        except UndefinedError as e:
            raise InvalidRequestError(
                f"Missing variable for prompt template {name!r}: {e.message}",
                details={"template": name},
            ) from e
