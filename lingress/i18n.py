"""Localized messages loaded from YAML files and resolved by Accept-Language."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

import yaml

from lingress.providers import FileProvider

DEFAULT_LANGUAGE = "en"
FALLBACK_TAG = "en-US"
UNDEFINED_TAG = "und"

_TAG_RE = re.compile(r"^[A-Za-z]{1,8}(?:-[A-Za-z0-9]{1,8})*$")
_PLURAL_FORMS = ("other", "one", "zero", "two", "few", "many")
_RESERVED_KEYS = frozenset(
    {"id", "description", "hash", "leftdelim", "rightdelim", *_PLURAL_FORMS}
)
_EXTENSIONS = (".yaml", ".yml")


class EmptyBundleError(Exception):
    """Raised when no localization file could be found."""

    def __init__(self) -> None:
        super().__init__("empty bundle")


class MessageNotFoundError(LookupError):
    """Raised when a message id is unknown for every candidate language."""

    def __init__(self, message_id: str, tag: str) -> None:
        super().__init__(f'message "{message_id}" not found in language "{tag}"')
        self.message_id = message_id
        self.tag = tag


def canonical_tag(tag: str) -> str:
    """Normalize a language tag, e.g. ``EN_us`` -> ``en-US``; raises ValueError."""
    candidate = tag.strip().replace("_", "-")
    if not _TAG_RE.match(candidate):
        raise ValueError(f"illegal language tag: {tag!r}")
    head, *rest = candidate.split("-")
    parts = [head.lower()]
    for part in rest:
        if len(part) == 2 and part.isalpha():
            parts.append(part.upper())
        elif len(part) == 4 and part.isalpha():
            parts.append(part.title())
        else:
            parts.append(part.lower())
    return "-".join(parts)


def _base_of(tag: str) -> str:
    return tag.split("-", 1)[0]


def parse_accept_language(header: str) -> list[str]:
    """The languages of an Accept-Language header, most preferred first.

    Invalid entries, wildcards and entries with a quality of zero are skipped.
    """
    weighted: list[tuple[float, str]] = []
    for entry in (header or "").split(","):
        raw_tag, *params = entry.split(";")
        raw_tag = raw_tag.strip()
        if not raw_tag or raw_tag == "*":
            continue
        try:
            tag = canonical_tag(raw_tag)
        except ValueError:
            continue
        quality = 1.0
        valid = True
        for param in params:
            key, _, value = param.strip().partition("=")
            if key.strip().lower() == "q":
                try:
                    quality = float(value.strip())
                except ValueError:
                    valid = False
        if valid and quality > 0:
            weighted.append((quality, tag))
    weighted.sort(key=lambda item: -item[0])
    result: list[str] = []
    for _, tag in weighted:
        if tag not in result:
            result.append(tag)
    return result


def _message_text(value: Mapping[Any, Any]) -> str:
    for form in _PLURAL_FORMS:
        if form in value:
            return str(value[form])
    return ""


def _flatten(messages: Mapping[Any, Any], prefix: str = "") -> dict[str, str]:
    result: dict[str, str] = {}
    for key, value in messages.items():
        full = prefix + str(key)
        if isinstance(value, str):
            result[full] = value
        elif isinstance(value, bool) or value is None or isinstance(value, (list, tuple)):
            raise ValueError(f"unsupported value for message {full!r}")
        elif isinstance(value, (int, float)):
            result[full] = str(value)
        elif isinstance(value, Mapping):
            if value and all(str(k).lower() in _RESERVED_KEYS for k in value):
                result[full] = _message_text({str(k).lower(): v for k, v in value.items()})
            else:
                result.update(_flatten(value, full + "."))
        else:
            raise ValueError(f"unsupported value for message {full!r}")
    return result


class Bundle:
    """Messages grouped by language, with a default language as last resort."""

    def __init__(self, default_language: str = DEFAULT_LANGUAGE) -> None:
        self.default_language = canonical_tag(default_language)
        self._messages: dict[str, dict[str, str]] = {}

    @property
    def languages(self) -> list[str]:
        return sorted(self._messages)

    def add_messages(self, language: str, messages: Mapping[Any, Any]) -> None:
        """Add messages of a language; nested mappings give dotted ids."""
        tag = canonical_tag(language)
        self._messages.setdefault(tag, {}).update(_flatten(messages))

    def _candidates(self, accept_language: str) -> list[str]:
        result: list[str] = []
        for preferred in parse_accept_language(accept_language):
            if preferred in self._messages and preferred not in result:
                result.append(preferred)
            base = _base_of(preferred)
            same_base = sorted(
                (tag for tag in self._messages if _base_of(tag) == base),
                key=lambda tag: (tag != base, tag),
            )
            result.extend(tag for tag in same_base if tag not in result)
        if self.default_language not in result:
            result.append(self.default_language)
        return result

    def localize(self, accept_language: str, message_id: str) -> tuple[str, str]:
        """Return the message and the language it was found in."""
        candidates = self._candidates(accept_language)
        for tag in candidates:
            messages = self._messages.get(tag)
            if messages is not None and message_id in messages:
                return messages[message_id], tag
        raise MessageNotFoundError(message_id, candidates[0])


def load_bundle(provider: FileProvider) -> Bundle:
    """Load every YAML file of the provider's root; the file name names the language."""
    bundle = Bundle(DEFAULT_LANGUAGE)
    try:
        entries = provider.read_dir(".")
    except OSError as error:
        raise OSError(f"cannot load contents of localization file provider: {error}") from error

    loaded_any = False
    for entry in entries:
        if entry.is_dir or not entry.name.endswith(_EXTENSIONS):
            continue
        try:
            content = provider.read_file(entry.name)
        except OSError as error:
            raise OSError(
                f"file '{entry.name}' could not be loaded but should exists: {error}"
            ) from error
        stem = entry.name.rsplit(".", 1)[0]
        language = stem.rsplit(".", 1)[-1]
        try:
            parsed = yaml.safe_load(content) or {}
            if not isinstance(parsed, Mapping):
                raise ValueError("top level is not a mapping")
            bundle.add_messages(language, parsed)
        except (yaml.YAMLError, ValueError) as error:
            raise ValueError(f"cannot load localization file '{entry.name}': {error}") from error
        loaded_any = True

    if not loaded_any:
        raise EmptyBundleError()
    return bundle


@dataclass
class LocalizationContext:
    """Resolves messages for one client's language preferences."""

    bundle: Bundle
    accept_language: str = ""
    logger: Optional[logging.Logger] = field(default=None)

    def lang_by(self, message_id: str) -> str:
        """The language the message would be rendered in."""
        return self._message_or_default("", message_id)[1]

    def message(self, message_id: str) -> str:
        return self.message_or_default("", message_id)

    def message_or_default(self, fallback_id: str, message_id: str) -> str:
        """The message, or the one of ``fallback_id`` if unknown, or an empty string."""
        return self._message_or_default(fallback_id, message_id)[0]

    def _message_or_default(self, fallback_id: str, message_id: str) -> tuple[str, str]:
        try:
            return self.bundle.localize(self.accept_language, message_id)
        except MessageNotFoundError:
            pass
        try:
            return self.bundle.localize(FALLBACK_TAG, message_id)
        except MessageNotFoundError as error:
            if fallback_id:
                return self.message(fallback_id), UNDEFINED_TAG
            (self.logger or logging.getLogger("lingress.i18n")).warning(
                "There was a message id requested which does not exist;"
                " will respond with empty string. (accept=%r, id=%r): %s",
                self.accept_language,
                message_id,
                error,
            )
            return "", FALLBACK_TAG


def localize_status(status_code: int, localization: LocalizationContext) -> str:
    """The localized text for an HTTP status, falling back to a generic message."""
    return localization.message_or_default(
        "status-message.default", f"status-message.{status_code}"
    )