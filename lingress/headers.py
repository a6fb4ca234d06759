"""Multi-valued HTTP headers and hop-by-hop header handling."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import Union

HOP_HEADERS = (
    "Connection",
    "Proxy-Connection",
    "Keep-Alive",
    "Proxy-Authenticate",
    "Proxy-Authorization",
    "Te",
    "Trailer",
    "Transfer-Encoding",
    "Upgrade",
)

_TOKEN_CHARS = frozenset(
    "!#$%&'*+-.^_`|~0123456789"
    "abcdefghijklmnopqrstuvwxyz"
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
)


def canonical_key(key: str) -> str:
    """Return the canonical MIME form of a header key, e.g. ``content-type`` -> ``Content-Type``.

    Keys containing characters that are not valid in a header token are returned unchanged.
    """
    if any(ch not in _TOKEN_CHARS for ch in key):
        return key
    return "-".join(part[:1].upper() + part[1:].lower() for part in key.split("-"))


class Headers:
    """A case-insensitive mapping of header names to lists of values."""

    def __init__(self, initial: Mapping[str, Union[str, Iterable[str]]] | None = None) -> None:
        self._data: dict[str, list[str]] = {}
        for key, value in (initial or {}).items():
            if isinstance(value, str):
                self.add(key, value)
            else:
                for item in value:
                    self.add(key, item)

    def get(self, key: str) -> str:
        """First value of the header, or an empty string."""
        values = self._data.get(canonical_key(key))
        return values[0] if values else ""

    def values(self, key: str) -> list[str]:
        return list(self._data.get(canonical_key(key), ()))

    def add(self, key: str, value: str) -> None:
        self._data.setdefault(canonical_key(key), []).append(value)

    def set(self, key: str, value: str) -> None:
        self._data[canonical_key(key)] = [value]

    def delete(self, key: str) -> None:
        self._data.pop(canonical_key(key), None)

    def copy(self) -> "Headers":
        result = Headers()
        result._data = {key: list(values) for key, values in self._data.items()}
        return result

    def items(self) -> Iterator[tuple[str, list[str]]]:
        for key, values in self._data.items():
            yield key, list(values)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and canonical_key(key) in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._data))

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Headers):
            return NotImplemented
        return self._data == other._data

    def __repr__(self) -> str:
        return f"Headers({self._data!r})"


def header_values_contain_token(values: Iterable[str], token: str) -> bool:
    """Whether any comma separated element of the values equals the token, ignoring case."""
    wanted = token.lower()
    return any(
        part.strip(" \t").lower() == wanted
        for value in values
        for part in value.split(",")
    )


def retrieve_upgrade_type(headers: Headers) -> str:
    if not header_values_contain_token(headers.values("Connection"), "Upgrade"):
        return ""
    return headers.get("Upgrade").lower()


def remove_connection_headers(headers: Headers) -> None:
    """Remove the hop-by-hop headers listed in the Connection header."""
    connection = headers.get("Connection")
    if not connection:
        return
    for field in connection.split(","):
        field = field.strip()
        if field:
            headers.delete(field)


def remove_hop_request_headers(headers: Headers) -> None:
    """Remove hop-by-hop headers before forwarding a request, keeping ``Te: trailers``."""
    for candidate in HOP_HEADERS:
        value = headers.get(candidate)
        if not value:
            continue
        if candidate == "Te" and value == "trailers":
            continue
        headers.delete(candidate)


def remove_hop_response_headers(headers: Headers) -> None:
    for candidate in HOP_HEADERS:
        headers.delete(candidate)


def set_connection_upgrades(headers: Headers, upgrade_type: str) -> None:
    if upgrade_type:
        headers.set("Connection", "Upgrade")
        headers.set("Upgrade", upgrade_type)


def copy_headers(dst: Headers, src: Headers) -> None:
    for key, values in src.items():
        for value in values:
            dst.add(key, value)


def strip_prefix(path: list[str], prefix: list[str]) -> list[str]:
    """Remove prefix from the start of path if path starts with it."""
    if len(path) < len(prefix) or path[: len(prefix)] != list(prefix):
        return path
    return path[len(prefix):]