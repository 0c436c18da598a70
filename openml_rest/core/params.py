from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

from .errors import ParameterNameError

UPLOAD_SEPARATOR = "|"

# These would break out of the part headers.
_FORBIDDEN_IN_UPLOAD = ("\r", "\n", '"')

ParamValue = Union[str, bytes]


@dataclass(frozen=True, slots=True)
class UploadField:
    """Parsed form of a file-upload parameter name.

    Accepted syntax:
      name|mime-type
      name|mime-type|filename

    The filename defaults to the field name.
    """

    field: str
    mime_type: str
    filename: str

    @staticmethod
    def parse(name: str) -> "UploadField":
        """Parse an upload name.

        Raises
        - ParameterNameError: if any component is empty, there are more than three,
          or a component contains CR, LF or a double quote.
        """

        parts = name.split(UPLOAD_SEPARATOR)
        if len(parts) not in (2, 3):
            raise ParameterNameError(f"upload parameter must be 'name|mime[|filename]': {name!r}")
        if any(not p.strip() for p in parts):
            raise ParameterNameError(f"upload parameter has an empty component: {name!r}")
        if any(c in p for p in parts for c in _FORBIDDEN_IN_UPLOAD):
            raise ParameterNameError(f"upload parameter contains CR, LF or a quote: {name!r}")
        field, mime_type = parts[0], parts[1]
        filename = parts[2] if len(parts) == 3 else field
        return UploadField(field=field, mime_type=mime_type, filename=filename)

    def to_name(self) -> str:
        if self.filename == self.field:
            return f"{self.field}{UPLOAD_SEPARATOR}{self.mime_type}"
        return f"{self.field}{UPLOAD_SEPARATOR}{self.mime_type}{UPLOAD_SEPARATOR}{self.filename}"


def is_upload_name(name: str) -> bool:
    return UPLOAD_SEPARATOR in name


class ParameterList:
    """Ordered request parameters.

    Unlike a dict, the list keeps insertion order and allows repeated names.
    The order carries no meaning for HTTP, but the OpenML REST API depends on it.

    Values are stored as str, except file-upload content which may be bytes.
    """

    __slots__ = ("_items",)

    def __init__(self, items: Optional[Iterable[Tuple[str, Any]]] = None):
        self._items: List[Tuple[str, ParamValue]] = []
        for name, value in items or ():
            self.add(name, value)

    @staticmethod
    def coerce(
        parameters: Union["ParameterList", Mapping[str, Any], Iterable[Tuple[str, Any]], None],
    ) -> "ParameterList":
        """Build a ParameterList from the shapes callers commonly pass."""

        if parameters is None:
            return ParameterList()
        if isinstance(parameters, ParameterList):
            return parameters.copy()
        if isinstance(parameters, Mapping):
            return ParameterList(parameters.items())
        return ParameterList(parameters)

    def add(self, name: str, value: Any) -> "ParameterList":
        if not isinstance(name, str) or not name:
            raise ParameterNameError(f"parameter name must be a non-empty string: {name!r}")
        if is_upload_name(name):
            UploadField.parse(name)
            if isinstance(value, (bytes, bytearray, memoryview)):
                self._items.append((name, bytes(value)))
                return self
        if isinstance(value, (bytes, bytearray, memoryview)):
            value = bytes(value).decode("utf-8")
        self._items.append((name, value if isinstance(value, str) else str(value)))
        return self

    def add_file(
        self, field: str, mime_type: str, content: Union[str, bytes], filename: Optional[str] = None
    ) -> "ParameterList":
        """Append a file-upload parameter; `content` is the file body, not a path."""

        upload = UploadField.parse(
            UPLOAD_SEPARATOR.join([field, mime_type] + ([filename] if filename else []))
        )
        return self.add(upload.to_name(), content)

    def names(self) -> List[str]:
        return [name for name, _ in self._items]

    def has(self, name: str) -> bool:
        return any(n == name for n, _ in self._items)

    def has_uploads(self) -> bool:
        return any(is_upload_name(n) for n, _ in self._items)

    def copy(self) -> "ParameterList":
        out = ParameterList()
        out._items = list(self._items)
        return out

    def __iter__(self) -> Iterator[Tuple[str, ParamValue]]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ParameterList):
            return self._items == other._items
        return NotImplemented

    def __repr__(self) -> str:
        return f"ParameterList({self.names()!r})"
