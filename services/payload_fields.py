"""Best-effort extraction of summary fields from loosely shaped callback payloads."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

Accessor = Callable[[Any], Any]

DEFAULT_FIELD_PATHS: Dict[str, List[str]] = {
    "status": ["data.status", "data.response.status", "msg"],
    "task_id": ["data.taskId", "taskId", "data.videoTaskId"],
    "download_url": [
        "data.downloadUrl",
        "data.mp4Url",
        "data.url",
        "data.fileUrl",
        "data.videoUrl",
        "data.response.downloadUrl",
    ],
}


def path_accessor(path: str) -> Accessor:
    """Build an accessor that walks a dotted key path through nested mappings."""

    keys = [key for key in path.split(".") if key]

    def _access(payload: Any) -> Any:
        current = payload
        for key in keys:
            if not isinstance(current, Mapping):
                return None
            current = current.get(key)
        return current

    return _access


def first_present(payload: Any, accessors: Iterable[Accessor], default: Any = None) -> Any:
    """Return the first truthy value produced by ``accessors``, else ``default``."""

    for accessor in accessors:
        value = accessor(payload)
        if value:
            return value
    return default


@dataclass
class CallbackSummary:
    status: Any
    task_id: Any
    download_url: Any


class FieldProber:
    """Ordered candidate lookups for status, task id and download URL."""

    def __init__(self, field_paths: Optional[Mapping[str, Sequence[str]]] = None) -> None:
        paths = dict(DEFAULT_FIELD_PATHS)
        for name, candidates in (field_paths or {}).items():
            if name in paths and candidates:
                paths[name] = [str(c) for c in candidates]
        self._accessors: Dict[str, List[Accessor]] = {
            name: [path_accessor(p) for p in candidates] for name, candidates in paths.items()
        }

    def probe(self, name: str, payload: Any, default: Any = None) -> Any:
        return first_present(payload, self._accessors[name], default)

    def summarize(
        self,
        payload: Any,
        *,
        status_default: Any = "unknown",
        task_id_default: Any = None,
        download_url_default: Any = None,
    ) -> CallbackSummary:
        return CallbackSummary(
            status=self.probe("status", payload, status_default),
            task_id=self.probe("task_id", payload, task_id_default),
            download_url=self.probe("download_url", payload, download_url_default),
        )


__all__ = [
    "CallbackSummary",
    "DEFAULT_FIELD_PATHS",
    "FieldProber",
    "first_present",
    "path_accessor",
]
