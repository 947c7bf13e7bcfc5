"""Typed records produced by the MI parser.

One `Output` is built per complete line of debugger output. Structured
values nest through `MITuple` and `MIList`, whose entries are `Result`s
(keyed inside tuples, keyed or bare inside lists).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class OutcomeCode(Enum):
    OK = "ok"
    ASSERT = "assert"
    LOGIC = "logic"


class OutputKind(Enum):
    OOB = "oob"
    RESULT = "result"
    PROMPT = "prompt"
    PARSE_ERROR = "parse_error"


class OobKind(Enum):
    ASYNC = "async"
    STREAM = "stream"


class AsyncKind(Enum):
    EXEC = "exec"
    STATUS = "status"
    NOTIFY = "notify"


class StreamKind(Enum):
    CONSOLE = "console"
    TARGET = "target"
    LOG = "log"


class AsyncClass(Enum):
    DOWNLOAD = "download"
    STOPPED = "stopped"
    RUNNING = "running"
    THREAD_GROUP_ADDED = "thread-group-added"
    THREAD_GROUP_REMOVED = "thread-group-removed"
    THREAD_GROUP_STARTED = "thread-group-started"
    THREAD_GROUP_EXITED = "thread-group-exited"
    THREAD_CREATED = "thread-created"
    THREAD_EXITED = "thread-exited"
    THREAD_SELECTED = "thread-selected"
    LIBRARY_LOADED = "library-loaded"
    LIBRARY_UNLOADED = "library-unloaded"
    TRACEFRAME_CHANGED = "traceframe-changed"
    TSV_CREATED = "tsv-created"
    TSV_DELETED = "tsv-deleted"
    TSV_MODIFIED = "tsv-modified"
    BREAKPOINT_CREATED = "breakpoint-created"
    BREAKPOINT_MODIFIED = "breakpoint-modified"
    BREAKPOINT_DELETED = "breakpoint-deleted"
    RECORD_STARTED = "record-started"
    RECORD_STOPPED = "record-stopped"
    CMD_PARAM_CHANGED = "cmd-param-changed"
    MEMORY_CHANGED = "memory-changed"
    UNSUPPORTED = "unsupported"

    @classmethod
    def from_name(cls, name: str) -> "AsyncClass":
        """Map an MI class name to a member; unknown names are UNSUPPORTED."""
        try:
            return cls(name)
        except ValueError:
            return cls.UNSUPPORTED


class ResultClass(Enum):
    DONE = "done"
    RUNNING = "running"
    CONNECTED = "connected"
    ERROR = "error"
    EXIT = "exit"
    UNSUPPORTED = "unsupported"

    @classmethod
    def from_name(cls, name: str) -> "ResultClass":
        try:
            return cls(name)
        except ValueError:
            return cls.UNSUPPORTED


@dataclass
class CString:
    text: str


@dataclass
class MITuple:
    results: List["Result"] = field(default_factory=list)


@dataclass
class MIList:
    results: List["Result"] = field(default_factory=list)


ResultValue = Union[CString, MITuple, MIList]


@dataclass
class Result:
    key: Optional[str]
    value: Optional[ResultValue]

    def to_dict(self) -> Dict[str, Any]:
        return {"key": self.key, **_value_to_dict(self.value)}


def _value_to_dict(value: Optional[ResultValue]) -> Dict[str, Any]:
    if value is None:
        return {"kind": None, "value": None}
    if isinstance(value, CString):
        return {"kind": "cstring", "value": value.text}

    root = {"kind": "tuple" if isinstance(value, MITuple) else "list", "value": []}
    # explicit stack so deep values never recurse
    stack = [(value.results, root["value"])]
    while stack:
        results, out = stack.pop()
        for r in results:
            v = r.value
            node: Dict[str, Any] = {"key": r.key}
            if v is None:
                node.update(kind=None, value=None)
            elif isinstance(v, CString):
                node.update(kind="cstring", value=v.text)
            else:
                node.update(kind="tuple" if isinstance(v, MITuple) else "list", value=[])
                stack.append((v.results, node["value"]))
            out.append(node)
    return root


def results_to_python(results: List[Result]) -> Dict[str, Any]:
    """Flatten results into plain dicts, lists and strings.

    Tuples become dicts (a repeated key keeps its last value), lists become
    lists, and keyed list entries become one-item dicts.
    """
    return value_to_python(MITuple(results))


def value_to_python(value: Optional[ResultValue]) -> Any:
    if value is None:
        return None
    if isinstance(value, CString):
        return value.text

    root: Any = {} if isinstance(value, MITuple) else []
    stack = [(value, root)]
    while stack:
        container, out = stack.pop()
        for r in container.results:
            v = r.value
            if v is None or isinstance(v, CString):
                item = None if v is None else v.text
            else:
                item = {} if isinstance(v, MITuple) else []
                stack.append((v, item))
            if isinstance(out, dict):
                if r.key is not None:
                    out[r.key] = item
            elif r.key is None:
                out.append(item)
            else:
                out.append({r.key: item})
    return root


@dataclass
class AsyncRecord:
    kind: AsyncKind
    async_class: AsyncClass
    class_name: str
    results: List[Result] = field(default_factory=list)
    token: Optional[str] = None


@dataclass
class StreamRecord:
    kind: StreamKind
    text: str


@dataclass
class OobRecord:
    kind: OobKind
    record: Union[AsyncRecord, StreamRecord]

    @property
    def async_record(self) -> Optional[AsyncRecord]:
        return self.record if self.kind is OobKind.ASYNC else None

    @property
    def stream_record(self) -> Optional[StreamRecord]:
        return self.record if self.kind is OobKind.STREAM else None


@dataclass
class ResultRecord:
    result_class: ResultClass
    class_name: str
    results: List[Result] = field(default_factory=list)
    token: Optional[str] = None


@dataclass
class Position:
    start_column: int
    end_column: int


@dataclass
class ErrorRecord:
    token: Optional[str]
    position: Position


@dataclass
class Output:
    kind: OutputKind
    line: str
    variant: Union[OobRecord, ResultRecord, ErrorRecord, None] = None

    @property
    def oob(self) -> Optional[OobRecord]:
        return self.variant if self.kind is OutputKind.OOB else None

    @property
    def result(self) -> Optional[ResultRecord]:
        return self.variant if self.kind is OutputKind.RESULT else None

    @property
    def error(self) -> Optional[ErrorRecord]:
        return self.variant if self.kind is OutputKind.PARSE_ERROR else None

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready view of this output."""
        out: Dict[str, Any] = {"kind": self.kind.value, "line": self.line}
        variant = self.variant
        if isinstance(variant, OobRecord):
            rec = variant.record
            out["oob"] = variant.kind.value
            if isinstance(rec, StreamRecord):
                out["stream"] = rec.kind.value
                out["text"] = rec.text
            else:
                out["async"] = rec.kind.value
                out["class"] = rec.async_class.value
                out["class_name"] = rec.class_name
                out["token"] = rec.token
                out["results"] = [r.to_dict() for r in rec.results]
        elif isinstance(variant, ResultRecord):
            out["class"] = variant.result_class.value
            out["class_name"] = variant.class_name
            out["token"] = variant.token
            out["results"] = [r.to_dict() for r in variant.results]
        elif isinstance(variant, ErrorRecord):
            out["token"] = variant.token
            out["start_column"] = variant.position.start_column
            out["end_column"] = variant.position.end_column
        return out
