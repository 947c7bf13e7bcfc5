import codecs
from typing import Callable, List, Optional, Union

import mi_config
from mi_errors import MIInvariantError
from mi_logging import logger
from mi_parse import parse_mi_line
from mi_records import OutcomeCode, Output

OutputCallback = Callable[[List[Output]], None]


class LineReassembler:
    """Turns arbitrarily split chunks into complete lines.

    The unterminated tail of the last chunk is carried into the next call.
    Everything goes through one incremental decoder, so a multi-byte
    character split between two chunks decodes the same as if it had arrived
    whole. Text is encoded first; characters the encoding cannot carry, such
    as lone surrogates, become "?".
    """

    def __init__(self, encoding: str = mi_config.ENCODING):
        self._encoding = encoding
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._partial = ""

    @property
    def pending(self) -> str:
        return self._partial

    def feed(self, data: Union[bytes, str]) -> List[str]:
        if isinstance(data, str):
            data = data.encode(self._encoding, errors="replace")
        text = self._decoder.decode(bytes(data))
        if not text:
            return []

        buf = self._partial + text
        lines = buf.split("\n")
        self._partial = lines.pop()
        return [line[:-1] if line.endswith("\r") else line for line in lines]

    def reset(self) -> str:
        """Drop the carried fragment and return it."""
        dropped = self._partial + self._decoder.decode(b"", final=True)
        self._decoder.reset()
        self._partial = ""
        return dropped


class GdbMiParser:
    """Incremental parser for the output stream of `gdb --interpreter=mi`.

    Every push that completes at least one line calls `callback` once, before
    returning, with the outputs for those lines in input order. The callback
    must not push to or destroy the parser that is calling it; doing so
    returns OutcomeCode.LOGIC. The parser does no locking of its own.

    Usable as a context manager; leaving the block destroys the parser.
    """

    def __init__(self, callback: OutputCallback, max_depth: int = mi_config.MAX_DEPTH, encoding: str = mi_config.ENCODING):
        if not callable(callback):
            raise TypeError("callback must be callable")
        self._callback: Optional[OutputCallback] = callback
        self._lines = LineReassembler(encoding)
        self.max_depth = max_depth
        self._in_callback = False
        self._failed = False

    @property
    def destroyed(self) -> bool:
        return self._callback is None

    @property
    def buffering(self) -> bool:
        return bool(self._lines.pending)

    def push(self, data: Union[bytes, str]) -> OutcomeCode:
        if self._callback is None:
            logger.warning("Push after destroy")
            return OutcomeCode.LOGIC
        if self._in_callback:
            logger.warning("Push from inside the output callback")
            return OutcomeCode.LOGIC
        if self._failed:
            return OutcomeCode.ASSERT
        if not isinstance(data, (bytes, bytearray, memoryview, str)):
            logger.warning("Push with unsupported data type", type=type(data).__name__)
            return OutcomeCode.LOGIC

        try:
            batch = [parse_mi_line(line, self.max_depth) for line in self._lines.feed(data)]
        except Exception:
            # grammar errors never escape parse_mi_line, so anything here is a parser bug
            logger.exception("Parser invariant failed")
            self._failed = True
            return OutcomeCode.ASSERT

        if batch:
            self._in_callback = True
            try:
                self._callback(batch)
            finally:
                self._in_callback = False
        return OutcomeCode.OK

    def destroy(self) -> OutcomeCode:
        if self._callback is None or self._in_callback:
            return OutcomeCode.LOGIC
        dropped = self._lines.reset()
        if dropped:
            logger.debug("Discarding unterminated line", length=len(dropped))
        self._callback = None
        return OutcomeCode.OK

    def __enter__(self) -> "GdbMiParser":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._callback is not None and not self._in_callback:
            self.destroy()


def create(callback: OutputCallback, max_depth: int = mi_config.MAX_DEPTH) -> GdbMiParser:
    return GdbMiParser(callback, max_depth=max_depth)


def push(parser: GdbMiParser, data: Union[bytes, str]) -> OutcomeCode:
    return parser.push(data)


def destroy(parser: GdbMiParser) -> OutcomeCode:
    return parser.destroy()


def parse_output(text: Union[bytes, str], max_depth: int = mi_config.MAX_DEPTH) -> List[Output]:
    """Parse every complete line of `text` in one go.

    A trailing fragment without a newline is not a record and is dropped.
    """
    outputs: List[Output] = []
    with GdbMiParser(outputs.extend, max_depth=max_depth) as parser:
        code = parser.push(text)
    if code is not OutcomeCode.OK:
        raise MIInvariantError("parser returned %s" % code.value)
    return outputs
