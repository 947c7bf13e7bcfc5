"""Lexer and grammar for single lines of GDB/MI output.

A line is split into tokens first, then a small parser walks the tokens.
Tuples and lists are parsed with an explicit stack of open containers so
nesting depth never touches the Python call stack.
"""

from typing import List, NamedTuple, Optional

import mi_config
from mi_errors import MIGrammarError, MIInvariantError
from mi_logging import logger
from mi_records import (
    AsyncClass,
    AsyncKind,
    AsyncRecord,
    CString,
    ErrorRecord,
    MIList,
    MITuple,
    OobKind,
    OobRecord,
    Output,
    OutputKind,
    Position,
    Result,
    ResultClass,
    ResultRecord,
    StreamKind,
    StreamRecord,
)

# token kinds
CSTRING = "cstring"
UNTERMINATED = "unterminated"
INTEGER = "integer"
WORD = "word"
INVALID = "invalid"

_PUNCTUATION = frozenset("{}[],=^*+~@&()")

_WORD_CHARS = frozenset("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_-")
_DIGITS = frozenset("0123456789")
_OCTAL = frozenset("01234567")

_ASYNC_KINDS = {"*": AsyncKind.EXEC, "+": AsyncKind.STATUS, "=": AsyncKind.NOTIFY}
_STREAM_KINDS = {"~": StreamKind.CONSOLE, "@": StreamKind.TARGET, "&": StreamKind.LOG}
_VARIABLE_KINDS = (WORD, INTEGER)

_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "\\": "\\",
    '"': '"',
    "'": "'",
    "a": "\a",
    "b": "\b",
    "f": "\f",
    "r": "\r",
    "v": "\v",
}


class Token(NamedTuple):
    kind: str
    text: str
    start: int  # 1-based column of the first character
    end: int  # 1-based column of the last character


def tokenize(line: str) -> List[Token]:
    """Split one MI line into tokens. Never raises; bad input becomes INVALID
    or UNTERMINATED tokens for the parser to report."""
    tokens = []
    i, n = 0, len(line)
    while i < n:
        ch = line[i]
        if ch in " \t":
            i += 1
            continue

        if ch == '"':
            j = i + 1
            esc = False
            while j < n:
                c = line[j]
                if esc:
                    esc = False
                elif c == "\\":
                    esc = True
                elif c == '"':
                    break
                j += 1
            if j >= n:
                tokens.append(Token(UNTERMINATED, line[i:], i + 1, n))
                break
            tokens.append(Token(CSTRING, line[i : j + 1], i + 1, j + 1))
            i = j + 1
            continue

        if ch in _PUNCTUATION:
            tokens.append(Token(ch, ch, i + 1, i + 1))
            i += 1
            continue

        if ch in _WORD_CHARS:
            j = i
            while j < n and line[j] in _WORD_CHARS:
                j += 1
            text = line[i:j]
            kind = INTEGER if all(c in _DIGITS for c in text) else WORD
            tokens.append(Token(kind, text, i + 1, j))
            i = j
            continue

        tokens.append(Token(INVALID, ch, i + 1, i + 1))
        i += 1
    return tokens


def unescape_cstring(body: str) -> str:
    """Decode the C escapes GDB uses inside a quoted string (quotes removed).

    Octal escapes are raw bytes and are reassembled as UTF-8. An unknown
    escape yields the escaped character itself.
    """
    if "\\" not in body:
        return body

    out = bytearray()
    i, n = 0, len(body)
    while i < n:
        ch = body[i]
        if ch != "\\" or i + 1 >= n:
            out += ch.encode("utf-8", errors="surrogatepass")
            i += 1
            continue

        nxt = body[i + 1]
        if nxt in _OCTAL:
            j = i + 1
            while j < n and j < i + 4 and body[j] in _OCTAL:
                j += 1
            out.append(int(body[i + 1 : j], 8) & 0xFF)
            i = j
            continue

        out += _ESCAPES.get(nxt, nxt).encode("utf-8", errors="surrogatepass")
        i += 2
    return out.decode("utf-8", errors="replace")


class _Frame:
    """An open tuple or list waiting for its closing bracket."""

    __slots__ = ("key", "is_tuple", "keyed", "results")

    def __init__(self, key: Optional[str], is_tuple: bool):
        self.key = key
        self.is_tuple = is_tuple
        # lists commit to bare values or key=value entries on their first entry
        self.keyed: Optional[bool] = True if is_tuple else None
        self.results: List[Result] = []

    @property
    def closing(self) -> str:
        return "}" if self.is_tuple else "]"

    def close(self) -> Result:
        value = MITuple(self.results) if self.is_tuple else MIList(self.results)
        return Result(self.key, value)


class _LineParser:
    def __init__(self, line: str, max_depth: int):
        self.line = line
        self.tokens = tokenize(line)
        self.pos = 0
        self.max_depth = max_depth

    def _peek(self, offset: int = 0) -> Optional[Token]:
        idx = self.pos + offset
        return self.tokens[idx] if idx < len(self.tokens) else None

    def _fail(self, message: str, tok: Optional[Token] = None):
        if tok is None:
            tok = self._peek()
        if tok is None:
            col = len(self.line) + 1
            raise MIGrammarError(message, None, col, col)
        if tok.kind == UNTERMINATED:
            message = "unterminated string"
        raise MIGrammarError(message, tok.text, tok.start, tok.end)

    def _take(self, message: str) -> Token:
        tok = self._peek()
        if tok is None:
            self._fail(message)
        self.pos += 1
        return tok

    def _expect(self, kind: str, message: str) -> Token:
        tok = self._take(message)
        if tok.kind != kind:
            self._fail(message, tok)
        return tok

    def _expect_end(self):
        tok = self._peek()
        if tok is not None:
            self._fail("unexpected trailing input", tok)

    def _at_variable(self) -> bool:
        tok, nxt = self._peek(), self._peek(1)
        return tok is not None and tok.kind in _VARIABLE_KINDS and nxt is not None and nxt.kind == "="

    def _variable(self) -> str:
        tok = self._take("expected a variable")
        if tok.kind not in _VARIABLE_KINDS:
            self._fail("expected a variable", tok)
        self._expect("=", "expected '='")
        return tok.text

    def _entry_key(self, frame: _Frame) -> Optional[str]:
        if frame.is_tuple:
            return self._variable()
        keyed = self._at_variable()
        if frame.keyed is None:
            frame.keyed = keyed
        elif frame.keyed != keyed:
            self._fail("list mixes values and results")
        return self._variable() if keyed else None

    def result(self) -> Result:
        """Parse `variable "=" value`, descending into tuples and lists."""
        key: Optional[str] = self._variable()
        stack: List[_Frame] = []
        while True:
            tok = self._take("expected a value")
            if tok.kind == CSTRING:
                item = Result(key, CString(unescape_cstring(tok.text[1:-1])))
            elif tok.kind in ("{", "["):
                if len(stack) >= self.max_depth:
                    self._fail("nesting deeper than %d levels" % self.max_depth, tok)
                frame = _Frame(key, tok.kind == "{")
                nxt = self._peek()
                if nxt is not None and nxt.kind == frame.closing:
                    self.pos += 1
                    item = frame.close()
                else:
                    stack.append(frame)
                    key = self._entry_key(frame)
                    continue
            else:
                self._fail("expected a value", tok)

            # fold the finished value into the containers it closes
            while stack:
                frame = stack[-1]
                frame.results.append(item)
                tok = self._take("expected ',' or '%s'" % frame.closing)
                if tok.kind == ",":
                    key = self._entry_key(frame)
                    break
                if tok.kind != frame.closing:
                    self._fail("expected ',' or '%s'" % frame.closing, tok)
                stack.pop()
                item = frame.close()
            else:
                return item

    def trailing_results(self) -> List[Result]:
        results = []
        while self._peek() is not None:
            self._expect(",", "expected ','")
            results.append(self.result())
        return results

    def output(self) -> Output:
        tok = self._peek()
        if tok is None:
            self._fail("empty line")

        token = None
        if tok.kind == INTEGER:
            token = tok.text
            self.pos += 1
            tok = self._peek()
            if tok is None:
                self._fail("expected a record prefix")

        prefix = tok.kind
        if prefix in _ASYNC_KINDS or prefix == "^":
            self.pos += 1
            name = self._take("expected a class name")
            if name.kind not in _VARIABLE_KINDS:
                self._fail("expected a class name", name)
            results = self.trailing_results()
            return build_output(self.line, prefix, token=token, class_name=name.text, results=results)

        if prefix in _STREAM_KINDS:
            if token is not None:
                self._fail("stream records take no token", tok)
            self.pos += 1
            text = self._expect(CSTRING, "expected a string")
            self._expect_end()
            return build_output(self.line, prefix, text=unescape_cstring(text.text[1:-1]))

        if prefix == "(":
            if token is not None:
                self._fail("prompts take no token", tok)
            self.pos += 1
            word = self._expect(WORD, "expected 'gdb'")
            if word.text != "gdb":
                self._fail("expected 'gdb'", word)
            self._expect(")", "expected ')'")
            self._expect_end()
            return build_output(self.line, prefix)

        self._fail("expected a record prefix", tok)


def build_output(
    line: str,
    prefix: str,
    token: Optional[str] = None,
    class_name: str = "",
    results: Optional[List[Result]] = None,
    text: str = "",
) -> Output:
    """Assemble the typed Output for a line whose grammar is already checked."""
    if results is None:
        results = []
    if prefix == "^":
        record = ResultRecord(ResultClass.from_name(class_name), class_name, results, token)
        return Output(OutputKind.RESULT, line, record)
    if prefix in _ASYNC_KINDS:
        record = AsyncRecord(_ASYNC_KINDS[prefix], AsyncClass.from_name(class_name), class_name, results, token)
        return Output(OutputKind.OOB, line, OobRecord(OobKind.ASYNC, record))
    if prefix in _STREAM_KINDS:
        return Output(OutputKind.OOB, line, OobRecord(OobKind.STREAM, StreamRecord(_STREAM_KINDS[prefix], text)))
    if prefix == "(":
        return Output(OutputKind.PROMPT, line)
    raise MIInvariantError("no record kind for prefix %r" % prefix)


def parse_results(text: str, max_depth: int = mi_config.MAX_DEPTH) -> List[Result]:
    """Parse `result ("," result)*`, e.g. the payload after a class name.

    Raises MIGrammarError on malformed input.
    """
    parser = _LineParser(text, max_depth)
    if parser._peek() is None:
        return []
    results = [parser.result()]
    results.extend(parser.trailing_results())
    return results


def parse_mi_line(line: str, max_depth: int = mi_config.MAX_DEPTH) -> Output:
    """Parse one complete line (terminator already removed) into an Output.

    Grammar errors come back as a PARSE_ERROR output rather than raising.
    """
    try:
        return _LineParser(line, max_depth).output()
    except MIGrammarError as e:
        logger.debug("Unparseable MI line", line=line, reason=str(e), start_column=e.start_column, token=e.token)
        return Output(
            OutputKind.PARSE_ERROR,
            line,
            ErrorRecord(e.token, Position(e.start_column, e.end_column)),
        )
