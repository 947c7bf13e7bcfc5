"""Exception types for the MI parser and its HTTP front-end."""


class GdbMiError(Exception):
    """Base exception for this package."""


class MIGrammarError(GdbMiError):
    """A line does not follow the MI output grammar.

    `token` is the offending lexeme (None at end of line) and the columns
    are 1-based and inclusive.
    """

    def __init__(self, message: str, token: str | None, start_column: int, end_column: int):
        super().__init__(message)
        self.token = token
        self.start_column = start_column
        self.end_column = end_column


class MIInvariantError(GdbMiError):
    """The parser reached a state it should never reach."""


class SessionNotFoundError(GdbMiError):
    """No live parser session has the requested id."""


class SessionLimitError(GdbMiError):
    """Too many parser sessions are open."""
