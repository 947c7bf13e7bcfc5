import threading
import uuid
from typing import Dict, List

from flask import Flask, jsonify, request

import mi_config
from gdbmi import GdbMiParser, parse_output
from mi_errors import SessionLimitError, SessionNotFoundError
from mi_logging import logger
from mi_records import OutcomeCode, Output

app = Flask(__name__)


class ParseSession:
    """One streaming parser plus the batches it delivered for the current request."""

    def __init__(self, session_id: str):
        self.id = session_id
        self.lock = threading.Lock()
        self.batches: List[List[Output]] = []
        self.parser = GdbMiParser(self.batches.append)

    def push(self, data: str):
        # requests may arrive on several threads; the parser itself is not thread-safe
        with self.lock:
            self.batches.clear()
            code = self.parser.push(data)
            batches = [[out.to_dict() for out in batch] for batch in self.batches]
            self.batches.clear()
        return code, batches

    def stop(self):
        with self.lock:
            self.parser.destroy()


SESSIONS: Dict[str, ParseSession] = {}
SESSIONS_LOCK = threading.Lock()


def open_session() -> ParseSession:
    with SESSIONS_LOCK:
        if len(SESSIONS) >= mi_config.MAX_SESSIONS:
            raise SessionLimitError(f"At most {mi_config.MAX_SESSIONS} sessions may be open")
        session = ParseSession(uuid.uuid4().hex)
        SESSIONS[session.id] = session
    logger.info("Parser session opened", session_id=session.id)
    return session


def get_session(session_id: str) -> ParseSession:
    with SESSIONS_LOCK:
        session = SESSIONS.get(session_id)
    if session is None:
        raise SessionNotFoundError(f"No session {session_id}")
    return session


def close_session(session_id: str):
    with SESSIONS_LOCK:
        session = SESSIONS.pop(session_id, None)
    if session is None:
        raise SessionNotFoundError(f"No session {session_id}")
    session.stop()
    logger.info("Parser session closed", session_id=session_id)


def _request_data():
    """Return the "data" field of the JSON body, or None if missing or not a string."""
    data = request.get_json(force=True, silent=True) or {}
    text = data.get("data")
    return text if isinstance(text, str) else None


@app.errorhandler(SessionNotFoundError)
def _session_not_found(e):
    return jsonify({"ok": False, "error": str(e)}), 404


@app.errorhandler(SessionLimitError)
def _session_limit(e):
    return jsonify({"ok": False, "error": str(e)}), 429


@app.post("/api/parse")
def api_parse():
    text = _request_data()
    if text is None:
        return jsonify({"ok": False, "error": "Missing data"}), 400

    outputs = parse_output(text)
    return jsonify({"ok": True, "outputs": [out.to_dict() for out in outputs]})


@app.get("/api/sessions")
def api_sessions():
    with SESSIONS_LOCK:
        ids = sorted(SESSIONS)
    return jsonify({"ok": True, "sessions": ids})


@app.post("/api/sessions")
def api_session_start():
    session = open_session()
    return jsonify({"ok": True, "id": session.id})


@app.post("/api/sessions/<session_id>/push")
def api_session_push(session_id):
    session = get_session(session_id)
    text = _request_data()
    if text is None:
        return jsonify({"ok": False, "error": "Missing data"}), 400

    code, batches = session.push(text)
    return jsonify({"ok": code is OutcomeCode.OK, "outcome": code.value, "batches": batches})


@app.post("/api/sessions/<session_id>/stop")
def api_session_stop(session_id):
    close_session(session_id)
    return jsonify({"ok": True})


if __name__ == "__main__":
    app.run(host=mi_config.HOST, port=mi_config.PORT, debug=True)
