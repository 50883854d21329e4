"""
Mock PVZ service for integration tests.

A small Flask application that speaks the three endpoints the scenario
uses.  Tokens are real HS256 JWTs so the bearer header is verified on
every protected call, and every request is journaled so tests can
assert which calls were (and were not) made.

Responses are driven by a :class:`Behaviour` stored on the app; a test
swaps it out to simulate a failing login, a missing id, or a listing
that returns an object instead of an array.
"""

from __future__ import annotations

import itertools
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any

import jwt
from flask import Flask, current_app, jsonify, request

SECRET = "mock-pvz-secret"


@dataclass
class Behaviour:
    """Overrides for the mock's responses; ``None`` means "behave normally"."""

    login_status: int = 200
    login_body: Any = None
    create_status: int = 201
    create_body: Any = None
    list_status: int = 200
    list_body: Any = None
    optimized_status: int = 200


@dataclass
class Journal:
    """Thread-safe record of issued tokens and received requests."""

    lock: threading.Lock = field(default_factory=threading.Lock)
    issued_tokens: list[str] = field(default_factory=list)
    calls: list[tuple[str, str, str | None]] = field(default_factory=list)

    def record(self, method: str, path: str, token: str | None) -> None:
        with self.lock:
            self.calls.append((method, path, token))

    def paths(self) -> list[str]:
        with self.lock:
            return [f"{method} {path}" for method, path, _ in self.calls]

    def tokens_for(self, method: str, path: str) -> list[str | None]:
        with self.lock:
            return [token for m, p, token in self.calls if m == method and p == path]


def _bearer_token() -> str | None:
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        return None
    return header[len("Bearer "):]


def _authorised(token: str | None) -> bool:
    if token is None:
        return False
    try:
        jwt.decode(token, SECRET, algorithms=["HS256"])
    except jwt.InvalidTokenError:
        return False
    return True


def create_app(behaviour: Behaviour | None = None) -> Flask:
    """Build a fresh mock service; state lives on ``app.config``."""
    app = Flask(__name__)
    app.config["BEHAVIOUR"] = behaviour or Behaviour()
    app.config["JOURNAL"] = Journal()
    counter = itertools.count(1)

    @app.post("/dummyLogin")
    def dummy_login():
        behaviour: Behaviour = current_app.config["BEHAVIOUR"]
        journal: Journal = current_app.config["JOURNAL"]
        journal.record("POST", "/dummyLogin", None)

        payload = request.get_json(silent=True) or {}
        if payload.get("role") not in {"client", "employee", "moderator"}:
            return jsonify({"message": "invalid role"}), 400
        if behaviour.login_body is not None or behaviour.login_status != 200:
            return jsonify(behaviour.login_body or {"message": "unauthorized"}), behaviour.login_status

        token = jwt.encode(
            {"role": payload["role"], "jti": uuid.uuid4().hex}, SECRET, algorithm="HS256"
        )
        with journal.lock:
            journal.issued_tokens.append(token)
        return jsonify({"token": token}), 200

    @app.post("/pvz")
    def create_pvz():
        behaviour: Behaviour = current_app.config["BEHAVIOUR"]
        token = _bearer_token()
        current_app.config["JOURNAL"].record("POST", "/pvz", token)

        if not _authorised(token):
            return jsonify({"message": "unauthorized"}), 401
        payload = request.get_json(silent=True) or {}
        if not payload.get("city"):
            return jsonify({"message": "invalid request body"}), 400
        if behaviour.create_body is not None or behaviour.create_status != 201:
            return jsonify(behaviour.create_body or {}), behaviour.create_status
        return jsonify({"id": f"pvz-{next(counter)}"}), 201

    def _list(status: int):
        behaviour: Behaviour = current_app.config["BEHAVIOUR"]
        token = _bearer_token()
        current_app.config["JOURNAL"].record("GET", request.path, token)

        if not _authorised(token):
            return jsonify({"message": "unauthorized"}), 401
        if "page" not in request.args or "limit" not in request.args:
            return jsonify({"message": "missing page or limit parameter"}), 400
        body = behaviour.list_body if behaviour.list_body is not None else []
        return jsonify(body), status

    @app.get("/pvz")
    def list_pvz():
        return _list(current_app.config["BEHAVIOUR"].list_status)

    @app.get("/pvz/optimized")
    def list_pvz_optimized():
        return _list(current_app.config["BEHAVIOUR"].optimized_status)

    return app
