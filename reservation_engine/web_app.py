from __future__ import annotations

from datetime import datetime
import logging
from pathlib import Path
from typing import Any, Callable

from flask import Flask, jsonify, request

from .config import EngineConfig
from .engine import ReservationEngine, create_engine
from .errors import (
    ConflictError,
    OwnerNotFoundError,
    ReservationError,
    ReservationStorageError,
    RoomNotAllowedForRoleError,
)

logger = logging.getLogger(__name__)


def _status_for(error: ReservationError) -> int:
    if isinstance(error, ConflictError):
        return 409
    if isinstance(error, OwnerNotFoundError):
        return 404
    if isinstance(error, RoomNotAllowedForRoleError):
        return 403
    if isinstance(error, ReservationStorageError):
        return 500
    return 400


def create_app(
    data_dir: str | Path = "data",
    config: EngineConfig | None = None,
    now_provider: Callable[[], datetime] | None = None,
    engine: ReservationEngine | None = None,
) -> Flask:
    app = Flask(__name__)
    engine = engine or create_engine(config=config, data_dir=data_dir, clock=now_provider)
    app.config["RESERVATION_ENGINE"] = engine

    @app.after_request
    def add_cors_headers(response: Any) -> Any:
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        return response

    @app.get("/")
    def index() -> Any:
        return jsonify({"ok": True, "service": "reservation-engine"})

    @app.post("/api/auth/login")
    def login() -> Any:
        payload = request.get_json(silent=True) or {}
        try:
            user = engine.users.login(payload.get("email"), payload.get("role"))
        except ValueError as error:
            return jsonify({"ok": False, "error": "INVALID_LOGIN", "message": str(error)}), 400
        return jsonify(user.to_dict())

    @app.get("/api/reservations")
    def list_reservations() -> Any:
        role = request.args.get("role") or None
        try:
            booked = engine.list_reservations(role=role)
        except ReservationStorageError as error:
            logger.error("Listing reservations failed: %s", error)
            return jsonify(error.to_dict()), 500
        return jsonify([item.to_dict() for item in booked])

    @app.post("/api/reservations")
    def submit_reservation() -> Any:
        payload = request.get_json(silent=True) or {}
        try:
            booked = engine.submit_reservation(payload)
        except ReservationError as error:
            status = _status_for(error)
            if status >= 500:
                logger.error("Reservation failed: %s", error)
            return jsonify(error.to_dict()), status
        return jsonify(booked.to_dict()), 201

    @app.get("/api/room-policies")
    def get_room_policies() -> Any:
        return jsonify([policy.to_dict() for policy in engine.policies.list_policies()])

    @app.put("/api/room-policies")
    def update_room_policies() -> Any:
        payload = request.get_json(silent=True) or {}
        policies = payload.get("policies")
        if not policies:
            return jsonify({"ok": False, "error": "MISSING_FIELD", "message": "policies payload is required."}), 400
        updated = engine.policies.replace_policies(policies)
        return jsonify([policy.to_dict() for policy in updated])

    return app


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    app = create_app()
    app.run(host="127.0.0.1", port=5001, debug=False)
