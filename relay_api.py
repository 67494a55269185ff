"""
Asuna Relay — Flask Control API

Remote-control surface for the companion mobile app:

    GET  /health           liveness
    GET  /status           transport state + active users
    GET  /logs?limit=N     last N log lines (max 100)
    GET  /info             bot name, context size, models
    POST /chat             {"message": "...", "userId": "..."} → {"reply": "..."}
    POST /history/sync     {"historyData": [...]} → diary entry written by the model
    GET  /history/insights stored diary entries, newest first
    POST /command/send     {"to": "...", "message": "..."} → pushed through the transport

Every route is also served under /api/... . Errors are always JSON, never
HTML pages. The app is built by create_app() from the objects it needs;
there is no module-level client or store.
"""

import base64
import sys
from datetime import datetime, timezone
from typing import Callable, Optional

from flask import Blueprint, Flask, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from kernel.diary import PLACEHOLDER_REFLECTION, DiaryEntry, DiaryStore, compose_diary_entry
from kernel.logger import MAX_LOGS, RelayLogger
from kernel.relay import RelayBot
from system.config import RelayConfig, load_config_or_exit

SERVICE_NAME = "asuna-relay"

DEFAULT_LOG_LIMIT = 50

DEFAULT_API_USER = "api-user"


# ─────────────────────────────────────────────────────────────────────────────
# ROUTES
# ─────────────────────────────────────────────────────────────────────────────

bp = Blueprint("relay", __name__)


def _deps():
    return current_app.extensions["asuna_relay"]


@bp.get("/health")
def health():
    return jsonify({
        "ok": True,
        "service": SERVICE_NAME,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    })


@bp.get("/status")
def status():
    deps = _deps()
    transport = deps["transport_status"]()
    relay_status = deps["relay"].status()
    return jsonify({
        "status": "online" if transport == "connected" else transport,
        "transport": transport,
        "activeUsers": relay_status["activeUsers"],
        "models": relay_status["models"],
        "voiceAvailable": relay_status["voiceAvailable"],
    })


@bp.get("/logs")
def logs():
    limit = request.args.get("limit", default=DEFAULT_LOG_LIMIT, type=int)
    limit = max(1, min(limit, MAX_LOGS))
    records = _deps()["logger"].recent(limit)
    return jsonify({"logs": [r.format() for r in records]})


@bp.get("/info")
def info():
    return jsonify(_deps()["config"].to_public_dict())


@bp.post("/chat")
def chat():
    deps = _deps()
    logger: RelayLogger = deps["logger"]

    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Request body must be a JSON object"}), 400

    message = data.get("message")
    if not isinstance(message, str) or not message.strip():
        return jsonify({"error": 'Missing "message" field'}), 400

    user_id = str(data.get("userId") or DEFAULT_API_USER)

    try:
        reply = deps["relay"].handle_message(user_id, message)
    except Exception as e:
        logger.error("API", f"/chat failed for {user_id}: {type(e).__name__}: {e}")
        return jsonify({"error": "Failed to generate reply"}), 500

    if reply is None or reply.handled_by == "error":
        return jsonify({"error": reply.text if reply else "Failed to generate reply"}), 500

    body = reply.to_dict()
    if reply.audio is not None:
        body["audio"] = base64.b64encode(reply.audio).decode("ascii")
        body["audioMime"] = reply.audio_mime
    return jsonify(body)


@bp.post("/history/sync")
def history_sync():
    deps = _deps()
    logger: RelayLogger = deps["logger"]

    data = request.get_json(silent=True)
    history_data = data.get("historyData") if isinstance(data, dict) else None
    if not isinstance(history_data, list):
        return jsonify({"error": "Invalid history data"}), 400

    logger.info("API", f"Received {len(history_data)} history items")

    try:
        content = compose_diary_entry(deps["relay"].executor, history_data)
        deps["diary"].add(content)
    except Exception as e:
        logger.error("API", f"History analysis failed: {type(e).__name__}: {e}")
        return jsonify({"error": "Analysis failed"}), 500

    return jsonify({"success": True, "message": "History processed", "diaryEntry": content})


@bp.get("/history/insights")
def history_insights():
    entries = [e.to_dict() for e in _deps()["diary"].entries()]
    if not entries:
        entries = [DiaryEntry(date=datetime.now(timezone.utc).isoformat(), content=PLACEHOLDER_REFLECTION).to_dict()]
    return jsonify({"diary": entries})


@bp.post("/command/send")
def command_send():
    deps = _deps()
    logger: RelayLogger = deps["logger"]

    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}
    to, message = data.get("to"), data.get("message")
    if not isinstance(to, str) or not to.strip() or not isinstance(message, str) or not message.strip():
        return jsonify({"error": 'Missing "to" or "message" fields'}), 400

    send_message = deps["send_message"]
    if send_message is None:
        return jsonify({"error": "No messaging transport attached"}), 503

    try:
        send_message(to.strip(), message)
    except Exception as e:
        logger.error("API", f"Send to {to} failed: {type(e).__name__}: {e}")
        return jsonify({"error": "Failed to send message", "details": str(e)}), 500

    logger.info("API", f"Sent message to {to}")
    return jsonify({"success": True, "message": "Message sent"})


# ─────────────────────────────────────────────────────────────────────────────
# APP FACTORY
# ─────────────────────────────────────────────────────────────────────────────

def create_app(
    relay: RelayBot,
    logger: RelayLogger,
    config: RelayConfig,
    transport_status: Optional[Callable[[], str]] = None,
    send_message: Optional[Callable[[str, str], None]] = None,
    diary: Optional[DiaryStore] = None,
) -> Flask:
    app = Flask(__name__)
    app.extensions["asuna_relay"] = {
        "relay": relay,
        "logger": logger,
        "config": config,
        "transport_status": transport_status or (lambda: "disconnected"),
        "send_message": send_message,
        "diary": diary if diary is not None else DiaryStore(),
    }

    app.register_blueprint(bp)
    app.register_blueprint(bp, url_prefix="/api", name="relay_api")

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({"error": e.description, "code": e.code}), e.code

    @app.errorhandler(Exception)
    def handle_exception(e):
        logger.error("API", f"Unhandled exception: {type(e).__name__}: {e}")
        return jsonify({"error": "Internal server error"}), 500

    return app


def main() -> None:
    config = load_config_or_exit()
    logger = RelayLogger(log_file=config.log_file)

    try:
        relay = RelayBot.from_config(config, logger)
    except Exception as e:
        print(f"[API] Startup failed: {e}", file=sys.stderr, flush=True)
        raise SystemExit(1)

    app = create_app(relay, logger, config, transport_status=lambda: "api-only")
    logger.info("API", f"API server running on http://{config.api_host}:{config.api_port}")
    try:
        app.run(host=config.api_host, port=config.api_port, debug=config.debug, use_reloader=False)
    finally:
        relay.close()


if __name__ == "__main__":
    main()
