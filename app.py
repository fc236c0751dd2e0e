"""Application entry point for the Slack Task Intake service."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable
from uuid import uuid4

from flask import Flask, jsonify, request
from slack_bolt import App as SlackApp
from slack_bolt.adapter.flask import SlackRequestHandler
from slack_sdk.errors import SlackApiError
import structlog
from structlog.contextvars import bind_contextvars, unbind_contextvars

from slack_task_intake.background import run_async
from slack_task_intake.clients import ClientRegistry, get_client_registry
from slack_task_intake.config import AppSettings, get_settings
from slack_task_intake.logging_config import configure_logging
from slack_task_intake.security import (
    SLACK_SIGNATURE_HEADER,
    SLACK_TIMESTAMP_HEADER,
    is_valid_slack_request,
)
from slack_task_intake.slack_client import SlackClient
from slack_task_intake.tasks import (
    TASK_MODAL_CALLBACK_ID,
    FieldError,
    block_id_for,
    build_task_modal,
    parse_modal_metadata,
    parse_submission,
    validate_submission,
)
from slack_task_intake.tasks.messages import UNCONFIGURED_CHANNEL_NOTICE
from slack_task_intake.tasks.service import process_task_submission

SERVICE_NAME = "slack-task-intake"

# Slack only renders modal errors against input blocks, so form-level problems
# are attached to the first one.
_FORM_ERROR_BLOCK = block_id_for("title")


def _create_bolt_app(settings: AppSettings) -> SlackApp:
    """Initialise the Slack Bolt application using validated settings.

    Signatures are verified by the Flask route before Bolt sees the request.
    """

    return SlackApp(
        token=settings.bot_token,
        signing_secret=settings.signing_secret,
        token_verification_enabled=False,
        request_verification_enabled=False,
    )


def _register_error_handlers(flask_app: Flask) -> None:
    """Register JSON error handlers; unexpected errors carry a trace identifier."""

    @flask_app.errorhandler(404)
    def handle_not_found(error):  # type: ignore[override]
        structlog.get_logger().warning("route_not_found", path=request.path, method=request.method)
        response = jsonify({"error": "not_found"})
        response.status_code = 404
        return response

    @flask_app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):  # type: ignore[override]
        trace_id = str(uuid4())
        flask_app.logger.exception(
            "Unhandled application error", extra={"trace_id": trace_id}, exc_info=error
        )
        response = jsonify({"error": "internal_server_error", "trace_id": trace_id})
        response.status_code = 500
        return response


def _open_modal(client, trigger_id: str, view: dict, client_name: str, logger) -> None:
    log = structlog.get_logger().bind(client=client_name)
    try:
        SlackClient(client=client).open_modal(trigger_id=trigger_id, view=view)
        log.info("task_modal_opened")
    except SlackApiError as exc:
        error_code = exc.response.get("error") if getattr(exc, "response", None) else str(exc)
        log.error("task_modal_open_failed", error=error_code)
        logger.error(
            "Failed to open task modal",
            extra={"client": client_name, "error": error_code},
        )
    except Exception as exc:
        log.exception("task_modal_open_failed", error=str(exc))
        logger.error(
            "Failed to open task modal",
            extra={"client": client_name, "error": str(exc)},
        )


def _handle_task_command(ack, command, client, logger, *, registry: ClientRegistry):
    trace_id = str(uuid4())
    bind_contextvars(trace_id=trace_id)
    conversation_id = command.get("channel_id")
    log = structlog.get_logger().bind(
        trace_id=trace_id,
        conversation_id=conversation_id,
        user_id=command.get("user_id"),
    )

    try:
        log.info("slash_command_received", command=command.get("command"))

        tenant = registry.find(conversation_id)
        if tenant is None:
            log.warning("slash_command_unconfigured_channel")
            ack({"response_type": "ephemeral", "text": UNCONFIGURED_CHANNEL_NOTICE})
            return

        view = build_task_modal(tenant)
        ack()

        run_async(
            _open_modal,
            client,
            command.get("trigger_id"),
            view,
            tenant.display_name,
            logger,
            trace_id=trace_id,
        )
    finally:
        unbind_contextvars("trace_id")


def _errors_by_block(errors: Iterable[FieldError]) -> Dict[str, str]:
    by_block: Dict[str, str] = {}
    for error in errors:
        block_id = block_id_for(error.field)
        if block_id in by_block:
            by_block[block_id] = f"{by_block[block_id]} {error.message}"
        else:
            by_block[block_id] = error.message
    return by_block


def _handle_task_submission(ack, body, client, logger, *, registry: ClientRegistry):
    trace_id = str(uuid4())
    bind_contextvars(trace_id=trace_id)
    log = structlog.get_logger().bind(trace_id=trace_id)

    try:
        view = body.get("view", {})
        try:
            metadata = parse_modal_metadata(view.get("private_metadata"))
        except ValueError as exc:
            log.warning("task_submission_metadata_invalid", error=str(exc))
            ack({"response_action": "errors", "errors": {_FORM_ERROR_BLOCK: str(exc)}})
            return

        log = log.bind(conversation_id=metadata.conversation_id)
        tenant = registry.find(metadata.conversation_id)
        if tenant is None:
            log.warning("task_submission_unknown_client")
            ack(
                {
                    "response_action": "errors",
                    "errors": {_FORM_ERROR_BLOCK: "This channel is not configured for task submissions."},
                }
            )
            return

        user_id = body.get("user", {}).get("id")
        if not user_id:
            ack({"response_action": "errors", "errors": {_FORM_ERROR_BLOCK: "We could not identify the submitting user."}})
            log.warning("missing_user_id")
            return

        state_payload = {"values": view.get("state", {}).get("values", {})}
        try:
            submission = parse_submission(state_payload)
        except ValueError as exc:
            ack({"response_action": "errors", "errors": {_FORM_ERROR_BLOCK: str(exc)}})
            return

        errors = validate_submission(submission)
        if errors:
            log.info("task_submission_invalid", user_id=user_id, errors=[error.message for error in errors])
            ack({"response_action": "errors", "errors": _errors_by_block(errors)})
            return

        ack({"response_action": "clear"})
        log.info("task_submission_accepted", user_id=user_id, client=tenant.display_name, title=submission.title)

        run_async(
            process_task_submission,
            client=client,
            tenant=tenant,
            submission=submission,
            submitter_id=user_id,
            conversation_id=tenant.conversation_id,
            trace_id=trace_id,
        )
    finally:
        unbind_contextvars("trace_id")


def _register_slash_handlers(bolt_app: SlackApp, settings: AppSettings, registry: ClientRegistry) -> None:
    @bolt_app.command(settings.slash_command)
    def handle_task_command(ack, command, client, logger):
        _handle_task_command(ack=ack, command=command, client=client, logger=logger, registry=registry)


def _register_view_handlers(bolt_app: SlackApp, registry: ClientRegistry) -> None:
    @bolt_app.view(TASK_MODAL_CALLBACK_ID)
    def handle_task_submission(ack, body, client, logger):
        _handle_task_submission(ack=ack, body=body, client=client, logger=logger, registry=registry)


def _load_version() -> str:
    version_file = Path(__file__).resolve().parent / "VERSION"
    if version_file.exists():
        return version_file.read_text(encoding="utf-8").strip()
    return "unknown"


def create_app() -> Flask:
    """Create and configure the Flask application."""

    configure_logging()

    settings = get_settings()
    registry = get_client_registry()
    bolt_app = _create_bolt_app(settings)
    handler = SlackRequestHandler(bolt_app)

    flask_app = Flask(__name__)
    flask_app.config["APP_VERSION"] = _load_version()
    flask_app.logger.setLevel("INFO")

    _register_error_handlers(flask_app)
    _register_slash_handlers(bolt_app, settings, registry)
    _register_view_handlers(bolt_app, registry)

    structlog.get_logger().info(
        "app_configured",
        clients=len(registry),
        slash_command=settings.slash_command,
    )

    @flask_app.route("/slack/events", methods=["POST"])
    @flask_app.route("/slack/commands", methods=["POST"])
    @flask_app.route("/slack/interactions", methods=["POST"])
    def slack_events():
        raw_body = request.get_data()
        timestamp = request.headers.get(SLACK_TIMESTAMP_HEADER, "")
        signature = request.headers.get(SLACK_SIGNATURE_HEADER, "")

        if not is_valid_slack_request(
            signing_secret=settings.signing_secret,
            timestamp=timestamp,
            body=raw_body,
            signature=signature,
        ):
            structlog.get_logger().warning("slack_request_rejected", path=request.path)
            response = jsonify({"error": "invalid_signature"})
            response.status_code = 401
            return response

        return handler.handle(request)

    @flask_app.route("/", methods=["GET"])
    def index():
        return jsonify({"service": SERVICE_NAME, "version": flask_app.config.get("APP_VERSION", "unknown")})

    @flask_app.route("/healthz", methods=["GET"])
    @flask_app.route("/health", methods=["GET"])
    def healthz():
        health: dict[str, object] = {"ok": True}
        health["version"] = flask_app.config.get("APP_VERSION", "unknown")
        try:
            get_settings()
            health["config"] = "valid"
        except Exception as exc:
            health["config"] = "invalid"
            health["config_error"] = str(exc)
            health["ok"] = False

        health["clients"] = len(registry)

        status = 200 if health["ok"] else 503
        return jsonify(health), status

    return flask_app


if __name__ == "__main__":  # pragma: no cover - manual execution helper
    application = create_app()
    application.run(host="0.0.0.0", port=3000, debug=True)
