import logging

from flask import Flask, request, jsonify

from ingest_service.config import load_service_config
from ingest_service.log_store import LogStore, EXACT_FILTERS
from ingest_service.validator import LogValidator

logger = logging.getLogger(__name__)


def create_app(config=None):
    """Flask application factory."""
    app = Flask(__name__)

    if config is None:
        config = load_service_config()

    validator = LogValidator()
    store = LogStore(max_size=config.max_logs)

    # Store components on app for access in tests
    app.config["components"] = {
        "config": config,
        "validator": validator,
        "store": store,
    }

    # --- Routes ---

    @app.route("/health")
    def health():
        return jsonify({
            "status": "healthy",
            "total_logs": store.total_count,
            "current_stored": store.current_size,
        })

    @app.route("/logs", methods=["POST"])
    def ingest_logs():
        payload = request.get_json(force=True, silent=True)
        if payload is None:
            return jsonify({"success": False, "errors": ["request body must be JSON"]}), 400

        records = payload if isinstance(payload, list) else [payload]
        if not records:
            return jsonify({"success": False, "errors": ["empty batch"]}), 400

        # Reject the whole batch if any record is invalid
        errors = []
        for index, record in enumerate(records):
            is_valid, record_errors = validator.validate(record)
            if not is_valid:
                errors.extend(f"record {index}: {msg}" for msg in record_errors)
        if errors:
            logger.info("Rejected batch of %d record(s): %s", len(records), errors[0])
            return jsonify({"success": False, "errors": errors}), 400

        ids = [store.add(record) for record in records]
        logger.debug("Stored %d record(s)", len(ids))
        return jsonify({
            "success": True,
            "message": f"Stored {len(ids)} log(s)",
            "count": len(ids),
            "ids": ids,
        })

    @app.route("/logs", methods=["GET"])
    def list_logs():
        sort = request.args.get("sort", config.default_sort)
        limit = request.args.get("limit", type=int)
        max_limit = config.max_limit
        if limit is not None and limit > max_limit:
            limit = max_limit

        filters = {param: request.args.get(param) for param in EXACT_FILTERS}
        logs = store.query(app=request.args.get("app"), sort=sort, limit=limit, **filters)
        return jsonify({
            "count": len(logs),
            "logs": logs,
            "message": "Logs retrieved" if logs else "No logs found",
        })

    @app.route("/logs", methods=["DELETE"])
    def clear_logs():
        removed = store.clear()
        logger.info("Cleared %d stored log(s)", removed)
        return jsonify({"success": True, "deleted": removed})

    @app.route("/validation-stats")
    def validation_stats():
        return jsonify(validator.get_stats())

    return app
