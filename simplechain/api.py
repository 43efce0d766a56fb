# simplechain/api.py
"""
HTTP front end for the ledger.

A thin Flask layer: every request is translated into one queued ledger
operation through LedgerService, and ledger exceptions are mapped to HTTP
status codes.
"""
import atexit
import http
import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from flask import Blueprint, Flask, current_app, jsonify, request
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from simplechain import __version__
from simplechain.config import Config
from simplechain.exceptions import BlockNotFoundError, LedgerError, StorageError
from simplechain.models import Block
from simplechain.service import LedgerService
from simplechain.storage import create_storage

logger = logging.getLogger(__name__)

chain_bp = Blueprint("chain", __name__, url_prefix="/api/chain")


# --- Pydantic Models for Input Validation ---
class AppendBlockSchema(BaseModel):
    model_config = ConfigDict(extra="forbid")

    body: str = Field(..., min_length=1, description="Opaque payload stored in the block")


def _service() -> LedgerService:
    return current_app.extensions["ledger"]


def _call(operation: str, *args):
    return _service().call(operation, *args)


# --- API Routes ---

@chain_bp.route("/height", methods=["GET"])
def chain_height():
    return jsonify({"height": _call("get_block_height")}), http.HTTPStatus.OK


@chain_bp.route("", methods=["GET"])
def full_chain():
    """
    Returns the chain with pagination.
    Query Params: ?page=1&per_page=50
    """
    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('per_page', 50, type=int)
    if page < 1 or per_page < 1:
        return jsonify({"error": "Invalid pagination parameters"}), http.HTTPStatus.BAD_REQUEST
    # Enforce a maximum page size
    per_page = min(per_page, 100)

    chain = _call("get_chain")
    offset = (page - 1) * per_page
    blocks = chain[offset:offset + per_page]

    return jsonify({
        "chain": [block.model_dump() for block in blocks],
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total_pages": (len(chain) + per_page - 1) // per_page,
            "total_blocks": len(chain),
        }
    }), http.HTTPStatus.OK


@chain_bp.route("/blocks/<int:height>", methods=["GET"])
def get_block(height: int):
    block = _call("get_block", height)
    return jsonify(block.model_dump()), http.HTTPStatus.OK


@chain_bp.route("/blocks", methods=["POST"])
def append_block():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return jsonify({"error": "Request body must be a JSON object"}), http.HTTPStatus.BAD_REQUEST
    try:
        data = AppendBlockSchema(**payload)
    except ValidationError as e:
        details = e.errors(include_url=False, include_context=False)
        logger.warning(f"Append rejected: {details}")
        return jsonify({"error": "Invalid block", "details": details}), http.HTTPStatus.BAD_REQUEST

    block = _call("append", Block(body=data.body))
    return jsonify(block.model_dump()), http.HTTPStatus.CREATED


@chain_bp.route("/validate", methods=["GET"])
def validate_chain():
    result = _call("validate_chain")
    return jsonify(result.model_dump()), http.HTTPStatus.OK


# --- Error handlers ---

@chain_bp.errorhandler(BlockNotFoundError)
def handle_not_found(e: BlockNotFoundError):
    return jsonify({"error": "Block not found", "height": e.height}), http.HTTPStatus.NOT_FOUND


@chain_bp.errorhandler(StorageError)
def handle_storage_error(e: StorageError):
    logger.error(f"Storage failure: {e}", exc_info=True)
    return jsonify({"error": "Storage unavailable", "details": str(e)}), http.HTTPStatus.SERVICE_UNAVAILABLE


@chain_bp.errorhandler(LedgerError)
def handle_ledger_error(e: LedgerError):
    logger.error(f"Ledger error: {e}", exc_info=True)
    return jsonify({"error": "Ledger error", "details": str(e)}), http.HTTPStatus.INTERNAL_SERVER_ERROR


def create_ledger_app(config: Optional[Mapping[str, Any]] = None,
                      service: Optional[LedgerService] = None) -> Flask:
    """
    Create and configure the ledger Flask application.

    Args:
        config: Overrides applied on top of Config (optional)
        service: An already-built LedgerService; one is created from the
            configured storage backend if omitted

    Returns:
        Flask application instance
    """
    app = Flask(__name__)
    app.config.from_mapping(Config.as_dict())
    if config:
        app.config.from_mapping(config)

    if service is None:
        service = LedgerService(
            create_storage(app.config),
            genesis_body=app.config["GENESIS_BODY"],
            call_timeout=app.config["LEDGER_CALL_TIMEOUT"],
        )
        # Services passed in are stopped by whoever built them.
        atexit.register(service.stop)
    service.start()
    app.extensions["ledger"] = service

    app.startup_time = datetime.now(timezone.utc)

    @app.route('/health', methods=['GET'])
    def health():
        uptime_seconds = (datetime.now(timezone.utc) - app.startup_time).total_seconds()
        return jsonify({
            "status": "ok",
            "service": "simplechain",
            "version": __version__,
            "uptime_seconds": uptime_seconds,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }), 200

    app.register_blueprint(chain_bp)
    logger.info("🚀 Ledger API created successfully!")
    return app
