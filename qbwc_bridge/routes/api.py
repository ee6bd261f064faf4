"""
REST front door for the job queue.

Accepts QuickBooks job submissions as JSON and reports queue state. Jobs are
only queued here; they run when the Web Connector next polls the SOAP
endpoint.
"""
import logging

from flask import Blueprint, Response, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from ..services.job_queue import JobStatus, JobType
from ..utils.qbxml_builder import VALID_ITEM_TYPES
from ..utils.qwc_builder import build_qwc

logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__, url_prefix="/api")
qwc_bp = Blueprint("qwc", __name__)


class ValidationError(ValueError):
    """Request body failed validation; reported as HTTP 400."""


def _state():
    return current_app.extensions["qbwc_bridge"]


def _body():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _queued(job, message, status=201, **extra):
    body = {"success": True, "jobId": job.id, "job": job.to_dict(), "message": message}
    body.update(extra)
    return jsonify(body), status


@api_bp.errorhandler(ValueError)
def _handle_validation_error(e):
    return jsonify({"success": False, "error": str(e)}), 400


@api_bp.errorhandler(Exception)
def _handle_unexpected_error(e):
    if isinstance(e, HTTPException):
        return jsonify({"success": False, "error": e.description}), e.code
    logger.error(f"Unhandled error in {request.path}: {e}", exc_info=True)
    return jsonify({"success": False, "error": str(e)}), 500


@api_bp.route("/jobs", methods=["POST"])
def create_job():
    """Queue a job of any type: ``{"type": ..., "payload": {...}, "metadata": {...}}``."""
    data = _body()
    job_type = data.get("type")
    if not job_type:
        raise ValidationError("type is required")
    job = _state().queue.enqueue(job_type, data.get("payload") or {}, data.get("metadata"))
    if JobType.parse(job_type) is None:
        logger.warning(f"Job {job.id} queued with unrecognised type {job_type}; it will fail when dispatched")
    return _queued(job, f"{job_type} job queued")


@api_bp.route("/jobs/<job_id>", methods=["GET"])
def get_job(job_id):
    job = _state().queue.get(job_id)
    if job is None:
        return jsonify({"success": False, "error": f"Job {job_id} not found"}), 404
    return jsonify({"success": True, "job": job.to_dict()})


@api_bp.route("/jobs/<job_id>/abandon", methods=["POST"])
def abandon_job(job_id):
    """Fail a job left in processing by a connector round that never returned."""
    queue = _state().queue
    job = queue.get(job_id)
    if job is None:
        return jsonify({"success": False, "error": f"Job {job_id} not found"}), 404
    reason = _body().get("reason") or "Abandoned by operator: no response received from QuickBooks"
    if queue.abandon(job_id, reason) is None:
        return jsonify({"success": False, "error": f"Job {job_id} is {job.status.value}, not processing"}), 409
    return jsonify({"success": True, "job": queue.get(job_id).to_dict()})


@api_bp.route("/customers/query", methods=["POST"])
def query_customers():
    data = _body()
    payload = {
        "maxReturned": data.get("maxReturned") or 100,
        "name": data.get("name"),
        "nameFilter": data.get("nameFilter"),
    }
    job = _state().queue.enqueue(JobType.CUSTOMER_QUERY, payload, data.get("metadata"))
    return _queued(job, "Customer query job queued", filters=payload,
                   instruction=f"Check /api/jobs/{job.id} to get results when done")


@api_bp.route("/customers", methods=["POST"])
def add_customer():
    data = _body()
    if not data.get("fullName"):
        raise ValidationError("fullName is required")
    payload = {
        "fullName": data["fullName"],
        "email": data.get("email") or "",
        "phone": data.get("phone") or "",
    }
    job = _state().queue.enqueue(JobType.CUSTOMER_ADD, payload, data.get("metadata"))
    return _queued(job, "Customer add job queued")


@api_bp.route("/items/query", methods=["POST"])
def query_items():
    data = _body()
    payload = {"maxReturned": data.get("maxReturned") or 100}
    if data.get("name"):
        payload["name"] = data["name"]
    if data.get("nameFilter"):
        payload["nameFilter"] = data["nameFilter"]
    job = _state().queue.enqueue(JobType.ITEM_QUERY, payload, data.get("metadata"))
    return _queued(job, "Item query job queued", filters=payload)


@api_bp.route("/items/<item_id>/group", methods=["POST"])
def query_item_group(item_id):
    data = _body()
    job = _state().queue.enqueue(JobType.ITEM_GROUP_QUERY, {"itemId": item_id}, data.get("metadata"))
    return _queued(job, f"Item group lookup queued for {item_id}")


@api_bp.route("/items", methods=["POST"])
def add_item():
    data = _body()
    if not data.get("name"):
        raise ValidationError("name is required")
    item_type = data.get("type")
    if not item_type:
        raise ValidationError(f"type is required ({', '.join(VALID_ITEM_TYPES)})")
    if item_type not in VALID_ITEM_TYPES:
        raise ValidationError(f"Invalid type. Must be one of: {', '.join(VALID_ITEM_TYPES)}")
    payload = {
        "type": item_type,
        "name": data["name"],
        "description": data.get("description"),
        "price": data.get("price"),
        "account": data.get("account"),
    }
    job = _state().queue.enqueue(JobType.ITEM_ADD, payload, data.get("metadata"))
    return _queued(job, f"Item add job queued for: {data['name']}", itemType=item_type)


@api_bp.route("/invoices", methods=["POST"])
def add_invoice():
    data = _body()
    customer = data.get("customer")
    if not isinstance(customer, dict) or not (customer.get("listId") or customer.get("fullName")):
        raise ValidationError("customer with listId or fullName is required")
    line_items = data.get("lineItems")
    if not isinstance(line_items, list) or not line_items:
        raise ValidationError("lineItems must be a non-empty list")
    payload = {key: data[key] for key in
               ("customer", "txnDate", "refNumber", "memo", "lineItems", "billTo", "shipTo")
               if data.get(key) is not None}
    job = _state().queue.enqueue(JobType.INVOICE_ADD, payload, data.get("metadata"))
    return _queued(job, "Invoice add job queued")


@api_bp.route("/invoices/query", methods=["POST"])
def query_invoices():
    data = _body()
    payload = {"maxReturned": data.get("maxReturned") or 20}
    for key in ("customerName", "txnDateStart", "txnDateEnd"):
        if data.get(key):
            payload[key] = data[key]
    job = _state().queue.enqueue(JobType.INVOICE_QUERY, payload, data.get("metadata"))
    return _queued(job, "Invoice query job queued", filters=payload)


@api_bp.route("/queue", methods=["GET"])
def queue_status():
    queue = _state().queue
    status = request.args.get("status")
    if status and status not in {s.value for s in JobStatus}:
        raise ValidationError(f"Unknown status filter: {status}")
    jobs = queue.list_jobs(status or None)
    return jsonify({
        "success": True,
        "count": len(jobs),
        "counts": queue.counts(),
        "queue": [job.to_dict() for job in jobs],
    })


@api_bp.route("/queue", methods=["DELETE"])
def prune_queue():
    removed = _state().queue.prune_finished()
    return jsonify({"success": True, "removed": removed})


@qwc_bp.route("/generate-qwc", methods=["GET"])
def generate_qwc():
    """Download the .qwc file for registering this server with the Web Connector."""
    qwc = build_qwc(_state().settings)
    logger.info("QWC file generated and downloaded")
    return Response(
        qwc,
        mimetype="application/xml",
        headers={"Content-Disposition": 'attachment; filename="quickbooks-connector.qwc"'},
    )
