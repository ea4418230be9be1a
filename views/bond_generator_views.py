"""
views/bond_generator_views.py
Purpose: Flask blueprint exposing the bond certificate pipeline over HTTP.

Endpoints (all under /bond-generator, all gated by `require_caller`):
- POST /template/scan          scan a DOCX template for tags and fillable blanks
- POST /template/apply-tags    write {{TAG}} placeholders over selected blanks or text
- POST /parse-maturity         parse a maturity schedule upload
- POST /parse-cusip            parse a CUSIP schedule upload
- POST /assemble               parse, join and number without filling (preview)
- POST /generate               run the full pipeline and download the ZIP archive
- GET/POST /drafts, GET /drafts/latest, GET/DELETE /drafts/<draft_id>,
  GET /drafts/<draft_id>/files/<kind>   resumable workflow drafts

Uploads are multipart form files; structured inputs (tag map, assignments) are JSON
strings in form fields. Failures are answered as {"status": "error", code, message, details}.
"""

from __future__ import annotations

import base64
import functools
import io
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from flask import Blueprint, Response, current_app, g, jsonify, request, send_file
from werkzeug.exceptions import HTTPException

from bond_generator.assembler import AssemblyRequest, generate_bond_archive, preview_assembly
from bond_generator.drafts import BLOB_KINDS, DraftStore
from bond_generator.errors import BondGeneratorError, InvalidRequestError
from bond_generator.models import BondMetadata, BondNumberingConfig, TagMap
from bond_generator.parsing import parse_cusip_schedule, parse_date, parse_maturity_schedule
from bond_generator.tags import (
    TAG_OPTIONS,
    TagAssignment,
    apply_tag_assignments,
    scan_template,
    validate_tag_completeness,
)
from core.config import DEFAULT_ARCHIVE_NAME, DOCX_MIME_TYPE, ZIP_MIME_TYPE
from views.auth_helpers import require_caller

logger = logging.getLogger(__name__)

bond_generator_bp = Blueprint("bond_generator_bp", __name__, url_prefix="/bond-generator")

_TRUE_VALUES = {"1", "true", "yes", "on"}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def json_errors(f):
    """Turns pipeline exceptions into the JSON error envelope."""

    @functools.wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except BondGeneratorError as e:
            logger.warning(f"{request.method} {request.path} failed with {e.code}: {e.message}")
            return jsonify({"status": "error", **e.to_dict()}), e.status_code
        except HTTPException:
            raise
        except Exception as e:  # noqa: BLE001
            logger.error(f"Unexpected error in {request.method} {request.path}: {e}", exc_info=True)
            return (
                jsonify(
                    {
                        "status": "error",
                        "code": "INTERNAL_ERROR",
                        "message": "An unexpected error occurred",
                        "details": {},
                    }
                ),
                500,
            )

    return decorated_function


def _upload(field: str, required: bool = True) -> Optional[Tuple[str, bytes]]:
    """Returns (filename, bytes) for a multipart upload field."""
    storage = request.files.get(field)
    if storage is None or not storage.filename:
        if required:
            raise InvalidRequestError(f"Missing file upload '{field}'", details={"field": field})
        return None
    return storage.filename, storage.read()


def _form_flag(name: str) -> bool:
    return request.form.get(name, "").strip().lower() in _TRUE_VALUES


def _form_text(name: str) -> Optional[str]:
    value = request.form.get(name, "").strip()
    return value or None


def _form_json(name: str) -> Any:
    raw = request.form.get(name)
    if raw is None or not raw.strip():
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise InvalidRequestError(f"Field '{name}' is not valid JSON", details={"field": name, "error": str(e)})


def _form_date(name: str):
    raw = _form_text(name)
    if raw is None:
        return None
    result = parse_date(raw)
    if not result.ok:
        raise InvalidRequestError(f"Field '{name}': {result.error}", details={"field": name})
    return result.value


def _numbering_from_form() -> BondNumberingConfig:
    raw_start = _form_text("starting_number")
    try:
        starting_number = int(raw_start) if raw_start is not None else 1
        return BondNumberingConfig(starting_number=starting_number, custom_prefix=_form_text("custom_prefix"))
    except ValueError as e:
        raise InvalidRequestError(
            f"Invalid starting_number '{raw_start}': {e}", details={"field": "starting_number"}
        )


def _metadata_from_form() -> BondMetadata:
    first = _form_date("interest_date_1")
    second = _form_date("interest_date_2")
    if (first is None) != (second is None):
        raise InvalidRequestError(
            "Both interest payment dates are required when either is given",
            details={"fields": ["interest_date_1", "interest_date_2"]},
        )
    return BondMetadata(
        issuer_name=_form_text("issuer_name"),
        bond_title=_form_text("bond_title"),
        project_name=_form_text("project_name"),
        interest_dates=(first, second) if first is not None else None,
        dated_date=_form_date("dated_date"),
    )


def _tag_map_from_form(required: bool = False) -> Optional[TagMap]:
    data = _form_json("tag_map")
    if data is None:
        if required:
            raise InvalidRequestError("Missing field 'tag_map'", details={"field": "tag_map"})
        return None
    try:
        return TagMap.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidRequestError(f"Field 'tag_map' is malformed: {e}", details={"field": "tag_map"})


def _assignments_from_form() -> List[TagAssignment]:
    data = _form_json("assignments")
    if not isinstance(data, list):
        raise InvalidRequestError(
            "Field 'assignments' must be a JSON list", details={"field": "assignments"}
        )
    assignments: List[TagAssignment] = []
    for index, item in enumerate(data):
        if not isinstance(item, dict) or not item.get("tag"):
            raise InvalidRequestError(
                f"Assignment {index} must be an object with a 'tag'", details={"index": index}
            )
        try:
            assignments.append(
                TagAssignment(
                    tag=str(item["tag"]),
                    blank_id=item.get("blank_id"),
                    text=item.get("text"),
                    occurrence=int(item.get("occurrence", 0)),
                )
            )
        except (TypeError, ValueError) as e:
            raise InvalidRequestError(f"Assignment {index} is malformed: {e}", details={"index": index})
    return assignments


def _schedule_payload(result) -> Dict[str, Any]:
    return {"status": "success", **result.to_dict()}


def _draft_store() -> DraftStore:
    return DraftStore(current_app.config["DRAFTS_FOLDER"])


# ---------------------------------------------------------------------------
# Template
# ---------------------------------------------------------------------------


@bond_generator_bp.route("/template/scan", methods=["POST"])
@require_caller
@json_errors
def scan_template_route() -> Response:
    filename, content = _upload("template")
    tag_map = scan_template(content, filename)
    validation = validate_tag_completeness(tag_map)
    logger.info(
        f"Template '{filename}' scanned for {g.caller_id}: {len(tag_map.tags)} tags, "
        f"{len(tag_map.blanks)} blanks, complete={validation.complete}"
    )
    return jsonify(
        {
            "status": "success",
            "tag_map": tag_map.to_dict(),
            "validation": validation.to_dict(),
            "tag_options": TAG_OPTIONS,
        }
    )


@bond_generator_bp.route("/template/apply-tags", methods=["POST"])
@require_caller
@json_errors
def apply_tags_route() -> Response:
    filename, content = _upload("template")
    tag_map = _tag_map_from_form(required=True)
    assignments = _assignments_from_form()
    new_content, new_map = apply_tag_assignments(content, tag_map, assignments)
    validation = validate_tag_completeness(new_map)
    logger.info(f"Applied {len(assignments)} tag assignments to '{filename}' for {g.caller_id}")
    return jsonify(
        {
            "status": "success",
            "tag_map": new_map.to_dict(),
            "validation": validation.to_dict(),
            "template": {
                "filename": filename,
                "mimetype": DOCX_MIME_TYPE,
                "content_base64": base64.b64encode(new_content).decode("ascii"),
            },
        }
    )


# ---------------------------------------------------------------------------
# Schedules and assembly
# ---------------------------------------------------------------------------


@bond_generator_bp.route("/parse-maturity", methods=["POST"])
@require_caller
@json_errors
def parse_maturity_route() -> Response:
    filename, content = _upload("file")
    return jsonify(_schedule_payload(parse_maturity_schedule(content, filename)))


@bond_generator_bp.route("/parse-cusip", methods=["POST"])
@require_caller
@json_errors
def parse_cusip_route() -> Response:
    filename, content = _upload("file")
    return jsonify(_schedule_payload(parse_cusip_schedule(content, filename)))


@bond_generator_bp.route("/assemble", methods=["POST"])
@require_caller
@json_errors
def assemble_route() -> Response:
    maturity_name, maturity = _upload("maturity")
    cusip_name, cusip = _upload("cusip")
    preview = preview_assembly(
        maturity,
        cusip,
        config=_numbering_from_form(),
        metadata=_metadata_from_form(),
        maturity_filename=maturity_name,
        cusip_filename=cusip_name,
    )
    return jsonify({"status": "success", **preview.to_dict()})


@bond_generator_bp.route("/generate", methods=["POST"])
@require_caller
@json_errors
def generate_route() -> Response:
    template_name, template = _upload("template")
    maturity_name, maturity = _upload("maturity")
    cusip_name, cusip = _upload("cusip")
    output = generate_bond_archive(
        AssemblyRequest(
            template=template,
            maturity_schedule=maturity,
            cusip_schedule=cusip,
            template_filename=template_name,
            maturity_filename=maturity_name,
            cusip_filename=cusip_name,
            numbering=_numbering_from_form(),
            metadata=_metadata_from_form(),
            tag_map=_tag_map_from_form(),
            acknowledge_invalid_rows=_form_flag("acknowledge_invalid_rows"),
            acknowledge_unmatched_rows=_form_flag("acknowledge_unmatched_rows"),
        )
    )
    logger.info(f"Generated {output.manifest.bond_count} certificates for {g.caller_id}")
    response = send_file(
        io.BytesIO(output.archive),
        as_attachment=True,
        download_name=DEFAULT_ARCHIVE_NAME,
        mimetype=ZIP_MIME_TYPE,
    )
    response.headers["X-Bond-Manifest"] = json.dumps(output.manifest.to_dict())
    return response


# ---------------------------------------------------------------------------
# Drafts
# ---------------------------------------------------------------------------


@bond_generator_bp.route("/drafts", methods=["GET"])
@require_caller
@json_errors
def list_drafts_route() -> Response:
    drafts = _draft_store().list_drafts(g.caller_id)
    return jsonify({"status": "success", "drafts": [d.to_dict() for d in drafts]})


@bond_generator_bp.route("/drafts", methods=["POST"])
@require_caller
@json_errors
def save_draft_route() -> Response:
    current_step = _form_text("current_step")
    if current_step is None:
        raise InvalidRequestError("Missing field 'current_step'", details={"field": "current_step"})
    files = {}
    for kind in BLOB_KINDS:
        upload = _upload(kind, required=False)
        if upload is not None:
            files[kind] = upload
    legal = request.form.get("legal_accepted")
    finalized = request.form.get("is_finalized")
    state = _draft_store().save(
        g.caller_id,
        current_step,
        draft_id=_form_text("draft_id"),
        files=files,
        tag_map=_form_json("tag_map"),
        legal_accepted=_form_flag("legal_accepted") if legal is not None else None,
        is_finalized=_form_flag("is_finalized") if finalized is not None else None,
    )
    return jsonify({"status": "success", "draft": state.to_dict()})


@bond_generator_bp.route("/drafts/latest", methods=["GET"])
@require_caller
@json_errors
def latest_draft_route() -> Response:
    state = _draft_store().latest(g.caller_id)
    return jsonify({"status": "success", "draft": state.to_dict() if state else None})


@bond_generator_bp.route("/drafts/<draft_id>", methods=["GET"])
@require_caller
@json_errors
def get_draft_route(draft_id: str) -> Response:
    state = _draft_store().load(g.caller_id, draft_id)
    return jsonify({"status": "success", "draft": state.to_dict()})


@bond_generator_bp.route("/drafts/<draft_id>/files/<kind>", methods=["GET"])
@require_caller
@json_errors
def get_draft_file_route(draft_id: str, kind: str) -> Response:
    filename, content = _draft_store().load_file(g.caller_id, draft_id, kind)
    return send_file(
        io.BytesIO(content),
        as_attachment=True,
        download_name=filename,
        mimetype=DOCX_MIME_TYPE if kind == "template" else "application/octet-stream",
    )


@bond_generator_bp.route("/drafts/<draft_id>", methods=["DELETE"])
@require_caller
@json_errors
def delete_draft_route(draft_id: str) -> Response:
    _draft_store().delete(g.caller_id, draft_id)
    return jsonify({"status": "success", "draft_id": draft_id})
