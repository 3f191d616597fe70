"""
Onboarding Blueprint: company profile lookup used to pre-fill a brief.

Endpoints:
    POST /api/v1/onboarding/analyze-company   — {url} → company profile
"""

import logging

from flask import Blueprint, jsonify, request

from pacy import limiter
from pacy.core.exceptions import ParseError
from pacy.services import intake_service
from pacy.utils.helpers import request_json, str_field

logger = logging.getLogger(__name__)

onboarding_bp = Blueprint("onboarding", __name__, url_prefix="/api/v1/onboarding")


@onboarding_bp.route("/analyze-company", methods=["POST"])
@limiter.shared_limit("30/minute", scope="ai_generate")
def analyze_company():
    data = request_json(request)
    try:
        profile = intake_service.analyze_company(str_field(data, "url"))
    except ParseError as exc:
        logger.error("Company profile could not be parsed: %s", exc)
        return jsonify({
            "error": True,
            "error_type": "parse_error",
            "message": str(exc),
            "raw_response": exc.preview,
        }), 500

    if profile.get("error"):
        return jsonify({
            "error": True,
            "error_type": "analysis_failed",
            "message": str(profile["error"]),
        }), 400
    return jsonify(profile), 200
