from flask import Blueprint, current_app, jsonify, request

from app.services import reporting_service


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/transactions")
def transactions_report():
    try:
        report = reporting_service.transactions_for_date(request.args.get("date"))
        return jsonify(report), 200
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400
    except Exception:
        current_app.logger.exception("Transaction report failed")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/daily")
def daily_report():
    try:
        report = reporting_service.daily_summaries(
            request.args.get("start"),
            request.args.get("end"),
        )
        return jsonify(report), 200
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400
    except Exception:
        current_app.logger.exception("Daily sales report failed")
        return jsonify({"error": "Internal server error"}), 500
