# Overview: Flask API routes for product cost basis (HPP) reports and recalculation.

"""
HPP routes.

Read endpoints compute on the fly and never write. POST .../recalculate
stores the result on the product (products.cost, cost_method,
cost_recalculated_at) and commits.
"""
from flask import Blueprint, current_app, jsonify, request

from ..extensions import db
from ..report_cache import get_report_cache
from ..services import cost_basis_service
from ..services.cost_basis_service import CostBasisError, ProductNotFound

hpp_bp = Blueprint("hpp", __name__, url_prefix="/api/hpp")


def _error_response(exc: CostBasisError):
    status = 404 if isinstance(exc, ProductNotFound) else 400
    return jsonify({"error": str(exc)}), status


@hpp_bp.get("/products/<int:product_id>/breakdown")
def product_breakdown(product_id: int):
    method = request.args.get("method") or current_app.config.get("HPP_DEFAULT_METHOD")
    try:
        result = cost_basis_service.cost_breakdown(db.session.connection(), product_id, method)
        return jsonify(result), 200
    except CostBasisError as exc:
        return _error_response(exc)
    except Exception:
        current_app.logger.exception("HPP breakdown failed", extra={"product_id": product_id})
        return jsonify({"error": "Internal server error"}), 500


@hpp_bp.get("/products/<int:product_id>/compare")
def compare_product_methods(product_id: int):
    try:
        result = cost_basis_service.compare_methods(db.session.connection(), product_id)
        return jsonify(result), 200
    except CostBasisError as exc:
        return _error_response(exc)
    except Exception:
        current_app.logger.exception("HPP comparison failed", extra={"product_id": product_id})
        return jsonify({"error": "Internal server error"}), 500


@hpp_bp.get("/products/<int:product_id>/suggested-price")
def product_suggested_price(product_id: int):
    markup = request.args.get("markup", type=float)
    if markup is None:
        markup = current_app.config.get("HPP_DEFAULT_MARKUP_PCT", cost_basis_service.DEFAULT_MARKUP_PCT)
    try:
        result = cost_basis_service.suggested_price(db.session.connection(), product_id, markup)
        return jsonify(result), 200
    except CostBasisError as exc:
        return _error_response(exc)
    except Exception:
        current_app.logger.exception("Suggested price failed", extra={"product_id": product_id})
        return jsonify({"error": "Internal server error"}), 500


@hpp_bp.post("/products/<int:product_id>/recalculate")
def recalculate_product(product_id: int):
    """
    Recalculate and store a product's HPP.

    Body (optional): {"method": "latest" | "average" | "current"}
    """
    data = request.get_json(silent=True) or {}
    try:
        method = cost_basis_service.resolve_method(
            data.get("method"), current_app.config.get("HPP_DEFAULT_METHOD", "latest")
        )
        conn = db.session.connection()
        cost_basis_service.require_product(conn, product_id)
        change = get_report_cache().cost_basis.recalculate_product(conn, product_id, method)
        if change is None:
            db.session.rollback()
            return jsonify({"error": "Product has no costable composition"}), 400
        db.session.commit()
        return jsonify({"updated": True, "change": change.to_dict()}), 200
    except CostBasisError as exc:
        db.session.rollback()
        return _error_response(exc)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("HPP recalculation failed", extra={"product_id": product_id})
        return jsonify({"error": "Internal server error"}), 500
