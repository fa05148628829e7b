# src/damage_api/api/damages.py

import math
from flask import Blueprint, current_app, request, jsonify
from sqlalchemy.exc import SQLAlchemyError

from ..processors import damage_processor

MAX_LIMIT = 10000


def _error(message, status_code):
    return jsonify({"success": False, "error": message}), status_code


def _internal_error(context, error):
    current_app.logger.error(f"Error {context}: {error}")
    return _error("Internal server error", 500)


def create_damages_blueprint(SessionLocal):
    """
    Factory that creates the damages blueprint with access
    to SessionLocal for DB queries.

    Endpoints:
        GET  /api/damages          paginated list with filters
        GET  /api/damages/nearby   radius search around a point
        GET  /api/damages/stats    per-type / per-day statistics
        GET  /api/damages/<id>     one damage report
        POST /api/damages          register a new damage report

    /nearby and /stats are registered before /<id> so they are not
    swallowed by the id route.
    """
    bp = Blueprint("damages", __name__, url_prefix="/api")

    @bp.route("/damages", methods=["GET"])
    def get_damages():
        """
        Get a page of damage reports.

        Query Parameters:
            page (int, optional): 1-based page number. Default = 1.
            limit (int, optional): Page size. Default = 50, max = 10000.
            damage_type, start_date, end_date (str, optional): filters.
            min_confidence (float, optional): lower bound on confidence.
            sort, order (str, optional): whitelisted ordering.
        """
        try:
            page = int(request.args.get("page", 1))
            limit = int(request.args.get("limit", 50))
            min_confidence = request.args.get("min_confidence")
            min_confidence = float(min_confidence) if min_confidence else None
        except ValueError:
            return _error("Invalid parameters", 400)

        page = max(page, 1)
        limit = min(max(limit, 1), MAX_LIMIT)

        db = SessionLocal()
        try:
            total, data = damage_processor.list_damages(
                db,
                page=page,
                limit=limit,
                sort=request.args.get("sort", "captured_at"),
                order=request.args.get("order", "DESC"),
                damage_type=request.args.get("damage_type"),
                start_date=request.args.get("start_date"),
                end_date=request.args.get("end_date"),
                min_confidence=min_confidence,
            )
        except SQLAlchemyError as e:
            return _internal_error("fetching damages", e)
        finally:
            db.close()

        return jsonify({
            "success": True,
            "data": data,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": math.ceil(total / limit),
            },
        }), 200

    @bp.route("/damages/nearby", methods=["GET"])
    def get_nearby_damages():
        """
        Search damage reports near a location.

        Query Parameters:
            lat, lng (float, required): centre of the search.
            radius (float, optional): metres. Default = 1000.
            damage_type (str, optional): only this damage type.
        """
        lat = request.args.get("lat")
        lng = request.args.get("lng")
        if not lat or not lng:
            return _error("Latitude and longitude are required", 400)

        try:
            latitude = float(lat)
            longitude = float(lng)
            radius = float(request.args.get("radius", 1000))
        except ValueError:
            return _error("Invalid parameters", 400)

        if any(math.isnan(v) for v in (latitude, longitude, radius)):
            return _error("Invalid parameters", 400)

        db = SessionLocal()
        try:
            data = damage_processor.find_nearby(
                db, latitude, longitude, radius,
                damage_type=request.args.get("damage_type"),
            )
        except SQLAlchemyError as e:
            return _internal_error("searching nearby damages", e)
        finally:
            db.close()

        return jsonify({
            "success": True,
            "data": data,
            "query": {
                "latitude": latitude,
                "longitude": longitude,
                "radius": radius,
            },
        }), 200

    @bp.route("/damages/stats", methods=["GET"])
    def get_damage_stats():
        """Statistics grouped by damage type and by day."""
        db = SessionLocal()
        try:
            stats = damage_processor.get_stats(db)
        except SQLAlchemyError as e:
            return _internal_error("fetching stats", e)
        finally:
            db.close()

        return jsonify({"success": True, "data": stats}), 200

    @bp.route("/damages/<damage_id>", methods=["GET"])
    def get_damage_by_id(damage_id):
        db = SessionLocal()
        try:
            damage = damage_processor.get_damage(db, damage_id)
        except SQLAlchemyError as e:
            return _internal_error("fetching damage by id", e)
        finally:
            db.close()

        if damage is None:
            return _error("Damage report not found", 404)
        return jsonify({"success": True, "data": damage}), 200

    @bp.route("/damages", methods=["POST"])
    def create_damage():
        """
        Register a new damage report.
        id, longitude and latitude are required.
        """
        payload = request.get_json(silent=True) or {}

        if not payload.get("id") or payload.get("longitude") is None or payload.get("latitude") is None:
            return _error("ID, longitude, and latitude are required", 400)

        try:
            float(payload["longitude"])
            float(payload["latitude"])
        except (TypeError, ValueError):
            return _error("Invalid parameters", 400)

        db = SessionLocal()
        try:
            new_id = damage_processor.insert_damage(db, payload)
        except SQLAlchemyError as e:
            db.rollback()
            return _internal_error("creating damage report", e)
        finally:
            db.close()

        return jsonify({"success": True, "data": {"id": new_id}}), 201

    return bp
