"""
app.py: Main Flask application for the road damage API.

This service exposes the damage reports stored in PostgreSQL/PostGIS:
- Paginated and filtered listing, nearby search and statistics.
- Single report lookup and image redirects to the public bucket.
- Registration of new damage reports.
- Open API (Swagger) integration for documentation.

Run with: python -m src.damage_api.app (starts on port 5001).
The viewer (src/damage_viewer) reads from /api/damages.
"""

import os
import logging
import threading
import webbrowser
from flask import Flask, jsonify
from flask_cors import CORS
from flask_swagger_ui import get_swaggerui_blueprint
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from src.damage_api.db.session import engine, SessionLocal
from src.damage_api.api.damages import create_damages_blueprint
from src.damage_api.api.images import create_images_blueprint

logging.basicConfig(level=logging.INFO)

# Initialize Flask app
app = Flask(__name__)

# Use Flask CORS so the viewer pages can call the API from another origin
CORS(app)

# Make sure INFO-level logs show up
app.logger.setLevel("INFO")

# Swagger UI configuration
SWAGGER_URL = '/swagger'  # URL for Swagger UI (e.g., http://localhost:5001/swagger)
API_URL = '/swagger.json'

SWAGGER_CONFIG = {
    'app_name': "Road Damage API",
    'deepLinking': True,
    'defaultModelsExpandDepth': -1,
}

swaggerui_blueprint = get_swaggerui_blueprint(
    SWAGGER_URL,
    API_URL,
    config=SWAGGER_CONFIG
)

app.register_blueprint(swaggerui_blueprint)
app.register_blueprint(create_damages_blueprint(SessionLocal))
app.register_blueprint(create_images_blueprint())


@app.route('/health', methods=['GET'])
def health():
    """
    Health check: verifies the PG connection.
    Returns: {"status": "ok", "service": "damage_api", "postgres": true}
    """
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        postgres_status = True
    except OperationalError as e:
        app.logger.error(f"PG health check failed: {e}")
        postgres_status = False

    return jsonify({
        "status": "ok" if postgres_status else "error",
        "service": "damage_api",
        "postgres": postgres_status
    })


DAMAGE_EXAMPLE = {
    "id": "20250805-0001",
    "captured_at": "2025-08-05T09:30:00+09:00",
    "damage_type": "Potholes",
    "confidence": 0.87,
    "location": {"latitude": 35.572, "longitude": 139.368, "altitude": 112.4},
    "speed_kmh": 24.0,
    "voice_memo": "穴が深く危険。",
    "bbox": [120, 88, 310, 240],
    "size": "large",
    "images": {
        "original": "https://example.r2.dev/images_original/20250805-0001_original.jpg",
        "annotated": "https://example.r2.dev/images_annotated/20250805-0001_annotated.jpg"
    }
}


@app.route('/swagger.json', methods=['GET'])
def swagger_spec():
    """
    Open API spec for the damage API endpoints.
    """
    return jsonify({
        "openapi": "3.0.0",
        "info": {"title": "Road Damage API", "version": "1.0.0"},
        "paths": {
            "/health": {
                "get": {
                    "summary": "Health check",
                    "responses": {"200": {"description": "OK"}}
                }
            },
            "/api/damages": {
                "get": {
                    "summary": "List damage reports (paginated)",
                    "tags": ["Damages"],
                    "parameters": [
                        {"name": "page", "in": "query", "schema": {"type": "integer", "default": 1}},
                        {"name": "limit", "in": "query", "schema": {"type": "integer", "default": 50}},
                        {"name": "damage_type", "in": "query", "schema": {"type": "string"}},
                        {"name": "start_date", "in": "query", "schema": {"type": "string"}},
                        {"name": "end_date", "in": "query", "schema": {"type": "string"}},
                        {"name": "min_confidence", "in": "query", "schema": {"type": "number"}},
                        {"name": "sort", "in": "query", "schema": {"type": "string", "default": "captured_at"}},
                        {"name": "order", "in": "query", "schema": {"type": "string", "default": "DESC"}}
                    ],
                    "responses": {
                        "200": {
                            "description": "A page of damage reports",
                            "content": {
                                "application/json": {
                                    "example": {
                                        "success": True,
                                        "data": [DAMAGE_EXAMPLE],
                                        "pagination": {"page": 1, "limit": 50, "total": 1, "pages": 1}
                                    }
                                }
                            }
                        },
                        "400": {"description": "Invalid parameters"}
                    }
                },
                "post": {
                    "summary": "Register a damage report",
                    "tags": ["Damages"],
                    "description": "id, longitude and latitude are required.",
                    "responses": {
                        "201": {"description": "Created"},
                        "400": {"description": "Missing required fields"}
                    }
                }
            },
            "/api/damages/nearby": {
                "get": {
                    "summary": "Damage reports near a location",
                    "tags": ["Damages"],
                    "parameters": [
                        {"name": "lat", "in": "query", "required": True, "schema": {"type": "number"}},
                        {"name": "lng", "in": "query", "required": True, "schema": {"type": "number"}},
                        {"name": "radius", "in": "query", "schema": {"type": "number", "default": 1000}},
                        {"name": "damage_type", "in": "query", "schema": {"type": "string"}}
                    ],
                    "responses": {
                        "200": {"description": "Reports ordered by distance"},
                        "400": {"description": "Latitude and longitude are required"}
                    }
                }
            },
            "/api/damages/stats": {
                "get": {
                    "summary": "Statistics by damage type and by day",
                    "tags": ["Damages"],
                    "responses": {"200": {"description": "Statistics"}}
                }
            },
            "/api/damages/{id}": {
                "get": {
                    "summary": "One damage report",
                    "tags": ["Damages"],
                    "parameters": [{"name": "id", "in": "path", "required": True, "schema": {"type": "string"}}],
                    "responses": {
                        "200": {"description": "The damage report (includes raw_json)"},
                        "404": {"description": "Damage report not found"}
                    }
                }
            },
            "/api/images/{id}/{type}": {
                "get": {
                    "summary": "Redirect to the original or annotated image",
                    "tags": ["Images"],
                    "parameters": [
                        {"name": "id", "in": "path", "required": True, "schema": {"type": "string"}},
                        {"name": "type", "in": "path", "required": True,
                         "schema": {"type": "string", "enum": ["original", "annotated"]}}
                    ],
                    "responses": {
                        "302": {"description": "Redirect to the bucket URL"},
                        "400": {"description": "Invalid image type"}
                    }
                }
            }
        }
    })


# Error handler for 404
@app.errorhandler(404)
def not_found(error):
    return jsonify({"success": False, "error": "Endpoint not found"}), 404


# Error handler for 500
@app.errorhandler(500)
def internal_error(error):
    return jsonify({"success": False, "error": "Internal server error"}), 500


def open_browser():
    """Open Swagger UI in browser."""
    import time
    time.sleep(1.5)
    webbrowser.open('http://127.0.0.1:5001/swagger')


if __name__ == '__main__':
    threading.Thread(target=open_browser, daemon=True).start()

    # Run the Flask app (debug mode = True for development only).
    debug_mode = os.getenv('FLASK_DEBUG', 'False').lower() == 'true'
    app.run(host='0.0.0.0', port=5001, debug=debug_mode)
