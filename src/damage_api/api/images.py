# src/damage_api/api/images.py

from flask import Blueprint, jsonify, redirect

from ..processors import damage_processor


def create_images_blueprint():
    """
    Blueprint for damage images.

    Endpoint:
        GET /api/images/<id>/<type>

    The images live in a public bucket, so this only redirects
    to the bucket URL for the original or annotated picture.
    """
    bp = Blueprint("images", __name__, url_prefix="/api")

    @bp.route("/images/<damage_id>/<image_type>", methods=["GET"])
    def get_image(damage_id, image_type):
        if image_type not in damage_processor.IMAGE_TYPES:
            return jsonify({"success": False, "error": "Invalid image type"}), 400

        return redirect(damage_processor.image_url(damage_id, image_type))

    return bp
