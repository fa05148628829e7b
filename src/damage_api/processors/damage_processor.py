# src/damage_api/processors/damage_processor.py

"""
Damage report processor for the damage API.
Runs the PostGIS queries against public.damage_reports and turns rows
into the JSON shape the viewer expects.
"""

import json
import os
import logging
from sqlalchemy import text
from sqlalchemy.orm import Session

try:
    from dotenv import load_dotenv
    load_dotenv()
except ImportError:
    pass

logger = logging.getLogger(__name__)

# Public bucket that holds the original and annotated images
R2_PUBLIC_URL = os.getenv('R2_PUBLIC_URL', '')

# Columns that are allowed in ORDER BY (user input never goes straight into SQL)
SORT_COLUMNS = ('captured_at', 'damage_type', 'confidence', 'size', 'id')
SORT_ORDERS = ('ASC', 'DESC')

IMAGE_TYPES = ('original', 'annotated')

SELECT_COLUMNS = """
    id,
    captured_at,
    damage_type,
    confidence,
    public.ST_X(geom) AS longitude,
    public.ST_Y(geom) AS latitude,
    altitude,
    speed_kmh,
    voice_memo,
    bbox,
    size
"""


def image_url(damage_id, image_type):
    """Public URL of one of the two images stored for a damage report."""
    return f"{R2_PUBLIC_URL}/images_{image_type}/{damage_id}_{image_type}.jpg"


def _iso(value):
    return value.isoformat() if value is not None and hasattr(value, 'isoformat') else value


def _number(value):
    return float(value) if value is not None else None


def format_damage(m, include_raw=False):
    """
    Convert one row mapping into the API record shape:
    flat fields plus nested location and images.
    """
    record = {
        "id": m["id"],
        "captured_at": _iso(m["captured_at"]),
        "damage_type": m["damage_type"],
        "confidence": _number(m["confidence"]),
        "location": {
            "latitude": _number(m["latitude"]),
            "longitude": _number(m["longitude"]),
            "altitude": _number(m["altitude"]),
        },
        "speed_kmh": _number(m["speed_kmh"]),
        "voice_memo": m["voice_memo"],
        "bbox": m["bbox"],
        "size": m["size"],
        "images": {
            "original": image_url(m["id"], "original"),
            "annotated": image_url(m["id"], "annotated"),
        },
    }
    if include_raw:
        record["raw_json"] = m.get("raw_json")
    return record


def build_filters(damage_type=None, start_date=None, end_date=None, min_confidence=None):
    """
    Build the WHERE clause and bind parameters for the list query.
    Returns (where_clause, params).
    """
    conditions = []
    params = {}

    if damage_type:
        conditions.append("damage_type = :damage_type")
        params["damage_type"] = damage_type
    if start_date:
        conditions.append("captured_at >= :start_date")
        params["start_date"] = start_date
    if end_date:
        conditions.append("captured_at <= :end_date")
        params["end_date"] = end_date
    if min_confidence is not None:
        conditions.append("confidence >= :min_confidence")
        params["min_confidence"] = float(min_confidence)

    where_clause = "WHERE " + " AND ".join(conditions) if conditions else ""
    return where_clause, params


def safe_sort(sort, order):
    """Fall back to captured_at DESC for anything outside the whitelist."""
    sort = sort if sort in SORT_COLUMNS else 'captured_at'
    order = (order or '').upper()
    order = order if order in SORT_ORDERS else 'DESC'
    return sort, order


def list_damages(session: Session, page=1, limit=50, sort='captured_at', order='DESC', **filters):
    """
    Retrieve one page of damage reports.

    Returns:
        (total, records) where total is the filtered row count and
        records is the list of formatted damage dictionaries.
    """
    where_clause, params = build_filters(**filters)
    sort, order = safe_sort(sort, order)

    total = session.execute(
        text(f"SELECT COUNT(*) AS total FROM public.damage_reports {where_clause}"),
        params,
    ).scalar_one()

    rows = session.execute(
        text(f"""
            SELECT {SELECT_COLUMNS}
            FROM public.damage_reports
            {where_clause}
            ORDER BY {sort} {order}
            LIMIT :limit OFFSET :offset
        """),
        {**params, "limit": limit, "offset": (page - 1) * limit},
    )

    records = [format_damage(row._mapping) for row in rows]
    return int(total), records


def find_nearby(session: Session, latitude, longitude, radius=1000.0, damage_type=None):
    """
    Search damage reports within `radius` metres of a point, nearest first.
    Rows without a location are never returned.
    """
    params = {"lng": longitude, "lat": latitude, "radius": radius}
    type_condition = ""
    if damage_type:
        type_condition = "AND damage_type = :damage_type"
        params["damage_type"] = damage_type

    rows = session.execute(
        text(f"""
            SELECT
                id,
                damage_type,
                confidence,
                captured_at,
                public.ST_X(geom) AS longitude,
                public.ST_Y(geom) AS latitude,
                ST_Distance(
                    geom::geography,
                    ST_SetSRID(ST_MakePoint(:lng, :lat), 4326)::geography
                ) AS distance_meters
            FROM public.damage_reports
            WHERE geom IS NOT NULL
              AND ST_DWithin(
                    geom::geography,
                    ST_SetSRID(ST_MakePoint(:lng, :lat), 4326)::geography,
                    :radius
              )
              {type_condition}
            ORDER BY distance_meters
        """),
        params,
    )

    results = []
    for row in rows:
        m = row._mapping
        results.append({
            "id": m["id"],
            "damage_type": m["damage_type"],
            "confidence": _number(m["confidence"]),
            "location": {
                "latitude": _number(m["latitude"]),
                "longitude": _number(m["longitude"]),
            },
            "distance_meters": f"{float(m['distance_meters']):.1f}",
            "captured_at": _iso(m["captured_at"]),
        })
    return results


def get_stats(session: Session):
    """Per-type and per-day statistics plus the overall count."""
    by_type = session.execute(text("""
        SELECT
            damage_type,
            COUNT(*) AS count,
            AVG(confidence) AS avg_confidence,
            MIN(captured_at) AS first_detected,
            MAX(captured_at) AS last_detected
        FROM public.damage_reports
        GROUP BY damage_type
        ORDER BY count DESC
    """))
    by_date = session.execute(text("""
        SELECT
            DATE(captured_at) AS date,
            COUNT(*) AS count,
            COUNT(DISTINCT damage_type) AS damage_types_count
        FROM public.damage_reports
        GROUP BY DATE(captured_at)
        ORDER BY date DESC
        LIMIT 30
    """))
    total = session.execute(text("SELECT COUNT(*) AS total FROM public.damage_reports")).scalar_one()

    return {
        "total": int(total),
        "by_type": [
            {
                "damage_type": r._mapping["damage_type"],
                "count": int(r._mapping["count"]),
                "avg_confidence": _number(r._mapping["avg_confidence"]),
                "first_detected": _iso(r._mapping["first_detected"]),
                "last_detected": _iso(r._mapping["last_detected"]),
            }
            for r in by_type
        ],
        "by_date": [
            {
                "date": _iso(r._mapping["date"]),
                "count": int(r._mapping["count"]),
                "damage_types_count": int(r._mapping["damage_types_count"]),
            }
            for r in by_date
        ],
    }


def get_damage(session: Session, damage_id):
    """One damage report (with raw_json), or None if the id is unknown."""
    row = session.execute(
        text(f"""
            SELECT {SELECT_COLUMNS}, raw_json
            FROM public.damage_reports
            WHERE id = :id
        """),
        {"id": damage_id},
    ).first()

    if row is None:
        return None
    return format_damage(row._mapping, include_raw=True)


def insert_damage(session: Session, payload):
    """
    Insert a new damage report and return its id.
    The caller is responsible for validating id/longitude/latitude first.
    """
    bbox = payload.get("bbox")
    raw_json = payload.get("raw_json")

    result = session.execute(
        text("""
            INSERT INTO public.damage_reports (
                id, captured_at, damage_type, confidence,
                geom, altitude, speed_kmh,
                voice_memo, bbox, raw_json
            ) VALUES (
                :id, COALESCE(:captured_at, NOW()), :damage_type, :confidence,
                ST_SetSRID(ST_MakePoint(:longitude, :latitude), 4326), :altitude, :speed_kmh,
                :voice_memo, CAST(:bbox AS jsonb), CAST(:raw_json AS jsonb)
            )
            RETURNING id
        """),
        {
            "id": payload["id"],
            "captured_at": payload.get("captured_at"),
            "damage_type": payload.get("damage_type"),
            "confidence": payload.get("confidence"),
            "longitude": float(payload["longitude"]),
            "latitude": float(payload["latitude"]),
            "altitude": payload.get("altitude"),
            "speed_kmh": payload.get("speed_kmh"),
            "voice_memo": payload.get("voice_memo"),
            "bbox": json.dumps(bbox) if bbox is not None else None,
            "raw_json": json.dumps(raw_json) if raw_json is not None else None,
        },
    )
    new_id = result.scalar_one()
    session.commit()
    logger.info(f"Inserted damage report {new_id}")
    return new_id
