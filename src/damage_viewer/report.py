"""
report.py
Data for the damage report page: the handed over damage turned into the
fields of the report form, with a placeholder when the photo is missing
or can't be loaded. Rendering the page / PDF is up to the front-end.
"""

import logging
import re
from datetime import date

import requests

from . import config
from .handoff import require_selection
from .labels import gps_label, size_label, type_label
from .source import original_image_url

logger = logging.getLogger(__name__)

PLACEHOLDER_IMAGE = 'assets/images/placeholder.png'


def resolve_image(url, timeout=None):
    """
    Returns url if it can be loaded, otherwise the placeholder image.
    Local asset paths (not http) are used as they are.
    """
    if not url:
        logger.warning("No image URL provided, using placeholder")
        return PLACEHOLDER_IMAGE
    if not url.startswith(('http://', 'https://')):
        return url

    try:
        response = requests.head(url, allow_redirects=True,
                                 timeout=timeout if timeout is not None else config.REQUEST_TIMEOUT)
        response.raise_for_status()
        return url
    except requests.exceptions.RequestException as e:
        logger.warning(f"Failed to load image {url}, using placeholder. \nError: {e}")
        return PLACEHOLDER_IMAGE


def report_filename(record):
    """road_damage_report_<inspection time with ':' and spaces replaced>.pdf"""
    safe_ts = re.sub(r'[:\s]', '_', record.inspection_time or '')
    return f"road_damage_report_{safe_ts}.pdf"


def build_report(record, check_image=True):
    """All the values the report form shows, as plain strings."""
    image = resolve_image(record.image) if check_image else (record.image or PLACEHOLDER_IMAGE)
    return {
        'id': record.id,
        'type': type_label(record.type),
        'size': size_label(record.size),
        'date': record.inspection_time or '',
        'gps': gps_label(record),
        'patrol_team': record.patrol_team or '',
        'vehicle': record.vehicle or '',
        'weather': record.weather or '',
        'inspection_section': record.inspection_section or '',
        'temporary_repair': record.temporary_repair or '',
        'voice_text': record.voice_text or '',
        'image': image,
        'original_image': original_image_url(record.image) if record.image else '',
        'report_date': date.today().isoformat(),
        'filename': report_filename(record),
    }


def open_report(storage, check_image=True):
    """
    Report page start. Raises MissingSelectionError (with redirect_to)
    when no damage was handed over.
    """
    record = require_selection(storage)
    return build_report(record, check_image=check_image)
