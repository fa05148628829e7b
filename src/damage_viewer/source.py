"""
source.py
The damage source: loads the damage reports from the API and normalizes
them into DamageRecord objects. This is the only place that knows the
raw API field names.

If the API cannot be used for any reason (connection error, HTTP error,
bad JSON, unexpected shape, success=false) the failure is logged and a
fixed set of sample records is returned instead. load() never raises.

Run python -m src.damage_viewer.source to see what the viewer would load.
"""

import logging
from datetime import datetime
from jsonschema import validate, ValidationError
import requests

from . import config
from .api_client import ApiClient
from .records import DamageRecord, SIZES, UNKNOWN_TYPE

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# The list response must be an object with a success flag and a list of objects
RESPONSE_SCHEMA = {
    "type": "object",
    "required": ["success", "data"],
    "properties": {
        "success": {"type": "boolean"},
        "data": {
            "type": "array",
            "items": {"type": "object"}
        }
    }
}


class DamageSourceError(Exception):
    """The API answered, but not with usable damage data."""


def confidence_to_size(confidence):
    """
    Coarse size bucket from the detector confidence.
    Only used when the source gives no size of its own.
    """
    if confidence is None:
        return 'small'
    if confidence >= 0.8:
        return 'large'
    if confidence >= 0.5:
        return 'medium'
    return 'small'


def format_date_time(value):
    """
    ISO timestamp -> 'YYYY-MM-DD HH:MM'.
    Timestamps with an offset are shown in local time.
    """
    if not value:
        return ''
    text = str(value)
    try:
        moment = datetime.fromisoformat(text.replace('Z', '+00:00'))
    except ValueError:
        logger.warning(f"Could not parse timestamp {text!r}, keeping it as is.")
        return text
    if moment.tzinfo is not None:
        moment = moment.astimezone()
    return moment.strftime('%Y-%m-%d %H:%M')


def original_image_url(annotated_url):
    """The original photo sits next to the annotated one with a different folder/suffix."""
    return (annotated_url
            .replace('/images_annotated/', '/images_original/')
            .replace('_annotated.jpg', '_original.jpg'))


def _float_or_none(value):
    return float(value) if value is not None else None


def normalize_record(raw, image_url_for=None):
    """
    Convert one raw API entry into a DamageRecord.

    image_url_for(damage_id) builds an image URL when the entry has none.
    """
    location = raw.get('location') or {}
    confidence = _float_or_none(raw.get('confidence'))

    size = raw.get('size')
    if size not in SIZES:
        size = confidence_to_size(confidence)

    images = raw.get('images') or {}
    image = images.get('annotated') or ''
    if not image and image_url_for is not None:
        image = image_url_for(raw['id'])

    return DamageRecord(
        id=str(raw['id']),
        type=raw.get('damage_type') or UNKNOWN_TYPE,
        inspection_time=format_date_time(raw.get('captured_at')),
        lat=_float_or_none(location.get('latitude')),
        lng=_float_or_none(location.get('longitude')),
        altitude=_float_or_none(location.get('altitude')),
        size=size,
        confidence=confidence,
        voice_text=raw.get('voice_memo') or '',
        image=image,
        speed_kmh=_float_or_none(raw.get('speed_kmh')),
        bbox=raw.get('bbox'),
    )


def fallback_damages():
    """Sample records shown when the API is not available."""
    return [
        DamageRecord(
            id='fallback-1',
            type='Longitudinal Crack',
            vehicle='A号車',
            lat=35.5720,
            lng=139.3680,
            size='medium',
            voice='https://www2.cs.uic.edu/~i101/SoundFiles/StarWars60.wav',
            voice_text='今すぐ補修が必要。通学路で通行量が多い。',
            image='assets/images/hibiware1.jpg',
            inspection_time='2025-08-05 09:30',
            patrol_team='田中・佐藤',
            weather='晴れ',
            inspection_section='○○区間',
            temporary_repair='応急パッチ済',
        ),
        DamageRecord(
            id='fallback-2',
            type='Potholes',
            vehicle='B号車',
            lat=35.5970,
            lng=139.3470,
            size='large',
            voice_text='穴が深く危険。',
            image='assets/images/pottoho-ru1.jpg',
            inspection_time='2025-08-12 14:00',
            patrol_team='鈴木・高橋',
            weather='雨',
            inspection_section='△△区間',
            temporary_repair='注意喚起表示設置',
        ),
        DamageRecord(
            id='fallback-3',
            type='Transverse Crack',
            vehicle='C号車',
            lat=35.5610,
            lng=139.3930,
            size='small',
            voice_text='通行には影響なし。',
            image='assets/images/wadatibore1.jpg',
            inspection_time='2025-09-03 10:15',
            patrol_team='佐藤・小林',
            weather='曇り',
            inspection_section='□□区間',
            temporary_repair='特になし',
        ),
    ]


class DamageSource:
    def __init__(self, client=None, limit=None):
        self.client = client or ApiClient()
        self.limit = limit or config.FETCH_LIMIT

    def fetch(self):
        """
        Fetch and normalize everything from the API.
        Raises on any problem; load() is the safe wrapper.
        """
        response = self.client.get_damages({"limit": self.limit})
        validate(instance=response, schema=RESPONSE_SCHEMA)

        if not response["success"]:
            raise DamageSourceError(f"API returned error: {response.get('error')}")

        records = []
        seen = set()
        for raw in response["data"]:
            record = normalize_record(raw, self.client.get_image_url)
            # Ids must be unique for selection; the first entry wins
            if record.id in seen:
                logger.warning(f"Duplicate damage id {record.id} in API response, skipping it")
                continue
            seen.add(record.id)
            records.append(record)
        return records

    def load(self):
        """Damage records from the API, or the fallback set if that fails."""
        try:
            records = self.fetch()
            logger.info(f"Loaded {len(records)} damages from API")
            return records

        except requests.exceptions.RequestException as e:
            logger.error(f"Failed to load damages from API, using fallback data. \nError: {e}")

        except ValidationError as e:
            logger.error(f"Damage API response is not in the expected format, using fallback data. \nError: {e.message}")

        except DamageSourceError as e:
            logger.error(f"{e}. Using fallback data.")

        except Exception as e:
            # Malformed entries (missing id, non-numeric coordinates, ...)
            logger.error(f"Could not normalize damages from API, using fallback data. \nError: {e}")

        return fallback_damages()


# Load damages the same way the viewer does and print a short summary
if __name__ == "__main__":
    damages = DamageSource().load()
    with_location = [d for d in damages if d.has_location]
    print(f"Total damages: {len(damages)}, With location: {len(with_location)}, "
          f"Without location: {len(damages) - len(with_location)}")
