"""
api_client.py
Talks to the damage API (src/damage_api) over HTTP.
Every call logs what went wrong and re-raises, so callers decide
how to recover (the damage source falls back to sample data).
"""

import json
import logging
import requests

from . import config

logger = logging.getLogger(__name__)


class ApiClient:
    def __init__(self, base_url=None, timeout=None):
        self.base_url = (base_url or config.API_BASE_URL).rstrip('/')
        self.timeout = timeout if timeout is not None else config.REQUEST_TIMEOUT

    def _request(self, method, path, **kwargs):
        url = f"{self.base_url}{path}"
        try:
            response = requests.request(method, url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
            return response.json()

        except requests.exceptions.HTTPError as httpError:
            code = httpError.response.status_code if httpError.response is not None else None
            if code == 404:
                logger.error(f"Error 404: {url} was not found. \nError: {httpError}")
            elif code == 500:
                logger.error(f"Error 500: the damage API failed while serving {url}. \nError: {httpError}")
            else:
                logger.error(f"HTTP Error {code} from {url}. \nError: {httpError}")
            raise

        except json.JSONDecodeError as jsonError:
            # requests raises a JSONDecodeError subclass for bad bodies
            logger.error(f"The JSON data from {url} is not valid. \nError: {jsonError}")
            raise

        except requests.exceptions.RequestException as requestError:
            logger.error(f"Something went wrong with the connection to {url}. \nError: {requestError}")
            raise

    def get_damages(self, params=None):
        """List damage reports. params are passed as the query string (limit, damage_type, ...)."""
        return self._request("GET", "/damages", params=params or {})

    def get_damage_by_id(self, damage_id):
        return self._request("GET", f"/damages/{damage_id}")

    def get_nearby_damages(self, lat, lng, radius=1000, damage_type=None):
        params = {"lat": lat, "lng": lng, "radius": radius}
        if damage_type:
            params["damage_type"] = damage_type
        return self._request("GET", "/damages/nearby", params=params)

    def get_stats(self):
        return self._request("GET", "/damages/stats")

    def create_damage(self, data):
        return self._request("POST", "/damages", json=data)

    def get_image_url(self, damage_id, image_type='annotated'):
        """Image URL through the API redirect (used when a record has no image URL)."""
        return f"{self.base_url}/images/{damage_id}/{image_type}"
