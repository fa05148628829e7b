"""
config.py
Settings for the damage viewer, read from the environment (.env supported).
"""

import os

try:
    from dotenv import load_dotenv
    load_dotenv()
except ImportError:
    pass

# Where the damage API lives (see src/damage_api/app.py)
API_BASE_URL = os.getenv('API_BASE_URL', 'http://localhost:5001/api').rstrip('/')

# Local storage for overrides, filters and the selected damage
STORAGE_URL = os.getenv('VIEWER_STORAGE_URL', 'sqlite:///viewer_storage.db')

# Seconds before a request to the API is given up
REQUEST_TIMEOUT = float(os.getenv('VIEWER_REQUEST_TIMEOUT', '10'))

# Everything is fetched in one page (no pagination in the viewer)
FETCH_LIMIT = int(os.getenv('VIEWER_FETCH_LIMIT', '10000'))
