"""Mapbox geocoding client used for delivery radius checks."""
import logging
import math
from typing import Dict, Any, Optional
from urllib.parse import quote

import requests
from flask import current_app

from storefront.exceptions import ConfigurationError, GatewayError

logger = logging.getLogger(__name__)

EARTH_RADIUS_MILES = 3958.8


def haversine_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two coordinates, in miles."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_MILES * c


class MapboxClient:
    """Cliente para la API de geocoding de Mapbox."""

    def __init__(self, access_token: Optional[str] = None, base_url: Optional[str] = None):
        """
        Initialize Mapbox client.

        Args:
            access_token: Mapbox token. If None, reads MAPBOX_TOKEN from app config
            base_url: API root. If None, reads MAPBOX_BASE_URL from app config
        """
        self.access_token = access_token or current_app.config.get('MAPBOX_TOKEN')
        if not self.access_token:
            raise ConfigurationError("Geocoding is not configured.", code='MAPBOX_TOKEN_MISSING')
        self.base_url = (base_url or current_app.config.get('MAPBOX_BASE_URL', 'https://api.mapbox.com')).rstrip('/')

    def geocode(self, address: str) -> Optional[Dict[str, Any]]:
        """
        Resolve an address to coordinates.

        Returns:
            Dict with lat, lng and place_name, or None when nothing matched

        Raises:
            GatewayError: If Mapbox is unreachable or returns an error status
        """
        url = f"{self.base_url}/geocoding/v5/mapbox.places/{quote(address, safe='')}.json"
        params = {'access_token': self.access_token, 'limit': 1}

        try:
            response = requests.get(url, params=params, timeout=10)
        except requests.RequestException as e:
            logger.error(f"[GEO] Mapbox request failed: {e}")
            raise GatewayError("Could not verify the delivery address right now.", code='GEOCODING_FAILED')

        if not response.ok:
            logger.error(f"[GEO] Mapbox geocoding failed: {response.status_code} {response.text[:200]}")
            raise GatewayError("Could not verify the delivery address right now.", code='GEOCODING_FAILED')

        try:
            data = response.json()
        except ValueError:
            raise GatewayError("Could not verify the delivery address right now.", code='GEOCODING_FAILED')

        features = data.get('features') or []
        if not features:
            return None
        feature = features[0]
        center = feature.get('center')
        if not isinstance(center, list) or len(center) < 2:
            return None

        return {
            'lng': float(center[0]),
            'lat': float(center[1]),
            'place_name': feature.get('place_name') or '',
        }
