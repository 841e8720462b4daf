#Purpose: The OSRM "adapter/client".
#Sole responsibility: talk to OSRM via HTTP and return normalized outputs.
#Encapsulates OSRM-specific details:
#coordinate formatting (lon,lat)
#URL construction (/route)
#error handling
#parsing response JSON into our internal shape
#It should not contain dispatch rules or ETA fallbacks.


from dotenv import load_dotenv
import os
from typing import List, Tuple, Dict, Optional
import requests

# Read OSRM base URL from environment
# Example in .env:
# OSRM_BASE_URL=http://router.project-osrm.org
load_dotenv()
BASE_URL = os.getenv("OSRM_BASE_URL")

# Internal coordinate type: (lat, lon)
LatLon = Tuple[float, float]


class OSRMError(Exception):
    """Raised when OSRM answers with anything other than a usable route."""
    pass


class OSRMClient:
    """
    OSRM Adapter / Client

    Sole responsibility:
    - Talk to OSRM via HTTP
    - Convert internal (lat, lon) → OSRM (lon,lat)
    - Return normalized outputs
    """
    def __init__(self, base_url: Optional[str] = None, profile: str = "driving", timeout: int = 5):
        self.base_url = base_url or BASE_URL
        self.timeout = timeout #seconds to wait for OSRM before giving up
        self.profile = profile #mode of transportation (driving, walking, cycling)

        if not self.base_url:
            raise ValueError("OSRM base URL not set. Please set OSRM_BASE_URL in the .env file.")

    #----------------
    # Internal helpers
    #----------------
    def format_coordinates(self, coords: List[LatLon]) -> str:
        """Convert list of (lat, lon) to OSRM format 'lon,lat;lon,lat;...'"""
        return ';'.join([f"{lon},{lat}" for lat, lon in coords])

    #----------------
    # Public methods
    #----------------
    def compute_route(self, coordinates: List[LatLon]) -> Dict[str, float]:
        """
        Calls the OSRM /route endpoint with the given coordinates and
        returns a dict with distance and duration.

        Returns:
            {
                "distance": float, # in meters
                "duration": float, # in seconds
            }
        """
        if len(coordinates) < 2:
            raise ValueError("At least two coordinates are required to compute a route.")

        url = f"{self.base_url.rstrip('/')}/route/v1/{self.profile}/{self.format_coordinates(coordinates)}"

        response = requests.get(
            url,
            params={
                "overview": "false", # we don't need the geometry of the route
            },
            timeout=self.timeout,
        )

        data = response.json()

        #validating OSRM response
        if data.get("code") != "Ok" or not data.get("routes"):
            raise OSRMError(f"OSRM error: {data.get('message', data.get('code', 'Unknown error'))}")

        route = data["routes"][0] #OSRM may return alternatives; the first is the best

        #Normalize output to internal format
        return {
            "distance": route["distance"],
            "duration": route["duration"],
        }
