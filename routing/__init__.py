#Marks routing as a package.
#Re-exports the public API (OSRMClient, EtaService) so other modules
#import from routing without knowing internal file names.
#No business logic.

from .osrm_client import OSRMClient, OSRMError
from .eta_service import EtaService

__all__ = [
    "OSRMClient",
    "OSRMError",
    "EtaService",
]
