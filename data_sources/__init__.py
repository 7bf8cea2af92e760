"""
Data Sources Package
Upstream API clients (Overpass, Nominatim, review store) and shared infrastructure
"""

from . import utils
from . import telemetry
from . import retry_config
from . import error_handling

__all__ = ['utils', 'telemetry', 'retry_config', 'error_handling']
