"""
Method-based gateway in front of the catalog replicas.

``/api`` requests are dispatched to a pool per HTTP verb, everything
else goes to the ``full`` pool that serves pages and static assets.
"""

from .proxy import create_gateway  # noqa: F401
from .rules import RuleTable, select_pool  # noqa: F401
