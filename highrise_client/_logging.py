# =============================================================================
# Highrise Gateway Client -- Logging
# =============================================================================

import logging

logger = logging.getLogger("highrise_client")
logger.addHandler(logging.NullHandler())
