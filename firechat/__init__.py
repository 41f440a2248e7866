"""
Firechat - realtime chat client
Built with Python Flet on top of Firebase REST services
"""

import logging

__version__ = "1.0.0"


def configure_logging(debug: bool = False):
    """Set up root logging for the client"""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
