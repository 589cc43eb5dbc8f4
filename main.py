#!/usr/bin/env python3
"""
World Clock Embed
Main entry point for the application.
"""

import logging

from core.fragment_builder import FragmentBuilder
from core.screenshot_cache import ScreenshotCache
from core.screenshot_service import ScreenshotService
from visual.generate_screenshots import ScreenshotGenerator
from web import config
from web.app import base_url, create_app, ssl_context

logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
logger = logging.getLogger(__name__)

def main():
    """Start the browser and serve the app until interrupted."""
    tls = ssl_context()
    cache = ScreenshotCache(config.CACHE_DIR, config.CACHE_INDEX_PATH)

    with ScreenshotGenerator() as generator:
        service = ScreenshotService(
            cache,
            generator,
            builder=FragmentBuilder(),
            asset_base=base_url(port=config.PORT, tls=tls is not None),
            capture_timeout=config.CAPTURE_TIMEOUT,
        )
        app = create_app(service)
        logger.info(f"began on port {config.PORT}")
        app.run(host=config.HOST, port=config.PORT, ssl_context=tls, threaded=True)

if __name__ == "__main__":
    main()
