"""
Web Interface for the World Clock Embed
"""

from datetime import datetime, timezone
from functools import partial
from typing import Callable, Optional
import logging
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from flask import Flask, Response, request, send_from_directory
from core.cache_key import query_from_multidict
from core.fragment_builder import FragmentBuilder
from core.screenshot_service import ScreenshotService
from visual.generate_screenshots import CaptureError
from web import config

logger = logging.getLogger(__name__)

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

def build_csp_header(directives) -> str:
    """Serialize CSP directives into a header value."""
    return '; '.join(f"{name} {' '.join(sources)}" for name, sources in directives.items())

def create_app(service: Optional[ScreenshotService] = None,
               builder: Optional[FragmentBuilder] = None,
               clock: Callable[[], datetime] = _utcnow) -> Flask:
    """
    Build the Flask application.

    Args:
        service: Screenshot service backing /screenshot.png; the route
            answers 503 without one
        builder: Fragment builder for /embed, shared with the service when
            not given
        clock: Source of the current server time
    """
    app = Flask(__name__, static_folder=None)
    builder = builder or (service.builder if service else FragmentBuilder())
    csp_header = build_csp_header(config.CSP_DIRECTIVES)

    @app.before_request
    def log_request():
        logger.info(f"[{clock():%Y-%m-%d %H:%M}] {request.method} {request.path} {query_from_multidict(request.args)}")

    @app.after_request
    def add_security_headers(response):
        for name, value in config.CORS_HEADERS.items():
            response.headers.setdefault(name, value)
        response.headers['Content-Security-Policy'] = csp_header
        return response

    @app.errorhandler(CaptureError)
    def handle_capture_error(error):
        logger.error(f"Screenshot capture failed for {request.full_path}: {error}", exc_info=error)
        return Response('Screenshot capture failed', status=500, mimetype='text/plain')

    @app.route('/embed')
    def embed():
        """Render the comparison tables as an embeddable page."""
        query = query_from_multidict(request.args)
        html = builder.build_page(query, clock())
        response = Response(html, mimetype='text/html')
        response.headers['Cache-Control'] = 'nocache'
        return response

    @app.route('/screenshot.png')
    def screenshot():
        """Serve the cached PNG of the normal comparison table."""
        if service is None:
            return Response('Screenshots are unavailable', status=503, mimetype='text/plain')
        query = query_from_multidict(request.args)
        image = service.get_screenshot(query)
        return Response(image, mimetype='image/png')

    def serve_asset(filename, mimetype):
        return send_from_directory(config.STATIC_DIR, filename, mimetype=mimetype)

    for url_name, (filename, mimetype) in config.STATIC_ASSETS.items():
        app.add_url_rule(
            f'/{url_name}',
            endpoint=f'asset:{url_name}',
            view_func=partial(serve_asset, filename, mimetype),
        )

    return app

def base_url(host: str = 'localhost', port: int = config.PORT, tls: bool = True) -> str:
    """Absolute root URL the browser uses to resolve page assets."""
    scheme = 'https' if tls else 'http'
    return f'{scheme}://{host}:{port}/'

def ssl_context():
    """Certificate and key pair for the server, or None to serve plain HTTP."""
    if config.CERT_PATH.exists() and config.KEY_PATH.exists():
        return (str(config.CERT_PATH), str(config.KEY_PATH))
    logger.warning(f"No TLS certificate in {config.CERT_DIR}, serving plain HTTP")
    return None
