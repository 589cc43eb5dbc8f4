from pathlib import Path
import os

# Server configuration.
# Paths are resolved against the project root, not the working directory.

PROJECT_ROOT = Path(__file__).resolve().parents[1]

HOST = "0.0.0.0"
PORT = int(os.environ.get("PORT", 8990))

# TLS certificate and key; the server falls back to plain HTTP without them
CERT_DIR = PROJECT_ROOT / ".cert"
CERT_PATH = CERT_DIR / "cert.pem"
KEY_PATH = CERT_DIR / "key.pem"

# Screenshot cache: PNG files plus the JSON index mapping keys to them
CACHE_DIR = Path(os.environ.get("CACHE_DIR", PROJECT_ROOT / ".tmp"))
CACHE_INDEX_PATH = CACHE_DIR / "cache.json"

STATIC_DIR = PROJECT_ROOT / "web" / "static"

# Static assets served from the site root: URL path -> (file name, mime type)
STATIC_ASSETS = {
    "style.css": ("style.css", "text/css"),
    "AurebeshAfCanon-K7Ope.otf": ("AurebeshAFCanon-K7Ope.otf", "font/otf"),
    "Wingdings.ttf": ("Wingdings.ttf", "font/ttf"),
    "Wingdings.woff": ("Wingdings.woff", "font/woff"),
}

# Seconds a screenshot request waits on the browser; None waits indefinitely
CAPTURE_TIMEOUT = 60

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, HEAD, OPTIONS",
}

CSP_DIRECTIVES = {
    "default-src": ["'self'", "https:", "'unsafe-inline'"],
}
