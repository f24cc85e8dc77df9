#!/usr/bin/env python3
"""
Production runner for the Midlo API
- Serves the Flask API (server.app) behind an optional reverse proxy
- Loads .env for GOOGLE_MAPS_API_KEY and other settings

Usage:
  python3 run_prod.py

Environment:
  PORT=8000 (default)        # Port to bind
  HOST=0.0.0.0 (default)     # Host interface
  GOOGLE_MAPS_API_KEY=...    # Required unless MIDLO_ALLOW_MOCK_GOOGLE=true
  WSGI_THREADS=8             # waitress worker threads
  SSL_CERTFILE / SSL_KEYFILE # serve HTTPS directly
"""

import os
import ssl
from pathlib import Path

from dotenv import load_dotenv
from werkzeug.middleware.proxy_fix import ProxyFix

PROJECT_ROOT = Path(__file__).resolve().parent

# Load env from .env if present
load_dotenv(dotenv_path=PROJECT_ROOT / '.env')

from server.app import app as api_app  # noqa: E402

_FALSY = ('0', 'false', 'False', 'no', 'off')


def build_application(app=api_app):
    """Wrap the API in ProxyFix unless proxy headers are explicitly untrusted"""
    if os.getenv('TRUST_PROXY_HEADERS', '1') in _FALSY:
        return app
    # Trust a single proxy hop by default; tune via env
    return ProxyFix(
        app,
        x_for=int(os.getenv('PROXY_FIX_X_FOR', '1')),
        x_proto=int(os.getenv('PROXY_FIX_X_PROTO', '1')),
        x_host=int(os.getenv('PROXY_FIX_X_HOST', '1')),
        x_port=int(os.getenv('PROXY_FIX_X_PORT', '1')),
        x_prefix=int(os.getenv('PROXY_FIX_X_PREFIX', '1')),
    )


application = build_application()


def main():
    host = os.getenv('HOST', '0.0.0.0')
    try:
        port = int(os.getenv('PORT', '8000'))
    except ValueError:
        port = 8000

    if not os.getenv('GOOGLE_MAPS_API_KEY'):
        print("\n" + "="*60)
        print("Warning: GOOGLE_MAPS_API_KEY is not configured.")
        print("Google-backed endpoints will answer 503 unless mock mode is allowed.")
        print("="*60 + "\n")

    ssl_cert = os.getenv('SSL_CERTFILE') or os.getenv('SSL_CERT')
    ssl_key = os.getenv('SSL_KEYFILE') or os.getenv('SSL_KEY')

    if ssl_cert and ssl_key:
        print(f"\n🔐 Starting Midlo API (prod) on https://{host}:{port}")
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        context.load_cert_chain(certfile=ssl_cert, keyfile=ssl_key)

        from werkzeug.serving import run_simple
        run_simple(hostname=host, port=port, application=application, ssl_context=context, threaded=True)
    else:
        print(f"\n🚀 Starting Midlo API (prod) on http://{host}:{port}")
        from waitress import serve
        serve(application, host=host, port=port, threads=int(os.getenv('WSGI_THREADS', '8')))


if __name__ == '__main__':
    main()
