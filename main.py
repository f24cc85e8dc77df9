#!/usr/bin/env python3
"""
Development entry point for the Midlo API
"""

import os

from server.app import app


if __name__ == '__main__':
    if not os.getenv('GOOGLE_MAPS_API_KEY'):
        print("\n" + "="*50)
        print("SETUP REQUIRED:")
        print("="*50)
        print("1. Get a Google Maps API key from: https://console.cloud.google.com/")
        print("2. Enable the Geocoding API and the Places API")
        print("3. Set GOOGLE_MAPS_API_KEY in your .env file")
        print("   (or MIDLO_ALLOW_MOCK_GOOGLE=true for offline mock data)")
        print("="*50 + "\n")
    app.run(debug=True, host='0.0.0.0', port=int(os.getenv('PORT', '5001')))
