#!/usr/bin/env python3
"""
Main entry point for the FairMeet API
"""

from fairmeet.app import configure_logging, create_app
from fairmeet.config import Settings


def main():
    settings = Settings.from_env()
    configure_logging(settings)
    app = create_app(settings)

    if not settings.maps_configured:
        print("\n" + "="*50)
        print("SETUP REQUIRED:")
        print("="*50)
        print("1. Get a Google Maps API key from: https://console.cloud.google.com/")
        print("2. Enable the following APIs:")
        print("   - Geocoding API")
        print("   - Directions API")
        print("   - Places API")
        print("3. Set GOOGLE_MAPS_API_KEY in your .env file")
        print("4. Restart the app")
        print("="*50)
        print("API will start but most features will be disabled without a valid key\n")

    app.run(debug=True, host=settings.host, port=settings.port)


if __name__ == '__main__':
    main()
