"""
Keep every property's calendar closed for days that have already passed
Usage: python scripts/block_past_dates.py

Meant to run daily (cron). Safe to re-run: properties whose past-dates
window already reaches yesterday are left alone.
"""

import sys
import os

# Add project root to Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from app import create_app
from app.errors import ApiError
from app.models.property import Property
from app.services.availability_service import AvailabilityService


def block_past_dates(app=None):
    """Returns the number of properties whose past-dates window changed"""
    app = app or create_app()
    updated = 0

    with app.app_context():
        property_ids = [p.id for p in Property.query.with_entities(Property.id).all()]
        for property_id in property_ids:
            try:
                block, changed = AvailabilityService.block_past_dates(property_id)
            except ApiError as e:
                app.logger.error(f'Could not block past dates for property {property_id}: {e.message}')
                continue
            if changed:
                updated += 1
                print(f"✓ Property {property_id}: blocked {block.start_date} to {block.end_date}")

        print(f"✅ Past dates blocked for {updated} of {len(property_ids)} properties")
    return updated


if __name__ == '__main__':
    block_past_dates()
