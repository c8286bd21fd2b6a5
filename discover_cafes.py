#!/usr/bin/env python3
"""
Run Claude cafe discovery once and merge new cafes into the database
"""

import sys
import logging

# Add the current directory to the path so we can import our modules
sys.path.append('.')

from app import create_app
from services.anthropic_service import AnthropicService
from services.cafe_service import CafeService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

def discover(area=None, dry_run=False):
    """Fetch proposals for an area; merge them unless dry_run is set"""
    app = create_app()

    with app.app_context():
        cafes = AnthropicService().discover_cafes(area)
        logger.info(f"Claude proposed {len(cafes)} cafes")

        for cafe in cafes:
            logger.info(f"  {cafe['name']}: {cafe.get('amenities') or {}}")

        if dry_run:
            return 0

        added = CafeService.merge_discovered(cafes)
        logger.info(f"Merged {added} new cafes")
        return added

if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Discover cafes with Claude")
    parser.add_argument("--area", help="Neighbourhood or city to search (defaults to DISCOVERY_AREA)")
    parser.add_argument("--dry-run", action="store_true", help="Only print proposals, do not write")

    args = parser.parse_args()

    result = discover(area=args.area, dry_run=args.dry_run)
    print(f"Added {result} cafes")
