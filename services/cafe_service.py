import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from app import db
from config import Config
from models import Cafe, Review
from services.exceptions import InvalidRequest, StorageFailure
from services.scoring_service import round_score

logger = logging.getLogger(__name__)


def _name_key(name: Optional[str]) -> str:
    return (name or '').strip().casefold()


def normalize_amenity_estimates(amenities: Any) -> Dict[str, float]:
    """Keep known amenity keys with numeric values, clamped to 0-10 and rounded to one decimal."""
    if not isinstance(amenities, dict):
        return {}

    cleaned = {}
    for key in Config.AMENITY_KEYS:
        value = amenities.get(key)
        if value is None or isinstance(value, bool):
            continue
        try:
            value = float(value)
        except (TypeError, ValueError):
            continue
        value = min(Config.RATING_MAX, max(Config.RATING_MIN, value))
        cleaned[key] = round_score(value)
    return cleaned


class CafeService:
    @staticmethod
    def list_cafes(review_limit: int = Config.RECENT_REVIEWS_LIMIT) -> List[Dict[str, Any]]:
        """All cafes with their most recent reviews, newest first."""
        try:
            cafes = Cafe.query.order_by(Cafe.created_at.asc(), Cafe.name.asc()).all()
            result = []
            for cafe in cafes:
                recent = (
                    cafe.reviews
                    .order_by(Review.created_at.desc(), Review.id.desc())
                    .limit(review_limit)
                    .all()
                )
                result.append(cafe.to_dict(recent_reviews=recent))
            return result
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception("Failed to list cafes")
            raise StorageFailure(str(e)) from e

    @staticmethod
    def create_cafe(data: Dict[str, Any]) -> Cafe:
        """Create a cafe from validated fields. New cafes start without reviews."""
        name = (data.get('name') or '').strip()
        if not name:
            raise InvalidRequest('Cafe name required')

        cafe = Cafe(
            name=name,
            address=data.get('address'),
            description=data.get('description'),
            latitude=data.get('latitude'),
            longitude=data.get('longitude'),
            rating=data.get('rating'),
            image_url=data.get('image_url'),
            google_maps_uri=data.get('google_maps_uri'),
            is_open=data.get('is_open', True),
            source=data.get('source') or 'manual',
            review_count=0,
            amenities=normalize_amenity_estimates(data.get('amenities')),
        )

        try:
            db.session.add(cafe)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception(f"Failed to create cafe '{name}'")
            raise StorageFailure(str(e)) from e

        logger.info(f"Created cafe {cafe.id}: {cafe.name}")
        from utils.cache import invalidate_cafe_list
        invalidate_cafe_list()
        return cafe

    @staticmethod
    def merge_discovered(entries: Iterable[Dict[str, Any]]) -> int:
        """Insert discovered cafes whose names are not already known.

        Existing cafes are never touched. Returns the number of cafes added.
        """
        try:
            known = {_name_key(name) for (name,) in db.session.query(Cafe.name).all()}
            added = 0
            for entry in entries:
                key = _name_key(entry.get('name'))
                if not key or key in known:
                    continue
                known.add(key)
                db.session.add(Cafe(
                    name=entry['name'].strip(),
                    address=entry.get('address'),
                    description=entry.get('description'),
                    latitude=entry.get('latitude'),
                    longitude=entry.get('longitude'),
                    rating=entry.get('rating'),
                    image_url=entry.get('image_url'),
                    google_maps_uri=entry.get('google_maps_uri'),
                    is_open=entry.get('is_open', True),
                    source='ai',
                    review_count=0,
                    amenities=normalize_amenity_estimates(entry.get('amenities')),
                ))
                added += 1

            if added:
                db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception("Failed to merge discovered cafes")
            raise StorageFailure(str(e)) from e

        if added:
            from utils.cache import invalidate_cafe_list
            invalidate_cafe_list()
        return added
