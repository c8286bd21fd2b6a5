import logging
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from flask import current_app
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from app import db
from config import Config
from models import Cafe, Review, User
from services.exceptions import InvalidRequest, StorageFailure, UserNotFound, VenueNotFound
from services.scoring_service import ScoringRules, VenueSnapshot, compute_review_outcome, load_scoring_rules
from services.user_service import normalize_wallet_address

logger = logging.getLogger(__name__)


class ReviewConflict(Exception):
    """Another review updated the cafe between snapshot read and write"""


class ReviewService:
    """Runs review submissions as a single database transaction.

    A submission inserts the review, increments the author's points and
    rewrites the cafe's averages and counter. The cafe write is conditional on
    the review_count read at the start of the attempt, so two concurrent
    reviews can never both build on the same snapshot; the loser rolls back
    and retries with a fresh snapshot.
    """

    def __init__(self, rules: Optional[ScoringRules] = None, max_attempts: Optional[int] = None):
        self.rules = rules or load_scoring_rules()
        if max_attempts is None:
            max_attempts = current_app.config.get('REVIEW_MAX_ATTEMPTS', Config.REVIEW_MAX_ATTEMPTS)
        self.max_attempts = max(1, int(max_attempts))

    def submit_review(self, cafe_id: str, wallet_address: str,
                      ratings: Mapping[str, float], text: Optional[str] = None) -> Dict[str, Any]:
        """Submit a review and return the points it earned.

        Raises InvalidRequest, UserNotFound, VenueNotFound or StorageFailure.
        Nothing is written unless the whole submission commits.
        """
        wallet_address = normalize_wallet_address(wallet_address)
        if not cafe_id or not wallet_address or not ratings:
            raise InvalidRequest()

        try:
            user = User.query.filter_by(wallet_address=wallet_address).first()
            if user is None:
                raise UserNotFound()
            if db.session.get(Cafe, cafe_id) is None:
                raise VenueNotFound()
            user_id = user.id
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception(f"Review lookup failed for cafe {cafe_id}")
            raise StorageFailure(str(e)) from e

        for attempt in range(1, self.max_attempts + 1):
            try:
                result = self._attempt(cafe_id, user_id, dict(ratings), text)
            except ReviewConflict:
                db.session.rollback()
                logger.warning(f"Concurrent review on cafe {cafe_id}, retrying (attempt {attempt}/{self.max_attempts})")
                continue
            except SQLAlchemyError as e:
                db.session.rollback()
                logger.exception(f"Review transaction failed for cafe {cafe_id}")
                raise StorageFailure(str(e)) from e
            except Exception:
                db.session.rollback()
                raise

            logger.info(
                f"Review posted on cafe {cafe_id} by user {user_id}: "
                f"+{result['earnedPoints']} points (total {result['newTotal']})"
            )
            from utils.cache import invalidate_cafe_list
            invalidate_cafe_list()
            return result

        raise StorageFailure(f"Cafe {cafe_id} still contended after {self.max_attempts} attempts")

    def _load_snapshot(self, cafe_id: str) -> VenueSnapshot:
        row = db.session.execute(
            select(Cafe.review_count, Cafe.amenities)
            .where(Cafe.id == cafe_id)
            .with_for_update()
        ).one_or_none()
        if row is None:
            raise VenueNotFound()
        return VenueSnapshot(review_count=row.review_count or 0, amenities=dict(row.amenities or {}))

    def _attempt(self, cafe_id: str, user_id: int, ratings: Dict[str, float], text: Optional[str]) -> Dict[str, Any]:
        snapshot = self._load_snapshot(cafe_id)
        outcome = compute_review_outcome(snapshot, ratings, self.rules)

        db.session.add(Review(user_id=user_id, cafe_id=cafe_id, ratings=ratings, text=text or ''))

        # Increment in SQL so concurrent awards to the same user add up
        db.session.execute(
            update(User)
            .where(User.id == user_id)
            .values(total_points=User.total_points + outcome.earned_points)
            .execution_options(synchronize_session=False)
        )

        written = db.session.execute(
            update(Cafe)
            .where(Cafe.id == cafe_id, Cafe.review_count == snapshot.review_count)
            .values(
                review_count=outcome.review_count,
                amenities=outcome.amenities,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        if written.rowcount != 1:
            raise ReviewConflict()

        new_total = db.session.execute(
            select(User.total_points).where(User.id == user_id)
        ).scalar_one()

        db.session.commit()

        return {
            "success": True,
            "earnedPoints": outcome.earned_points,
            "newTotal": new_total,
            "message": f"Review posted! You earned {outcome.earned_points} points.",
        }


__all__ = ['ReviewService', 'ReviewConflict']
