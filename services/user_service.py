import logging
from typing import Any, Dict

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app import db
from config import Config
from models import Review, User
from services.exceptions import InvalidRequest, StorageFailure, UserNotFound

logger = logging.getLogger(__name__)


def normalize_wallet_address(wallet_address) -> str:
    """Wallet addresses are compared after trimming surrounding whitespace"""
    return (wallet_address or '').strip()


class UserService:
    @staticmethod
    def login(wallet_address: str) -> User:
        """Return the user for a wallet address, creating it on first login."""
        wallet_address = normalize_wallet_address(wallet_address)
        if not wallet_address:
            raise InvalidRequest('Wallet address required')

        try:
            user = User.query.filter_by(wallet_address=wallet_address).first()
            if user is not None:
                return user

            user = User(wallet_address=wallet_address, total_points=0, rank=Config.DEFAULT_RANK)
            db.session.add(user)
            try:
                db.session.commit()
                logger.info(f"Created user {user.id} for wallet {wallet_address}")
                return user
            except IntegrityError:
                # Lost a race with a concurrent first login for the same wallet
                db.session.rollback()
                user = User.query.filter_by(wallet_address=wallet_address).first()
                if user is None:
                    raise
                return user
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception(f"Login failed for wallet {wallet_address}")
            raise StorageFailure(str(e)) from e

    @staticmethod
    def get_profile(wallet_address: str) -> Dict[str, Any]:
        wallet_address = normalize_wallet_address(wallet_address)
        try:
            user = User.query.filter_by(wallet_address=wallet_address).first()
            if user is None:
                raise UserNotFound('User not found')
            review_count = db.session.execute(
                select(func.count(Review.id)).where(Review.user_id == user.id)
            ).scalar_one()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception(f"Profile lookup failed for wallet {wallet_address}")
            raise StorageFailure(str(e)) from e

        profile = user.to_dict()
        profile['reviewCount'] = review_count
        return profile
