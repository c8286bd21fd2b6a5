from datetime import datetime
import uuid
from app import db
from sqlalchemy import CheckConstraint
from sqlalchemy.types import JSON
from config import Config


def _new_cafe_id():
    return uuid.uuid4().hex


class User(db.Model):
    __tablename__ = 'users'
    __table_args__ = (
        CheckConstraint('total_points >= 0', name='ck_users_total_points_non_negative'),
    )

    id = db.Column(db.Integer, primary_key=True)
    wallet_address = db.Column(db.String(255), unique=True, nullable=False, index=True)
    total_points = db.Column(db.Integer, nullable=False, default=0)
    rank = db.Column(db.String(50), nullable=False, default=Config.DEFAULT_RANK)  # Display label only
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    reviews = db.relationship('Review', back_populates='user', lazy='dynamic')

    def __repr__(self):
        return f'<User {self.id}: {self.wallet_address}>'

    def to_dict(self):
        """Convert user to dictionary for API responses"""
        return {
            'id': self.id,
            'walletAddress': self.wallet_address,
            'totalPoints': self.total_points or 0,
            'rank': self.rank,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }


class Cafe(db.Model):
    __tablename__ = 'cafes'
    __table_args__ = (
        db.Index('ix_cafes_name', 'name'),
        CheckConstraint('review_count >= 0', name='ck_cafes_review_count_non_negative'),
    )

    id = db.Column(db.String(64), primary_key=True, default=_new_cafe_id)
    name = db.Column(db.String(255), nullable=False)
    address = db.Column(db.Text)
    description = db.Column(db.Text)
    latitude = db.Column(db.Float)
    longitude = db.Column(db.Float)
    rating = db.Column(db.Float)  # Aggregate 5-star display rating
    image_url = db.Column(db.Text)
    google_maps_uri = db.Column(db.Text)
    is_open = db.Column(db.Boolean, default=True)
    source = db.Column(db.String(20), default='manual')  # 'manual', 'ai'

    # Running per-amenity averages (0-10, one decimal) and the number of reviews behind them
    review_count = db.Column(db.Integer, nullable=False, default=0)
    amenities = db.Column(JSON, nullable=False, default=dict)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    reviews = db.relationship('Review', back_populates='cafe', lazy='dynamic')

    def __repr__(self):
        return f'<Cafe {self.id}: {self.name}>'

    def to_dict(self, recent_reviews=None):
        """Convert cafe to dictionary for API responses"""
        data = {
            'id': self.id,
            'name': self.name,
            'address': self.address,
            'description': self.description,
            'coordinates': [self.latitude, self.longitude] if self.latitude is not None and self.longitude is not None else None,
            'rating': self.rating,
            'imageUrl': self.image_url,
            'googleMapsUri': self.google_maps_uri,
            'isOpen': bool(self.is_open),
            'source': self.source,
            'reviewCount': self.review_count or 0,
            'amenities': dict(self.amenities or {}),
        }
        if recent_reviews is not None:
            data['reviews'] = [review.to_dict(include_user=True) for review in recent_reviews]
        return data


class Review(db.Model):
    __tablename__ = 'reviews'
    __table_args__ = (
        db.Index('ix_reviews_cafe_created', 'cafe_id', 'created_at'),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    cafe_id = db.Column(db.String(64), db.ForeignKey('cafes.id'), nullable=False)
    ratings = db.Column(JSON, nullable=False, default=dict)
    text = db.Column(db.Text, nullable=False, default='')
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    user = db.relationship('User', back_populates='reviews')
    cafe = db.relationship('Cafe', back_populates='reviews')

    def __repr__(self):
        return f'<Review {self.id}: user={self.user_id} cafe={self.cafe_id}>'

    def to_dict(self, include_user=False):
        data = {
            'id': self.id,
            'cafeId': self.cafe_id,
            'ratings': dict(self.ratings or {}),
            'text': self.text or '',
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }
        if include_user and self.user is not None:
            # Only public fields of the author
            data['user'] = {
                'walletAddress': self.user.wallet_address,
                'rank': self.user.rank,
            }
        return data
