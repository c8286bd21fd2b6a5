from marshmallow import EXCLUDE, Schema, ValidationError, fields, post_load, validate
from typing import Dict, Any, List
import logging

from config import Config
from services.exceptions import InvalidRequest

logger = logging.getLogger(__name__)

REQUIRED_REVIEW_FIELDS = ('cafeId', 'walletAddress', 'ratings')


class ReviewSubmissionSchema(Schema):
    """Schema for validating review submissions"""
    class Meta:
        unknown = EXCLUDE

    cafe_id = fields.Str(required=True, data_key='cafeId', validate=validate.Length(min=1, max=64))
    wallet_address = fields.Str(required=True, data_key='walletAddress', validate=validate.Length(min=1, max=255))
    ratings = fields.Dict(
        required=True,
        keys=fields.Str(validate=validate.OneOf(Config.AMENITY_KEYS)),
        values=fields.Float(allow_nan=False, validate=validate.Range(min=Config.RATING_MIN, max=Config.RATING_MAX)),
        validate=validate.Length(min=1),
    )
    text = fields.Str(allow_none=True, load_default='', validate=validate.Length(max=2000))


class LoginSchema(Schema):
    """Schema for validating wallet login"""
    class Meta:
        unknown = EXCLUDE

    wallet_address = fields.Str(required=True, data_key='walletAddress', validate=validate.Length(min=1, max=255))


class CafeCreateSchema(Schema):
    """Schema for validating manually added cafes"""
    class Meta:
        unknown = EXCLUDE

    name = fields.Str(required=True, validate=validate.Length(min=1, max=255))
    address = fields.Str(allow_none=True, validate=validate.Length(max=500))
    description = fields.Str(allow_none=True, validate=validate.Length(max=2000))
    coordinates = fields.List(fields.Float(allow_nan=False), allow_none=True, validate=validate.Length(equal=2))
    rating = fields.Float(allow_none=True, allow_nan=False, validate=validate.Range(min=0, max=5))
    image_url = fields.Str(allow_none=True, data_key='imageUrl')
    google_maps_uri = fields.Str(allow_none=True, data_key='googleMapsUri')
    is_open = fields.Bool(load_default=True, data_key='isOpen')
    amenities = fields.Dict(
        keys=fields.Str(validate=validate.OneOf(Config.AMENITY_KEYS)),
        values=fields.Float(allow_nan=False, validate=validate.Range(min=Config.RATING_MIN, max=Config.RATING_MAX)),
        load_default=dict,
    )

    @post_load
    def split_coordinates(self, data, **kwargs):
        coordinates = data.pop('coordinates', None)
        if coordinates:
            lat, lon = coordinates
            if not (-90 <= lat <= 90) or not (-180 <= lon <= 180):
                raise ValidationError('Coordinates out of range', field_name='coordinates')
            data['latitude'], data['longitude'] = lat, lon
        return data


class DiscoveredCafeSchema(CafeCreateSchema):
    """Lenient schema for AI-proposed cafes; amenity estimates are normalized later"""
    rating = fields.Float(allow_none=True, allow_nan=False)
    amenities = fields.Raw(load_default=dict)


class DiscoveryRequestSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    area = fields.Str(load_default=None, allow_none=True, validate=validate.Length(min=2, max=200))


def validate_review_submission(data: Dict[str, Any]) -> Dict[str, Any]:
    """Validate review submission data"""
    if not isinstance(data, dict) or any(not data.get(field) for field in REQUIRED_REVIEW_FIELDS):
        raise InvalidRequest()
    schema = ReviewSubmissionSchema()
    try:
        result = schema.load(data)
        return dict(result)
    except ValidationError as err:
        raise InvalidRequest(f"Invalid review: {err.messages}")


def validate_login(data: Dict[str, Any]) -> Dict[str, Any]:
    """Validate login data"""
    schema = LoginSchema()
    try:
        result = schema.load(data if isinstance(data, dict) else {})
        return dict(result)
    except ValidationError:
        raise InvalidRequest('Wallet address required')


def validate_cafe(data: Dict[str, Any]) -> Dict[str, Any]:
    """Validate a manually added cafe"""
    schema = CafeCreateSchema()
    try:
        result = schema.load(data if isinstance(data, dict) else {})
        return dict(result)
    except ValidationError as err:
        raise InvalidRequest(f"Invalid cafe data: {err.messages}")


def validate_discovery_request(data: Dict[str, Any]) -> Dict[str, Any]:
    schema = DiscoveryRequestSchema()
    try:
        result = schema.load(data if isinstance(data, dict) else {})
        return dict(result)
    except ValidationError as err:
        raise InvalidRequest(f"Invalid discovery request: {err.messages}")


def clean_discovered_cafes(entries: Any) -> List[Dict[str, Any]]:
    """Validate AI-proposed cafes, skipping malformed entries"""
    if not isinstance(entries, list):
        return []

    schema = DiscoveredCafeSchema()
    cleaned = []
    for entry in entries:
        if not isinstance(entry, dict):
            logger.warning(f"Skipping non-object cafe entry: {entry!r}")
            continue
        try:
            cleaned.append(dict(schema.load(entry)))
        except ValidationError as err:
            logger.warning(f"Skipping invalid cafe entry {entry.get('name')!r}: {err.messages}")
    return cleaned
