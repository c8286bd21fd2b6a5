"""
Tests for user login/profile and cafe listing/merging.
"""

import pytest
from app import create_app, db
from models import Cafe, Review, User
from services.cafe_service import CafeService, normalize_amenity_estimates
from services.exceptions import InvalidRequest, UserNotFound
from services.user_service import UserService
from tests import setup_test_environment


@pytest.fixture
def app():
    """Create test Flask application"""
    setup_test_environment()
    app = create_app(testing=True)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


class TestUserService:
    def test_login_creates_user(self, app):
        user = UserService.login('0xnew')

        assert user.id is not None
        assert user.total_points == 0
        assert user.rank == 'Novice Scout'

    def test_login_is_upsert(self, app):
        first = UserService.login('0xsame')
        first.total_points = 40
        db.session.commit()

        second = UserService.login('0xsame')

        assert second.id == first.id
        assert second.total_points == 40
        assert User.query.count() == 1

    def test_login_strips_whitespace(self, app):
        assert UserService.login('  0xpad ').wallet_address == '0xpad'

    def test_login_requires_wallet(self, app):
        with pytest.raises(InvalidRequest):
            UserService.login('   ')

    def test_profile(self, app):
        user = UserService.login('0xprofile')
        db.session.add(Cafe(id='c1', name='A'))
        db.session.commit()
        db.session.add_all([
            Review(user_id=user.id, cafe_id='c1', ratings={'wifi': 5}),
            Review(user_id=user.id, cafe_id='c1', ratings={'wifi': 6}),
        ])
        db.session.commit()

        profile = UserService.get_profile('0xprofile')

        assert profile['walletAddress'] == '0xprofile'
        assert profile['reviewCount'] == 2

    def test_profile_trims_wallet(self, app):
        UserService.login('0xtrim')

        assert UserService.get_profile(' 0xtrim  ')['walletAddress'] == '0xtrim'

    def test_profile_unknown_user(self, app):
        with pytest.raises(UserNotFound):
            UserService.get_profile('0xghost')


class TestCafeService:
    def test_list_cafes_includes_five_most_recent_reviews(self, app):
        user = User(wallet_address='0xlister', rank='Scout')
        cafe = Cafe(id='c1', name='Nebula Roasters')
        db.session.add_all([user, cafe])
        db.session.commit()
        for i in range(7):
            db.session.add(Review(user_id=user.id, cafe_id='c1', ratings={'wifi': i}, text=f'review {i}'))
        db.session.commit()

        cafes = CafeService.list_cafes()

        assert len(cafes) == 1
        reviews = cafes[0]['reviews']
        assert len(reviews) == 5
        assert [r['text'] for r in reviews] == ['review 6', 'review 5', 'review 4', 'review 3', 'review 2']
        assert reviews[0]['user'] == {'walletAddress': '0xlister', 'rank': 'Scout'}

    def test_create_cafe(self, app):
        cafe = CafeService.create_cafe({
            'name': '  Luna Coffee Lab ',
            'latitude': 41.04,
            'longitude': 29.0,
            'amenities': {'wifi': 7, 'outlet': 6.66},
        })

        assert cafe.name == 'Luna Coffee Lab'
        assert cafe.review_count == 0
        assert cafe.amenities == {'wifi': 7.0, 'outlet': 6.7}
        assert cafe.source == 'manual'

    def test_create_cafe_requires_name(self, app):
        with pytest.raises(InvalidRequest):
            CafeService.create_cafe({'name': ' '})

    def test_merge_discovered_skips_known_names(self, app):
        db.session.add(Cafe(id='c1', name='Nebula Roasters', review_count=3, amenities={'wifi': 9.0}))
        db.session.commit()

        added = CafeService.merge_discovered([
            {'name': 'nebula roasters ', 'amenities': {'wifi': 1}},
            {'name': 'Kronotrop', 'amenities': {'wifi': 8, 'noise': 14, 'vibes': 10}},
            {'name': 'KRONOTROP'},
            {'name': ''},
        ])

        assert added == 1
        existing = db.session.get(Cafe, 'c1')
        assert existing.review_count == 3
        assert existing.amenities == {'wifi': 9.0}

        discovered = Cafe.query.filter_by(name='Kronotrop').one()
        assert discovered.source == 'ai'
        assert discovered.review_count == 0
        assert discovered.amenities == {'wifi': 8.0, 'noise': 10.0}

    def test_merge_nothing(self, app):
        assert CafeService.merge_discovered([]) == 0


class TestAmenityNormalization:
    def test_drops_unknown_and_non_numeric(self):
        assert normalize_amenity_estimates({'wifi': '7.25', 'outlet': 'lots', 'comfort': True, 'foo': 3}) == {'wifi': 7.3}

    def test_clamps_to_scale(self):
        assert normalize_amenity_estimates({'noise': -3, 'service': 12}) == {'noise': 0.0, 'service': 10.0}

    def test_non_mapping(self):
        assert normalize_amenity_estimates(['wifi', 8]) == {}
