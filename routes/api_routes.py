import logging
from flask import Blueprint, current_app, jsonify, request
from services.exceptions import ReviewError, StorageFailure
from utils.auth import admin_required, rate_limit

logger = logging.getLogger(__name__)

api_bp = Blueprint('api', __name__)


@api_bp.errorhandler(ReviewError)
def handle_review_error(error):
    if isinstance(error, StorageFailure):
        logger.error(f"Storage failure on {request.endpoint}: {error.message}")
    return jsonify(error.to_response()), error.status_code


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


@api_bp.route('/healthz')
def health_check():
    """API health check"""
    return jsonify({"ok": True})


@api_bp.route('/auth/login', methods=['POST'])
def login():
    """Find or create the user for a wallet address"""
    from services.user_service import UserService
    from utils.validators import validate_login

    data = validate_login(_json_body())
    user = UserService.login(data['wallet_address'])
    return jsonify(user.to_dict())


@api_bp.route('/users/<path:wallet_address>')
def user_profile(wallet_address):
    """Public profile with point balance and review count"""
    from services.user_service import UserService

    return jsonify({"success": True, "user": UserService.get_profile(wallet_address)})


@api_bp.route('/cafes')
def list_cafes():
    """All cafes with their five most recent reviews"""
    from services.cafe_service import CafeService
    from utils.cache import get_cached_cafe_list

    return jsonify(get_cached_cafe_list(CafeService.list_cafes))


@api_bp.route('/cafes', methods=['POST'])
@admin_required
def create_cafe():
    """Add a cafe to the map"""
    from services.cafe_service import CafeService
    from utils.validators import validate_cafe

    cafe = CafeService.create_cafe(validate_cafe(_json_body()))
    return jsonify({"success": True, "cafe": cafe.to_dict()}), 201


@api_bp.route('/reviews', methods=['POST'])
@rate_limit(max_requests=30, window_seconds=60)
def post_review():
    """Submit a review: awards points and updates the cafe's amenity averages"""
    from services.review_service import ReviewService
    from utils.validators import validate_review_submission

    try:
        data = validate_review_submission(_json_body())
        result = ReviewService().submit_review(
            data['cafe_id'],
            data['wallet_address'],
            data['ratings'],
            data.get('text'),
        )
        return jsonify(result)
    except ReviewError:
        raise
    except Exception as e:
        logger.exception(f"Post review error: {str(e)}")
        return jsonify({"success": False, "error": "Internal Server Error"}), 500


@api_bp.route('/cafes/discover', methods=['POST'])
@admin_required
@rate_limit(max_requests=2, window_seconds=300)  # 2 requests per 5 minutes
def discover_cafes():
    """Queue a background Claude lookup for new cafes"""
    from services.scheduler_service import trigger_discovery
    from utils.validators import validate_discovery_request

    data = validate_discovery_request(_json_body())
    area = data.get('area') or current_app.config.get('DISCOVERY_AREA')
    job_id = trigger_discovery(current_app._get_current_object(), area)
    return jsonify({
        "success": True,
        "jobId": job_id,
        "message": f"Cafe discovery queued for {area}"
    }), 202


@api_bp.route('/cafes/discover/<job_id>', methods=['DELETE'])
@admin_required
def cancel_discovery(job_id):
    """Cancel a queued discovery job"""
    from services.scheduler_service import cancel_discovery as cancel_job

    if not cancel_job(job_id):
        return jsonify({"success": False, "error": "Discovery job not found or already running"}), 404
    return jsonify({"success": True, "jobId": job_id})


@api_bp.route('/scheduler/status')
@admin_required
def scheduler_status():
    from services.scheduler_service import get_scheduler_status

    return jsonify({"success": True, "scheduler": get_scheduler_status()})
