"""
Sync diagnostics API
"""
from flask import Blueprint

from ..services.push_queue import PushQueue
from ..services.state_store import get_state_store
from ..services.status import get_sync_status
from ..services.sync.health_check import reset_sync
from ..utils.logger import get_logger
from ..utils.responses import ApiResponse, success_response

sync_status_bp = Blueprint('sync_status', __name__)
logger = get_logger('api.sync_status')


@sync_status_bp.route('/sync/status', methods=['GET'])
def get_status():
    """Circuit breaker, rate limit, cursor, image quota and push queue state."""
    return success_response(get_sync_status())


@sync_status_bp.route('/sync/reset', methods=['POST'])
def reset():
    """Clear the circuit breaker after credentials have been fixed."""
    was_disabled = reset_sync(get_state_store())
    logger.info(f"Sync reset requested (was_disabled={was_disabled})")
    return success_response({'was_disabled': was_disabled}, message='Sync re-enabled')


@sync_status_bp.route('/push-queue/<int:job_id>/retry', methods=['POST'])
def retry_job(job_id):
    """Re-queue a failed push job."""
    job = PushQueue().retry_job(job_id)
    if job is None:
        return ApiResponse.conflict(f'Job {job_id} is not a failed job or cannot be re-queued')
    return success_response(job.to_dict(), message='Job re-queued')
