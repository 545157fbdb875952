"""
JSON envelope for the diagnostics API

Success: {"success": true, "message": ..., "data": ...}
Failure: {"success": false, "error": {"code": ..., "message": ..., "details": ...}}
"""
from typing import Any, Dict, Optional

from flask import jsonify


class ApiResponse:
    """Builders returning (response, status) tuples for Flask views."""

    @staticmethod
    def success(data: Any = None, message: str = 'OK', status: int = 200) -> tuple:
        body = {'success': True, 'message': message}
        if data is not None:
            body['data'] = data
        return jsonify(body), status

    @staticmethod
    def error(
        message: str,
        code: int = 400,
        error_code: str = 'BAD_REQUEST',
        details: Optional[Dict] = None
    ) -> tuple:
        """Failure envelope.

        Args:
            message: Human readable message
            code: HTTP status
            error_code: Stable machine readable code (e.g. SYNC_DISABLED)
            details: Optional extra context
        """
        error = {'code': error_code, 'message': message}
        if details:
            error['details'] = details
        return jsonify({'success': False, 'error': error}), code

    @staticmethod
    def not_found(message: str = 'Resource not found') -> tuple:
        return ApiResponse.error(message, 404, 'NOT_FOUND')

    @staticmethod
    def conflict(message: str) -> tuple:
        return ApiResponse.error(message, 409, 'CONFLICT')

    @staticmethod
    def server_error(message: str = 'Internal server error') -> tuple:
        return ApiResponse.error(message, 500, 'INTERNAL_ERROR')


def success_response(data: Any = None, message: str = 'OK') -> tuple:
    return ApiResponse.success(data, message)
