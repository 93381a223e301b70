"""Error taxonomy for the JSON API.

Every handler raises one of these; ``register_error_handlers`` turns them into
``{"error": ...}`` bodies with the matching status code.
"""
from flask import jsonify
from werkzeug.exceptions import HTTPException

from educonnect import db


class ApiError(Exception):
    status_code = 500

    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        body = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(ApiError):
    status_code = 400


class ForbiddenError(ApiError):
    status_code = 403


class NotFoundError(ApiError):
    status_code = 404


class ConflictError(ApiError):
    status_code = 409


class UpstreamError(ApiError):
    """A dependency (store or AI backend) failed."""
    status_code = 500


def register_error_handlers(app):

    @app.errorhandler(ApiError)
    def handle_api_error(error):
        db.session.rollback()
        if error.status_code >= 500:
            app.logger.error("%s: %s", type(error).__name__, error.message)
        else:
            app.logger.info("%s: %s", type(error).__name__, error.message)
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({"error": error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected(error):
        db.session.rollback()
        app.logger.exception("Unhandled error: %s", error)
        return jsonify({"error": str(error) or "Internal server error"}), 500
