"""
Flask route handlers for the PictoTale API.

Routes read their services from ``current_app.extensions["pictotale"]``,
populated by the app factory.
"""

import logging
import os
from typing import TYPE_CHECKING

from flask import Blueprint, current_app, jsonify, request, send_from_directory

from ..utils.errors import NotFoundError, ValidationError

if TYPE_CHECKING:
    from flask import Flask

logger = logging.getLogger(__name__)

api = Blueprint("api", __name__)


def _services():
    return current_app.extensions["pictotale"]


def _json_body():
    data = request.get_json(silent=True)
    if data is None:
        raise ValidationError("Request body must be valid JSON.")
    return data


@api.route("/api/health", methods=["GET"])
def health():
    """
    Health check endpoint.

    Returns:
        JSON response with status "ok", the active providers and the
        job dispatch mode
    """
    services = _services()
    return jsonify({
        "status": "ok",
        "providers": services["components"].providers.describe(),
        "background_jobs": services["job_service"].is_background_jobs_enabled(),
    })


@api.route("/api/story-types", methods=["GET"])
def get_story_types():
    """Get the story type catalog."""
    return jsonify({"story_types": _services()["story_service"].list_story_types()})


@api.route("/api/stories", methods=["POST"])
def create_story():
    """
    Create a story from a drawing, a voice recording and/or a text prompt.

    Request Body (JSON):
        - story_type_id (str, required): Catalog story type
        - drawing_base64 (str, optional): Drawing image, base64 or data URL
        - voice_base64 (str, optional): Voice recording, base64 or data URL
        - user_prompt (str, optional): Free-text idea (max 500 characters)
        - character_names (list, optional): Up to 5 names
        - character_descriptions (dict, optional): Name -> description
        - length (str, optional): short | medium | long | epic
        - language (str, optional): Language code, default "en"
        - preferences (dict, optional): Illustration and voice preferences
        - user_id (str, optional)

    Returns:
        202 with {story_id, status, estimated_time, story_type, job_id}
    """
    result = _services()["story_service"].create_story(_json_body())
    logger.info(f"Accepted story {result['story_id']} (job {result['job_id']})")
    return jsonify(result), 202


@api.route("/api/stories/<story_id>", methods=["GET"])
def get_story(story_id: str):
    """Get a full story record."""
    return jsonify(_services()["story_service"].get_story(story_id))


@api.route("/api/stories/<story_id>/status", methods=["GET"])
def get_story_status(story_id: str):
    """Get story progress: status, progress_percent and estimated time remaining."""
    return jsonify(_services()["story_service"].get_status(story_id))


@api.route("/api/stories/<story_id>/continue", methods=["POST"])
def continue_story(story_id: str):
    """
    Continue a completed story.

    Request Body (JSON):
        - additional_prompt (str, required): What happens next
        - new_characters (list, optional): Names to introduce

    Returns:
        202 with {story_id, status: "generating", job_id}
    """
    result = _services()["story_service"].continue_story(story_id, _json_body())
    return jsonify(result), 202


@api.route("/api/stories/<story_id>/archive", methods=["POST"])
def archive_story(story_id: str):
    """Archive a completed story."""
    return jsonify(_services()["story_service"].archive_story(story_id))


@api.route("/api/stories/<story_id>/share", methods=["PUT"])
def share_story(story_id: str):
    """
    Share or unshare a story.

    Request Body (JSON):
        - is_shared (bool, required)

    Returns:
        {story_id, is_shared, message}
    """
    return jsonify(_services()["story_service"].set_sharing(story_id, _json_body()))


@api.route("/api/stories/<story_id>", methods=["DELETE"])
def delete_story(story_id: str):
    """Delete a story that has no run in progress."""
    return jsonify(_services()["story_service"].delete_story(story_id))


@api.route("/api/users/<user_id>/stories", methods=["GET"])
def get_user_stories(user_id: str):
    """
    List a user's stories, newest first.

    Query Parameters:
        - page (int, optional): 1-based page number, default 1
        - limit (int, optional): Page size, default 10, max 50
        - status (str, optional): Only stories in this status
        - story_type (str, optional): Only stories of this type

    Returns:
        {stories: [...], pagination: {page, limit, count}}
    """
    return jsonify(_services()["story_service"].list_user_stories(user_id, request.args.to_dict()))


@api.route("/api/jobs/<job_id>", methods=["GET"])
def get_job_status(job_id: str):
    """
    Get the status of a background job.

    Returns:
        JSON response with job status:
        {
            "job_id": str,
            "status": str,
            "story_id": str,
            "result": Any,
            "error": str
        }
    """
    return jsonify(_services()["job_service"].get_job_status(job_id))


@api.route("/media/<path:filename>", methods=["GET"])
def get_media(filename: str):
    """Serve assets written by local object storage."""
    storage_dir = os.path.abspath(_services()["components"].settings.storage_dir)
    if filename.endswith(".json") or not os.path.isfile(os.path.join(storage_dir, filename)):
        raise NotFoundError("Media", filename)
    return send_from_directory(storage_dir, filename)


def register_routes(flask_app: "Flask") -> None:
    """Register all application routes."""
    flask_app.register_blueprint(api)
