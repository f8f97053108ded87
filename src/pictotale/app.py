"""Flask web app for PictoTale."""

import logging
import os
from typing import Optional

from dotenv import load_dotenv  # type: ignore[import-untyped]
from flask import Flask
from flask_cors import CORS  # type: ignore[import-untyped]

from .api import register_routes
from .components import Components, build_components
from .config import Settings
from .services import JobService, StoryService, StoryValidationService
from .utils.errors import register_error_handlers

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, components: Optional[Components] = None) -> Flask:
    """
    Create and configure the Flask application.

    Args:
        settings: Settings to use (read from the environment when omitted)
        components: Pre-built components (built from settings when omitted)

    Returns:
        Configured Flask app
    """
    if settings is None:
        load_dotenv()
        settings = components.settings if components is not None else Settings.from_env()

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    components = components or build_components(settings)

    app = Flask(__name__)
    CORS(app)
    app.config["USE_BACKGROUND_JOBS"] = settings.use_background_jobs

    job_service = JobService(
        components.orchestrator,
        components.continuation,
        use_background_jobs=settings.use_background_jobs,
        max_workers=settings.worker_threads,
        redis_url=settings.redis_url,
    )
    story_service = StoryService(
        components.repository,
        job_service,
        components.continuation,
        validation=StoryValidationService(),
    )
    app.extensions["pictotale"] = {
        "components": components,
        "job_service": job_service,
        "story_service": story_service,
    }

    register_error_handlers(app, debug=os.getenv("FLASK_ENV") == "development")
    register_routes(app)

    logger.info(
        f"PictoTale app ready (providers: {components.providers.describe()}, "
        f"background jobs: {settings.use_background_jobs})"
    )
    return app


if __name__ == '__main__':
    debug_mode = os.getenv('FLASK_ENV') == 'development'
    port = int(os.getenv('PORT', 5000))
    host = os.getenv('HOST', '0.0.0.0')

    create_app().run(debug=debug_mode, host=host, port=port)
