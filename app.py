from flask import Flask
from flask_cors import CORS
from dotenv import load_dotenv

load_dotenv()

import config
from database import close_db
from services.cache_service import SnapshotSubscriber
from services.runtime import load_caches, open_stores, start_background_refresh
from utils.logging_setup import configure_logging
from views.chapters import chapters_bp
from views.status import status_bp
from views.titles import titles_bp


def create_app(cache_manager=None, *, start_refresh=None):
    """
    Build the API. Caches are fully loaded before the app is returned, so the
    first request already sees populated snapshots.
    """
    configure_logging()
    app = Flask(__name__)
    if config.CORS_ALLOW_ORIGINS:
        CORS(
            app,
            origins=config.CORS_ALLOW_ORIGINS,
            supports_credentials=config.CORS_SUPPORTS_CREDENTIALS,
        )
    else:
        CORS(app)

    stores = None
    if cache_manager is None:
        stores = open_stores()
        cache_manager = load_caches(stores)

    app.extensions['title_cache'] = cache_manager
    app.extensions['title_snapshots'] = SnapshotSubscriber(cache_manager)

    if start_refresh is None:
        start_refresh = config.ENABLE_BACKGROUND_REFRESH and stores is not None
    if start_refresh:
        app.extensions['background_refresh'] = start_background_refresh(cache_manager, stores)

    app.register_blueprint(titles_bp)
    app.register_blueprint(chapters_bp)
    app.register_blueprint(status_bp)

    @app.teardown_appcontext
    def teardown_db(exception):
        close_db(exception)

    @app.route("/healthz", methods=["GET"])
    def healthz():
        return {"status": "ok"}, 200

    return app
