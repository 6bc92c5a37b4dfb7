# leafscan/__init__.py
import atexit
import logging

from flask import Flask
from flask_cors import CORS
from .core.config import Config
from .api.scan_routes import scan_bp, current_user_id


def build_orchestrator(repository):
    """
    Load the 4 models once and wire the orchestrator with its collaborators.
    """
    from .ml.segmentation.model_loader import get_segmentation_runners
    from .ml.classification.model_loader import get_classification_runner
    from .services.gate_service import LeafPresenceGate
    from .services.scan_service import ScanOrchestrator

    gate = LeafPresenceGate() if Config.GATE_ENABLED else None
    return ScanOrchestrator(
        segmentation=get_segmentation_runners(),
        classifier=get_classification_runner(),
        gate=gate,
        persistence=repository,
        identity=current_user_id,
    )


def create_app(orchestrator=None, repository=None):
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = Flask(__name__)
    app.config.from_object(Config)

    # Allow the mobile / web client
    CORS(app, resources={r"/api/*": {"origins": "*"}}, allow_headers=["Content-Type", "X-User-Id"])

    if repository is None:
        from .services.save_service import LeafRepository
        repository = LeafRepository()
    if orchestrator is None:
        orchestrator = build_orchestrator(repository)
        # inference worker threads are stopped with the process
        atexit.register(orchestrator.close)

    app.extensions["leaf_repository"] = repository
    app.extensions["scan_orchestrator"] = orchestrator

    app.register_blueprint(scan_bp, url_prefix="/api")

    return app
