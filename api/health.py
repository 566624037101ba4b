from flask import Blueprint, current_app

from models import storage

bp = Blueprint("health", __name__)


@bp.get("/health")
def health():
    """
    Health check
    ---
    tags:
      - Health
    responses:
      200:
        description: API and database are up
        schema:
          type: object
          properties:
            status:
              type: string
              example: ok
            version:
              type: string
              example: 1.0.0
            database:
              type: string
              example: ok
      503:
        description: Database unreachable
    """
    db_ok = storage.ping()
    body = {
        "status": "ok" if db_ok else "degraded",
        "version": current_app.config["VERSION"],
        "database": "ok" if db_ok else "unavailable",
    }
    return body, 200 if db_ok else 503
