from flask import Blueprint
from sqlalchemy.exc import SQLAlchemyError

from models import storage
from utils.decorators import public_endpoint

bp = Blueprint("health", __name__)


@bp.get("/health")
@public_endpoint
def health():
    """
    Health check (API process and account store)
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
            database:
              type: string
              example: ok
      503:
        description: Database unreachable
    """
    try:
        storage.ping()
    except SQLAlchemyError:
        return {"status": "degraded", "database": "unavailable"}, 503
    return {"status": "ok", "database": "ok"}, 200
