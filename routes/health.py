from datetime import datetime
from flask import Blueprint, jsonify

health_bp = Blueprint("health", __name__)

@health_bp.get("/health")
def health():
    return jsonify(success=True, data={"ok": True, "time": datetime.utcnow().isoformat()}), 200
