"""Flask routes for reading and updating ezan settings."""

from flask import Blueprint, current_app, jsonify, request

from ezan.errors import InputError, StoreError

settings_bp = Blueprint("settings", __name__)


@settings_bp.route("/settings", methods=["POST"])
def update_settings():
    """
    Apply a partial settings update.

    Top-level keys overwrite, `volume` is merged per announcement. On success
    the settings are reloaded and today's adhan jobs rebuilt.
    """
    updates = request.get_json(silent=True)
    if not isinstance(updates, dict):
        return jsonify({"error": "Invalid JSON format"}), 400

    store = current_app.config["SETTINGS_STORE"]
    try:
        store.update(updates)
    except InputError as e:
        print(f"[API] Rejected settings update: {e}")
        return jsonify({"error": str(e)}), 400
    except StoreError as e:
        print(f"[API] Settings update failed: {e}")
        return jsonify({"error": str(e)}), 500

    return jsonify({"message": "Settings updated successfully"})


@settings_bp.route("/settings", methods=["GET"])
def get_settings():
    """Return the active settings."""
    store = current_app.config["SETTINGS_STORE"]
    try:
        config = store.current
    except StoreError as e:
        return jsonify({"error": str(e)}), 500
    return jsonify(config.to_dict())


@settings_bp.route("/schedule", methods=["GET"])
def get_schedule():
    """Return the armed adhan jobs for today."""
    manager = current_app.config["SCHEDULE_MANAGER"]
    if manager is None:
        return jsonify({"jobs": []})

    jobs = [
        {"name": name, "time": when.isoformat()}
        for name, when in manager.armed_jobs()
    ]
    return jsonify({"jobs": jobs})
