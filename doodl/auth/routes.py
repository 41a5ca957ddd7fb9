import hmac

from flask import current_app, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from doodl.auth import auth_bp
from doodl.services.identity import AuthProfile, ensure_user


PROFILE_FIELDS = ("subject", "email", "name", "image")


def _bridge_secret_matches() -> bool:
    expected = current_app.config.get("AUTH_BRIDGE_SECRET") or ""
    provided = request.headers.get("X-Auth-Bridge-Secret", "")
    if not expected:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), provided.encode("utf-8"))


@auth_bp.route("/session", methods=["POST"])
def establish_session():
    """Sign in a user the external auth platform has already verified."""
    if not _bridge_secret_matches():
        return jsonify({"error": "authentication required"}), 401

    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return jsonify({"error": "Request body must be a JSON object"}), 400
    for field_name in PROFILE_FIELDS:
        value = payload.get(field_name)
        if value is not None and not isinstance(value, str):
            return jsonify({"error": f'"{field_name}" must be a string'}), 400

    profile = AuthProfile(
        subject=payload.get("subject") or "",
        email=payload.get("email") or "",
        name=payload.get("name"),
        image=payload.get("image"),
    )
    user = ensure_user(profile)
    login_user(user)
    return jsonify(user.as_dict())


@auth_bp.route("/me", methods=["GET"])
def me():
    if not current_user.is_authenticated:
        return jsonify(None)
    return jsonify(current_user.as_dict())


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return jsonify({"status": "signed_out"})
