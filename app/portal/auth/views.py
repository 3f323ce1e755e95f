from __future__ import annotations

import logging
from typing import Any

from flask import Blueprint, flash, g, jsonify, redirect, render_template, request, url_for

from app.portal.auth import session_store
from app.portal.auth.session_store import SessionRecord
from app.portal.rbac import Role
from app.portal.remote import cms_client
from app.portal.utils import is_valid_email, safe_next, safe_text

logger = logging.getLogger(__name__)

bp = Blueprint("auth", __name__)

MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 8


def _wants_json() -> bool:
    if request.is_json:
        return True
    best = request.accept_mimetypes.best_match(["application/json", "text/html"])
    return best == "application/json"


def _payload() -> dict[str, Any]:
    if request.is_json:
        body = request.get_json(silent=True)
        return body if isinstance(body, dict) else {}
    return request.form.to_dict()


def _fail(message: str, status: int, endpoint: str, **extra: Any):
    if _wants_json():
        return jsonify({"error": message, **extra}), status
    flash(message, "danger")
    return redirect(url_for(endpoint, next=request.form.get("next") or None))


@bp.get("/login")
def login_get():
    nxt = (request.args.get("next") or "").strip()
    return render_template("auth/login.html", next=nxt)


@bp.post("/login")
def login_post():
    body = _payload()
    identifier = safe_text(body.get("identifier") or body.get("email"))
    password = body.get("password") or ""
    if not identifier or not password:
        return _fail("Username/email and password are required", 400, "auth.login_get")

    result = cms_client().mutate(
        "auth/local",
        json_body={"identifier": identifier, "password": password},
        anonymous=True,
        fallback_message="Invalid username/email or password",
    )
    if not result.ok:
        logger.info("Login rejected (identifier=%s request_id=%s)", identifier, getattr(g, "request_id", None))
        return _fail(result.message or "Invalid username/email or password", result.status_code or 401, "auth.login_get")

    data = result.data if isinstance(result.data, dict) else {}
    user = data.get("user") if isinstance(data.get("user"), dict) else {}
    if not user.get("id") or not data.get("jwt"):
        logger.error("Login response missing user or jwt (request_id=%s)", getattr(g, "request_id", None))
        return _fail("An error occurred during login. Please try again.", 500, "auth.login_get")
    if user.get("confirmed") is False:
        return _fail(
            "Please confirm your email address before logging in. Check your email for the confirmation link.",
            403,
            "auth.login_get",
            requiresConfirmation=True,
            email=user.get("email"),
        )
    if user.get("blocked") is True:
        return _fail("Your account has been blocked. Please contact support.", 403, "auth.login_get")

    role = Role.parse(user.get("type"))
    record = session_store.create(
        SessionRecord(
            user_id=str(user["id"]),
            email=safe_text(user.get("email")),
            first_name=safe_text(user.get("firstName") or user.get("username")),
            jwt=str(data["jwt"]),
            role=role.value if role else None,
        )
    )
    logger.info("Login ok (user_id=%s request_id=%s)", record.user_id, getattr(g, "request_id", None))

    if _wants_json():
        return jsonify(
            {
                "success": True,
                "message": "Login successful",
                "user": {"id": user["id"], "firstName": record.first_name, "email": record.email},
            }
        )
    return redirect(safe_next(body.get("next")) or url_for("dashboard.index"))


@bp.get("/register")
def register_get():
    return render_template("auth/register.html")


def validate_registration(username: str, email: str, password: str) -> str | None:
    if not username or not email or not password:
        return "Username, email, and password are required"
    if len(username) < MIN_USERNAME_LENGTH:
        return f"Username must be at least {MIN_USERNAME_LENGTH} characters"
    if not is_valid_email(email):
        return "Invalid email address"
    if len(password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    return None


@bp.post("/register")
def register_post():
    body = _payload()
    username = safe_text(body.get("username"))
    email = safe_text(body.get("email")).lower()
    password = body.get("password") or ""

    error = validate_registration(username, email, password)
    if error:
        return _fail(error, 400, "auth.register_get")

    result = cms_client().mutate(
        "auth/local/register",
        json_body={"username": username, "email": email, "password": password},
        anonymous=True,
        fallback_message="Registration failed. Please try again.",
    )
    if not result.ok:
        return _fail(result.message or "Registration failed. Please try again.", result.status_code or 400, "auth.register_get")

    user = result.data.get("user") if isinstance(result.data, dict) else None
    user = user if isinstance(user, dict) else {}
    # Anything but an explicit confirmed=True still needs email confirmation.
    requires_confirmation = user.get("confirmed") is not True
    message = (
        "Registration successful! Please check your email to confirm your account before logging in."
        if requires_confirmation
        else "Registration successful! Please login to continue."
    )
    if _wants_json():
        return jsonify(
            {
                "success": True,
                "requiresConfirmation": requires_confirmation,
                "message": message,
                "user": {
                    "id": user.get("id"),
                    "username": user.get("username"),
                    "email": user.get("email"),
                    "confirmed": not requires_confirmation,
                },
            }
        ), 201
    flash(message, "success")
    return redirect(url_for("auth.login_get"))


@bp.route("/logout", methods=["GET", "POST"])
def logout():
    record = getattr(g, "session_record", None)
    session_store.destroy()
    if record:
        logger.info("Logout (user_id=%s request_id=%s)", record.user_id, getattr(g, "request_id", None))
    if _wants_json():
        return jsonify({"success": True, "message": "Logged out successfully"})
    return redirect(url_for("routes.index"))


@bp.get("/api/auth/session")
def session_status():
    record = getattr(g, "session_record", None)
    if record is None:
        return jsonify({"authenticated": False})
    return jsonify({"authenticated": True, "user": record.to_public_dict()})


@bp.post("/api/auth/forgot-password")
def forgot_password():
    email = safe_text(_payload().get("email")).lower()
    if not is_valid_email(email):
        return jsonify({"error": "A valid email address is required"}), 400
    result = cms_client().mutate(
        "auth/forgot-password",
        json_body={"email": email},
        anonymous=True,
        fallback_message="Failed to send password reset email",
    )
    if result.is_error:
        return jsonify({"error": result.message}), result.status_code or 500
    return jsonify({"success": True, "message": "If an account exists for that email, a reset link has been sent."})


@bp.post("/api/auth/reset-password")
def reset_password():
    body = _payload()
    code = safe_text(body.get("code"))
    password = body.get("password") or ""
    confirmation = body.get("passwordConfirmation") or ""
    if not code:
        return jsonify({"error": "Reset code is required"}), 400
    if len(password) < MIN_PASSWORD_LENGTH:
        return jsonify({"error": f"Password must be at least {MIN_PASSWORD_LENGTH} characters"}), 400
    if password != confirmation:
        return jsonify({"error": "Passwords do not match"}), 400
    result = cms_client().mutate(
        "auth/reset-password",
        json_body={"code": code, "password": password, "passwordConfirmation": confirmation},
        anonymous=True,
        fallback_message="Failed to reset password",
    )
    if result.is_error:
        return jsonify({"error": result.message}), result.status_code or 500
    return jsonify({"success": True, "message": "Password reset successfully. Please login."})


@bp.get("/api/auth/email-confirmation")
def email_confirmation():
    token = safe_text(request.args.get("confirmation"))
    if not token:
        flash("Confirmation token is missing.", "danger")
        return redirect(url_for("auth.login_get"))
    result = cms_client().mutate(
        "auth/email-confirmation",
        method="GET",
        params={"confirmation": token},
        anonymous=True,
        fallback_message="Email confirmation failed. The link may have expired.",
    )
    if result.is_error:
        flash(result.message or "Email confirmation failed.", "danger")
    else:
        flash("Email confirmed. You can now log in.", "success")
    return redirect(url_for("auth.login_get"))


@bp.post("/api/auth/resend-confirmation")
def resend_confirmation():
    email = safe_text(_payload().get("email")).lower()
    if not is_valid_email(email):
        return jsonify({"error": "A valid email address is required"}), 400
    result = cms_client().mutate(
        "auth/send-email-confirmation",
        json_body={"email": email},
        anonymous=True,
        fallback_message="Failed to resend confirmation email",
    )
    if result.is_error:
        return jsonify({"error": result.message}), result.status_code or 500
    return jsonify({"success": True, "message": "Confirmation email sent. Please check your inbox."})
