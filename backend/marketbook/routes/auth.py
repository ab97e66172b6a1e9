# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication, profile and admin-mode API routes

- Registration and login issue a USER bearer token (7 days)
- Admin registration hands out a one-time admin pass
- Admin login exchanges the pass for an ADMIN grant (24 hours), presented
  afterwards in the X-Admin-Token header
- Every successful state change is written to the audit log with a
  notification for the user
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_admin, ADMIN_TOKEN_HEADER
from ..errors import UnauthorizedError
from ..services import auth_service
from ..services import admin_service
from ..services import session_service
from ..services import provenance_service as prov
from ..services.provenance_service import ProvenanceRecorder, RequestContext
from ..services.storage_service import FOLDER_AVATARS, read_image_upload


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _client_context(user_id: int) -> RequestContext:
    return RequestContext(
        user_id=user_id,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )


@auth_bp.post("/register")
def register_route():
    """
    Self-registration.

    Returns the new user and a bearer token (201).
    """
    data = request.get_json(silent=True) or {}

    user = auth_service.register_user(
        name=data.get("name"),
        email=data.get("email"),
        password=data.get("password"),
    )
    ctx = _client_context(user.id)
    _, token = session_service.create_session(
        user_id=user.id,
        user_agent=ctx.user_agent,
        ip_address=ctx.ip_address,
    )

    ProvenanceRecorder().record(
        ctx, prov.USER_REGISTERED, "User account created",
        message="Welcome to Marketbook&solution! Your account has been created successfully.",
        notification_type="success",
    )

    return jsonify({
        "message": "User registered successfully",
        "user": user.to_dict(),
        "token": token,
    }), 201


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Unknown email and wrong password get the same 401.
    """
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    password = data.get("password")

    if not email or not password:
        raise UnauthorizedError("Invalid email or password")

    user = auth_service.authenticate(email, password)
    if not user:
        raise UnauthorizedError("Invalid email or password")

    ctx = _client_context(user.id)
    session, token = session_service.create_session(
        user_id=user.id,
        user_agent=ctx.user_agent,
        ip_address=ctx.ip_address,
    )

    ProvenanceRecorder().record(
        ctx, prov.USER_LOGIN, "User logged in",
        message="You have successfully logged in to your account.",
        notification_type="info",
    )

    return jsonify({
        "message": "Login successful",
        "user": user.to_dict(),
        "token": token,
        "session": session.to_dict(),
    }), 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the presented bearer token."""
    token = request.headers["Authorization"].split(" ", 1)[1].strip()
    session_service.revoke_session(token, reason="User logout", scope=session_service.SCOPE_USER)
    return jsonify({"message": "Logout successful"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200


@auth_bp.put("/profile")
@require_auth
def update_profile_route():
    data = request.get_json(silent=True) or {}
    user = auth_service.update_profile(g.current_user, data)

    ProvenanceRecorder().record(
        g.request_context, prov.PROFILE_UPDATED, "User profile information updated",
        message="Your profile has been updated successfully.",
        notification_type="success",
    )

    return jsonify({
        "message": "Profile updated successfully",
        "user": user.to_dict(),
    }), 200


@auth_bp.put("/billing-address")
@require_auth
def update_billing_address_route():
    data = request.get_json(silent=True) or {}
    address = data.get("billing_address", data)
    user = auth_service.update_billing_address(g.current_user, address)

    ProvenanceRecorder().record(
        g.request_context, prov.PROFILE_UPDATED, "User billing address updated",
        message="Your billing address has been updated successfully.",
        notification_type="success",
    )

    return jsonify({
        "message": "Billing address updated successfully",
        "user": user.to_dict(),
    }), 200


@auth_bp.put("/change-password")
@require_auth
def change_password_route():
    """
    Change password after re-checking the current one.

    All other sessions and admin grants of the user are revoked; the session
    making this call stays valid.
    """
    data = request.get_json(silent=True) or {}
    user = auth_service.change_password(
        g.current_user,
        current_password=data.get("current_password") or data.get("currentPassword"),
        new_password=data.get("new_password") or data.get("newPassword"),
    )
    session_service.revoke_all_user_sessions(
        user.id,
        reason="Password changed",
        keep_session_id=g.session_context.session.id,
    )

    ProvenanceRecorder().record(
        g.request_context, prov.PASSWORD_CHANGED, "User password changed",
        message="Your password has been changed successfully.",
        notification_type="success",
    )

    return jsonify({"message": "Password changed successfully"}), 200


@auth_bp.post("/avatar")
@require_auth
def avatar_route():
    """Multipart upload (field "avatar"); stores the returned URL on the profile."""
    data = read_image_upload(request.files.get("avatar"), current_app.config["UPLOAD_MAX_BYTES"])
    url = current_app.extensions["object_storage"].upload(data, FOLDER_AVATARS)
    user = auth_service.set_avatar(g.current_user, url)

    ProvenanceRecorder().record(
        g.request_context, prov.AVATAR_UPDATED, "User avatar updated",
        message="Your profile picture has been updated successfully.",
        notification_type="success",
    )

    return jsonify({
        "message": "Avatar uploaded successfully",
        "avatar": url,
        "user": user.to_dict(),
    }), 200


@auth_bp.post("/admin/register")
@require_auth
def admin_register_route():
    """
    One-time admin registration.

    The admin pass is returned in this response only. A second call gets
    403 ALREADY_REGISTERED and the stored pass is left untouched.
    """
    admin_pass = admin_service.register_admin(g.current_user)

    ProvenanceRecorder().record(
        g.request_context, prov.ADMIN_REGISTERED, "User registered as admin",
        message="You have successfully registered as an admin. Your admin pass has been generated.",
        notification_type="success",
    )

    return jsonify({
        "message": "Admin registration successful",
        "admin_pass": admin_pass,
    }), 200


@auth_bp.post("/admin/login")
@require_auth
def admin_login_route():
    data = request.get_json(silent=True) or {}
    admin_pass = data.get("admin_pass") or data.get("adminPass")
    if not admin_pass:
        raise UnauthorizedError("Invalid admin pass")

    ctx = g.request_context
    grant, admin_token = admin_service.admin_login(
        g.current_user,
        admin_pass,
        user_agent=ctx.user_agent,
        ip_address=ctx.ip_address,
    )

    ProvenanceRecorder().record(
        ctx, prov.ADMIN_LOGIN, "User logged in as admin",
        message="You have successfully logged in as an admin.",
        notification_type="info",
    )

    return jsonify({
        "message": "Admin login successful",
        "admin_token": admin_token,
        "expires_at": grant.to_dict()["expires_at"],
    }), 200


@auth_bp.post("/admin/logout")
@require_auth
@require_admin
def admin_logout_route():
    session_service.revoke_session(
        request.headers[ADMIN_TOKEN_HEADER],
        reason="Admin logout",
        scope=session_service.SCOPE_ADMIN,
    )
    return jsonify({"message": "Admin logout successful"}), 200
