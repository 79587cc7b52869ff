# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..errors import TooManyAttempts, Unauthenticated
from ..services import auth_service, login_throttle_service

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register():
    """
    Public owner registration.

    Creates an OWNER account (a new tenant) and returns a signed credential.
    Employees are created through POST /api/auth/employees instead.
    """
    login_throttle_service.check_registration_allowed(request.remote_addr)
    login_throttle_service.record_registration_attempt(
        request.remote_addr, user_agent=request.headers.get("User-Agent")
    )

    user, token = auth_service.register_owner(request.get_json(silent=True))
    return jsonify({"user": user.to_dict(), "token": token}), 201


@auth_bp.post("/login")
def login():
    """
    Exchange email + password for a signed credential.

    SECURITY:
    - Locked emails are refused before the password is checked
    - Every wrong password counts towards the lockout, known email or not
    - The failure that reaches the limit already answers 429
    """
    data = request.get_json(silent=True) or {}
    identifier = login_throttle_service.normalize_identifier(data.get("email"))
    ip_address = request.remote_addr
    user_agent = request.headers.get("User-Agent")

    if identifier:
        login_throttle_service.check_login_allowed(identifier)

    try:
        user, token = auth_service.authenticate(data.get("email"), data.get("password"))
    except Unauthenticated:
        remaining = login_throttle_service.record_failed_login(
            identifier, ip_address=ip_address, user_agent=user_agent
        )
        if remaining <= 0:
            minutes = current_app.config.get("LOGIN_LOCKOUT_MINUTES", 15)
            raise TooManyAttempts(
                "Account locked due to too many failed login attempts",
                details={"retry_after_seconds": minutes * 60, "retry_after_minutes": minutes},
            )
        raise

    login_throttle_service.record_successful_login(
        user.id, identifier, ip_address=ip_address, user_agent=user_agent
    )
    return jsonify({"user": user.to_dict(), "token": token}), 200


@auth_bp.get("/me")
@require_auth
def me():
    ctx = g.tenant_context
    user = auth_service.get_current_user(ctx)
    return jsonify({"user": user.to_dict(), "context": ctx.to_dict()}), 200


@auth_bp.post("/employees")
@require_auth
@require_permission("CREATE_EMPLOYEE")
def create_employee():
    user = auth_service.create_employee(g.tenant_context, request.get_json(silent=True))
    return jsonify(user.to_dict()), 201


@auth_bp.get("/employees")
@require_auth
@require_permission("VIEW_EMPLOYEES")
def list_employees():
    users = auth_service.list_employees(g.tenant_context)
    return jsonify([user.to_dict() for user in users]), 200


@auth_bp.put("/employees/<int:employee_id>")
@require_auth
@require_permission("UPDATE_EMPLOYEE")
def update_employee(employee_id: int):
    user = auth_service.update_employee(g.tenant_context, employee_id, request.get_json(silent=True))
    return jsonify(user.to_dict()), 200


@auth_bp.delete("/employees/<int:employee_id>")
@require_auth
@require_permission("DELETE_EMPLOYEE")
def delete_employee(employee_id: int):
    auth_service.delete_employee(g.tenant_context, employee_id)
    return jsonify({"deleted": True, "id": employee_id}), 200
