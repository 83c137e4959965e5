"""Registration, login and profile routes."""

from datetime import datetime
from typing import Any, Dict

from flask import Blueprint, current_app, g, jsonify, request
from pymongo.errors import DuplicateKeyError
from werkzeug.exceptions import BadRequest, Conflict, NotFound, Unauthorized

from gomint.core import (
    clean_string,
    compact,
    hash_password,
    isoformat,
    issue_token,
    login_required,
    validate_object_id,
    verify_password,
)

ROLES = ("operator", "vendor", "customer", "admin")


def format_user(user: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": str(user["_id"]),
        "username": user.get("username"),
        "role": user.get("role"),
    }


def register_auth_routes(bp: Blueprint, database) -> None:
    users = database["users"]
    customers = database["customers"]

    @bp.post("/auth/register")
    def register():
        payload = request.get_json(silent=True) or {}
        username = clean_string(payload.get("username"), "username", lower=True)
        password = payload.get("password")
        if not username or not isinstance(password, str) or not password:
            raise BadRequest("Username and password required")

        role = payload.get("role") or "operator"
        if role not in ROLES:
            raise BadRequest(f"role must be one of {', '.join(ROLES)}")

        if users.find_one({"username": username}):
            raise Conflict("Email already registered")

        user = {
            "username": username,
            "passwordHash": hash_password(password),
            "role": role,
            "firstName": clean_string(payload.get("firstName"), "firstName"),
            "lastName": clean_string(payload.get("lastName"), "lastName"),
            "mobile": clean_string(payload.get("mobile"), "mobile"),
            "createdAt": datetime.utcnow(),
        }
        try:
            result = users.insert_one(compact(user))
        except DuplicateKeyError:
            raise Conflict("Email already registered")
        user["_id"] = result.inserted_id

        if role == "customer":
            customer = {
                "userId": user["_id"],
                "firstName": user["firstName"],
                "lastName": user["lastName"],
                "email": username,
                "mobile": user["mobile"],
                "createdAt": user["createdAt"],
            }
            try:
                customers.insert_one(compact(customer))
            except DuplicateKeyError:
                users.delete_one({"_id": user["_id"]})
                raise Conflict("Email or mobile number already registered")

        current_app.logger.info("Registered %s user %s", role, username)
        return jsonify(format_user(user)), 201

    @bp.post("/auth/login")
    def login():
        payload = request.get_json(silent=True) or {}
        username = payload.get("username")
        password = payload.get("password")
        if not isinstance(username, str) or not username.strip() or not isinstance(password, str) or not password:
            raise BadRequest("Username and password required")

        user = users.find_one({"username": username.strip().lower()})
        if not user or not verify_password(password, user.get("passwordHash", "")):
            raise Unauthorized("Invalid credentials")

        token = issue_token(user, current_app.config["AUTH_SETTINGS"])
        return jsonify({"token": token, "user": format_user(user)})

    @bp.get("/auth/me")
    @login_required()
    def get_me():
        user_id = validate_object_id(g.current_token.get("sub"), "User not found")
        user = users.find_one({"_id": user_id}, {"passwordHash": 0})
        if not user:
            raise NotFound("User not found")
        return jsonify(
            {
                **format_user(user),
                "firstName": user.get("firstName"),
                "lastName": user.get("lastName"),
                "mobile": user.get("mobile"),
                "createdAt": isoformat(user.get("createdAt")),
            }
        )

    @bp.post("/auth/logout")
    def logout():
        # tokens are stateless; the client drops its copy
        return jsonify({"message": "Logged out successfully"})
