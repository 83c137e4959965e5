"""Standalone bank account records."""

from datetime import datetime
from typing import Any, Dict

from flask import Blueprint, jsonify, request
from pymongo import ReturnDocument
from werkzeug.exceptions import NotFound

from gomint.core import clean_string, compact, find_or_404, login_required, serialize_document, validate_object_id

OPTIONAL_FIELDS = ("accountHolder", "bankName", "branchName", "branchAddress", "country", "state")


def prepare_bank_details_payload(data: Dict[str, Any]) -> Dict[str, Any]:
    payload = {field: clean_string(data.get(field), field) for field in OPTIONAL_FIELDS}
    payload["accountNumber"] = clean_string(data.get("accountNumber"), "accountNumber", required=True)
    payload["ifsc"] = clean_string(data.get("ifsc"), "ifsc", required=True, upper=True)
    return compact(payload)


def register_bank_details_routes(bp: Blueprint, database) -> None:
    bank_details = database["bank_details"]

    @bp.post("/bank-details")
    @login_required()
    def create_bank_details():
        document = prepare_bank_details_payload(request.get_json(silent=True) or {})
        document["createdAt"] = datetime.utcnow()
        result = bank_details.insert_one(document)
        return jsonify(serialize_document(bank_details.find_one({"_id": result.inserted_id}))), 201

    @bp.get("/bank-details")
    @login_required()
    def list_bank_details():
        return jsonify([serialize_document(doc) for doc in bank_details.find().limit(200)])

    @bp.get("/bank-details/<details_id>")
    @login_required()
    def get_bank_details(details_id: str):
        object_id = validate_object_id(details_id, "Bank details not found")
        return jsonify(serialize_document(find_or_404(bank_details, object_id, "Bank details not found")))

    @bp.put("/bank-details/<details_id>")
    @login_required()
    def update_bank_details(details_id: str):
        object_id = validate_object_id(details_id, "Bank details not found")
        existing = find_or_404(bank_details, object_id, "Bank details not found")
        updates = prepare_bank_details_payload({**existing, **(request.get_json(silent=True) or {})})
        updated = bank_details.find_one_and_update(
            {"_id": object_id}, {"$set": updates}, return_document=ReturnDocument.AFTER
        )
        if updated is None:
            raise NotFound("Bank details not found")
        return jsonify(serialize_document(updated))

    @bp.delete("/bank-details/<details_id>")
    @login_required()
    def delete_bank_details(details_id: str):
        result = bank_details.delete_one({"_id": validate_object_id(details_id, "Bank details not found")})
        if result.deleted_count == 0:
            raise NotFound("Bank details not found")
        return jsonify({"message": "Bank details deleted successfully"})
