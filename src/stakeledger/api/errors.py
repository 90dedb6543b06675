from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from stakeledger.runtime.errors import ApplyError


@dataclass(frozen=True, slots=True)
class ApiError(Exception):
    status_code: int
    code: str
    message: str
    details: Dict[str, Any]

    @staticmethod
    def bad_request(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(400, code, message, details or {})

    @staticmethod
    def forbidden(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(403, code, message, details or {})

    @staticmethod
    def not_found(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(404, code, message, details or {})

    @staticmethod
    def conflict(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(409, code, message, details or {})

    @staticmethod
    def unprocessable(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(422, code, message, details or {})

    @staticmethod
    def internal(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(500, code, message, details or {})

    def to_json(self) -> Dict[str, Any]:
        return {"ok": False, "error": {"code": self.code, "message": self.message, "details": dict(self.details)}}


# Domain error code -> HTTP status. Anything unlisted is a validation failure (400).
_STATUS_BY_CODE: Dict[str, int] = {
    "configuration_error": 409,
    "forbidden": 403,
    "invalid_signature": 403,
    "no_staking_account": 404,
    "overflow": 422,
}


def from_apply_error(e: ApplyError) -> ApiError:
    j = e.to_json()
    return ApiError(_STATUS_BY_CODE.get(e.code, 400), j["code"], j["reason"], j["details"])
