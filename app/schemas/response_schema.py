from typing import Dict, Optional


class AdminResponse:
    @staticmethod
    def error(message: str, code: str, details: Optional[Dict] = None) -> Dict:
        response = {"success": False, "message": message, "error": {"code": code}}
        if details:
            response["error"]["details"] = details
        return response
