"""
Base test utilities and common patterns for backend testing.

Provides assertion helpers shared by the endpoint tests.
"""
from typing import Optional
from fastapi import status
from httpx import Response


class BaseAPITest:
    """Base class for API endpoint tests."""

    def assert_success_response(self, response: Response, expected_status: int = status.HTTP_200_OK):
        """Assert that response indicates success."""
        assert response.status_code == expected_status, response.text
        assert response.json() is not None

    def assert_error_response(self, response: Response, expected_status: int, expected_error: Optional[str] = None):
        """Assert that response indicates an error."""
        assert response.status_code == expected_status, response.text
        if expected_error:
            response_data = response.json()
            assert "detail" in response_data or "message" in response_data
            error_message = response_data.get("detail") or response_data.get("message")
            assert expected_error in error_message

    def assert_validation_error(self, response: Response, field_name: Optional[str] = None,
                                message: Optional[str] = None):
        """Assert that response indicates a validation error."""
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY, response.text
        if field_name:
            response_data = response.json()
            assert "detail" in response_data
            # Check if the field is mentioned in validation errors
            errors = response_data["detail"]
            field_errors = [error for error in errors if error.get("loc") and field_name in error["loc"]]
            assert len(field_errors) > 0
            if message:
                assert message in [error["msg"] for error in field_errors]

    def assert_domain_conflict(self, response: Response, key: str):
        """Assert that response reports a business rule violation."""
        self.assert_error_response(response, status.HTTP_400_BAD_REQUEST)
        response_data = response.json()
        assert response_data["error"] is True
        assert response_data["key"] == key

    def assert_unauthorized(self, response: Response):
        """Assert that response indicates unauthorized access."""
        self.assert_error_response(response, status.HTTP_401_UNAUTHORIZED)

    def assert_forbidden(self, response: Response):
        """Assert that response indicates forbidden access."""
        self.assert_error_response(response, status.HTTP_403_FORBIDDEN)

    def assert_not_found(self, response: Response):
        """Assert that response indicates resource not found."""
        self.assert_error_response(response, status.HTTP_404_NOT_FOUND)

    def ids(self, response: Response) -> list:
        """IDs of the entries in a list response, in response order."""
        return [entry["id"] for entry in response.json()["data"]]
