"""Tests for the JSON error shape and the public endpoints."""

from fastapi import status

from ledgergate.config.settings import settings
from ledgergate.shared.errors.exceptions import ApiException, BadRequestException, ValidationFailedException

PREFIX = settings.api_prefix


class TestApiException:
    def test_to_dict_includes_extra_fields(self):
        exc = ApiException("custom", "Something happened", extra={"details": {"a": 1}})

        assert exc.to_dict() == {"error": "custom", "message": "Something happened", "details": {"a": 1}}

    def test_validation_failed_without_errors(self):
        exc = ValidationFailedException()

        assert exc.status_code == status.HTTP_422_UNPROCESSABLE_CONTENT
        assert "errors" not in exc.to_dict()

    def test_bad_request(self):
        assert BadRequestException().to_dict()["error"] == "bad_request"


class TestErrorResponses:
    async def test_malformed_body_is_validation_failed(self, client):
        response = await client.post(f"{PREFIX}/auth/login", json={"email": "a@example.com"})

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_CONTENT
        data = response.json()
        assert data["error"] == "validation_failed"
        assert any(error.startswith("password") for error in data["errors"])

    async def test_unknown_route(self, client):
        response = await client.get(f"{PREFIX}/does-not-exist")

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestPublicEndpoints:
    async def test_root(self, client):
        response = await client.get("/")

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"message": settings.app_name, "status": "running"}

    async def test_health(self, client):
        response = await client.get("/health")

        assert response.json() == {"status": "healthy"}
