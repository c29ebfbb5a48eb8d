"""
Tests for the token endpoints.
"""

from rest_framework import status
from rest_framework_simplejwt.tokens import AccessToken


class TestTokenObtain:
    """Tests for POST /api/v1/auth/token/."""

    url = "/api/v1/auth/token/"

    def test_issues_access_token_for_valid_credentials(self, api_client, user):
        """
        Given valid email and password
        When the token endpoint is called
        Then an access token bound to the user is returned

        Why it matters: the same token authenticates REST calls and the
        realtime socket handshake.
        """
        response = api_client.post(
            self.url,
            {"email": user.email, "password": "TestPass123!"},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        token = AccessToken(response.data["access"])
        assert str(token["user_id"]) == str(user.id)

    def test_rejects_wrong_password(self, api_client, user):
        response = api_client.post(
            self.url,
            {"email": user.email, "password": "wrong"},
            format="json",
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
