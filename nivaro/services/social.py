"""Social identity verification against the provider's userinfo API."""

import logging
from dataclasses import dataclass

import httpx

logger = logging.getLogger("nivaro")

PROVIDERS = {
    "google": "https://www.googleapis.com/oauth2/v3/userinfo",
    "github": "https://api.github.com/user",
}
GITHUB_EMAILS_URL = "https://api.github.com/user/emails"


@dataclass
class SocialProfile:
    """Identity asserted by a social provider."""

    provider: str
    provider_user_id: str
    email: str
    name: str
    avatar: str | None = None


class SocialIdentityVerifier:
    """Resolves a provider access token to a verified profile."""

    def __init__(self, timeout: float = 10.0) -> None:
        self.timeout = timeout

    def verify(self, provider: str, access_token: str) -> SocialProfile | None:
        """Return the profile behind the token, or None if it cannot be trusted."""
        url = PROVIDERS.get(provider)
        if not url:
            return None

        headers = {"Authorization": f"Bearer {access_token}", "Accept": "application/json"}
        if provider == "github":
            headers["Accept"] = "application/vnd.github+json"

        try:
            with httpx.Client(timeout=self.timeout, follow_redirects=False) as client:
                response = client.get(url, headers=headers)
                response.raise_for_status()
                userinfo = response.json()
                if not isinstance(userinfo, dict):
                    return None
                if provider == "google":
                    return self._parse_google(userinfo)
                return self._parse_github(client, headers, userinfo)
        except httpx.HTTPStatusError as e:
            logger.warning("Social token rejected by %s: HTTP %d", provider, e.response.status_code)
            return None
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Social identity lookup against %s failed: %s", provider, e)
            return None

    def _parse_google(self, userinfo: dict) -> SocialProfile | None:
        email = userinfo.get("email")
        if not userinfo.get("sub") or not email or not userinfo.get("email_verified"):
            return None
        return SocialProfile(
            provider="google",
            provider_user_id=str(userinfo["sub"]),
            email=email,
            name=userinfo.get("name") or email.split("@")[0],
            avatar=userinfo.get("picture"),
        )

    def _parse_github(self, client: httpx.Client, headers: dict, userinfo: dict) -> SocialProfile | None:
        if not userinfo.get("id"):
            return None
        # Only a primary, verified address is trusted as the account email.
        response = client.get(GITHUB_EMAILS_URL, headers=headers)
        response.raise_for_status()
        emails = response.json()
        email = next(
            (e.get("email") for e in emails if isinstance(e, dict) and e.get("primary") and e.get("verified")),
            None,
        )
        if not email:
            return None
        return SocialProfile(
            provider="github",
            provider_user_id=str(userinfo["id"]),
            email=email,
            name=userinfo.get("name") or userinfo.get("login") or email.split("@")[0],
            avatar=userinfo.get("avatar_url"),
        )


_social_verifier: SocialIdentityVerifier | None = None


def get_social_verifier() -> SocialIdentityVerifier:
    """Get singleton social identity verifier instance."""
    global _social_verifier
    if _social_verifier is None:
        _social_verifier = SocialIdentityVerifier()
    return _social_verifier
