import logging
from typing import Optional
from urllib.parse import urlencode

import requests
from authlib.integrations.base_client import OAuthError
from authlib.integrations.requests_client import OAuth2Session
from authlib.oidc.core import CodeIDToken
from joserfc import jwt
from joserfc.errors import JoseError
from joserfc.jwk import KeySet
from requests.auth import AuthBase

from .errors import OidcProviderError, OidcRequestError, OidcValidationError
from .provider import EndpointSet
from .tokens import Tokens

logger = logging.getLogger("tunnistamo_common")


class _BearerAuth(AuthBase):
    def __init__(self, token):
        self.token = token

    def __call__(self, request):
        request.headers["authorization"] = "Bearer " + self.token
        return request


class OidcClient:
    """
    A stateless OpenID Connect client for a single provider environment, based on `authlib`.

    The `callback_uri` must be the final `redirect_uri`, after any redirect URL hooks
    have been applied, because the OIDC Provider compares the one used in the token request
    with the one sent in the authorization request.
    """

    def __init__(
        self,
        endpoints: EndpointSet,
        client_id: str,
        client_secret: str,
        callback_uri: str,
        post_logout_redirect_uri: Optional[str] = None,
        timeout: float = 10,
    ):
        self.endpoints = endpoints
        self.client_id = client_id
        self.client_secret = client_secret
        self.callback_uri = callback_uri
        self.post_logout_redirect_uri = post_logout_redirect_uri
        self.timeout = timeout

    def _create_session(self, scope: Optional[str] = None) -> OAuth2Session:
        return OAuth2Session(
            client_id=self.client_id,
            client_secret=self.client_secret,
            scope=scope,
            redirect_uri=self.callback_uri,
            token_endpoint_auth_method="client_secret_basic",
        )

    def _get_json(self, url: str, auth: Optional[AuthBase] = None) -> dict:
        try:
            response = requests.get(url, auth=auth, timeout=self.timeout)
        except requests.RequestException as error:
            raise OidcRequestError(f"Failed to connect to the OIDC Provider at {url}: {error}") from error

        try:
            body = response.json()
        except ValueError:
            raise OidcRequestError(
                f"Received a non-JSON response with status {response.status_code} from {url}:\n{response.text}"
            ) from None

        if not response.ok:
            if isinstance(body, dict) and "error" in body:
                raise OidcProviderError(body)
            raise OidcRequestError(f"Received an invalid error response from the OIDC Provider:\n{response.text}")

        if not isinstance(body, dict):
            raise OidcRequestError(f"Expected a JSON object from {url}")
        return body

    def get_authentication_url(self, scope: str, nonce: str, state: str, prompt_none: bool = False) -> str:
        extra_args = {"nonce": nonce}
        if prompt_none:
            extra_args["prompt"] = "none"

        url, _state = self._create_session(scope).create_authorization_url(
            self.endpoints.authorization,
            state=state,
            **extra_args,
        )
        return url

    def get_logout_url(self, id_token_hint: Optional[str]) -> str:
        params = {}
        if id_token_hint is not None:
            params["id_token_hint"] = id_token_hint
        if self.post_logout_redirect_uri is not None:
            params["post_logout_redirect_uri"] = self.post_logout_redirect_uri

        if not params:
            return self.endpoints.end_session
        return self.endpoints.end_session + "?" + urlencode(params)

    def parse_authorization_callback_response(self, query_params) -> dict:
        if "error" in query_params:
            raise OidcProviderError({
                "error": query_params.get("error"),
                "error_description": query_params.get("error_description", ""),
                "state": query_params.get("state"),
            })

        if not query_params.get("code") or not query_params.get("state"):
            raise OidcRequestError("Received an invalid response from the OIDC Provider: missing code or state")

        return {
            "code": query_params.get("code"),
            "state": query_params.get("state"),
        }

    def _verify_id_token(self, id_token: str, expected_nonce: str, access_token: str) -> dict:
        try:
            key_set = KeySet.import_key_set(self._get_json(self.endpoints.jwks))
            token = jwt.decode(id_token, key=key_set)
            claims = CodeIDToken(
                token.claims,
                token.header,
                {
                    "iss": {"essential": True, "value": self.endpoints.issuer},
                    "aud": {"essential": True, "value": self.client_id},
                },
                {
                    "nonce": expected_nonce,
                    "client_id": self.client_id,
                    "access_token": access_token,
                },
            )
            claims.validate(leeway=60)
        except (JoseError, ValueError) as error:
            raise OidcValidationError(f"The ID token returned by the OIDC Provider is not valid: {error}") from error

        return dict(claims)

    def exchange_code_for_tokens(self, code: str, expected_nonce: str) -> Tokens:
        session = self._create_session()
        try:
            response = session.fetch_token(
                self.endpoints.token,
                grant_type="authorization_code",
                code=code,
                redirect_uri=self.callback_uri,
                timeout=self.timeout,
            )
        except OAuthError as error:
            raise OidcProviderError({
                "error": error.error,
                "error_description": error.description or "",
            }) from error
        except (requests.RequestException, ValueError) as error:
            raise OidcRequestError(f"The token request to the OIDC Provider failed: {error}") from error

        if "id_token" not in response:
            raise OidcValidationError("The token response does not contain an ID token")

        id_token_claims = self._verify_id_token(
            response["id_token"],
            expected_nonce,
            response["access_token"],
        )
        logger.debug("Exchanged authorization code for tokens of sub %s", id_token_claims.get("sub"))
        try:
            return Tokens.from_response(response, id_token_claims)
        except ValueError as error:
            raise OidcValidationError(f"Invalid token response: {error}") from error

    def fetch_userinfo(self, access_token: str, expected_sub: Optional[str] = None) -> dict:
        userinfo = self._get_json(self.endpoints.userinfo, auth=_BearerAuth(access_token))

        # See https://openid.net/specs/openid-connect-core-1_0.html#UserInfoResponse
        if expected_sub is not None and userinfo.get("sub") != expected_sub:
            raise OidcValidationError(
                f"The sub returned by the userinfo endpoint:\n{userinfo.get('sub')}\n"
                f"does not match the one in the ID token:\n{expected_sub}"
            )
        return userinfo

    def load_provider_configuration(self) -> dict:
        """
        Fetches <issuer>/.well-known/openid-configuration and verifies the issuer.
        """

        config_url = self.endpoints.issuer + "/.well-known/openid-configuration"
        logger.debug("Loading OIDC Provider configuration from %s", config_url)

        configuration = self._get_json(config_url)
        if configuration.get("issuer") != self.endpoints.issuer:
            raise OidcValidationError(
                f"The issuer returned by the OIDC Provider:\n{configuration.get('issuer')}\n"
                f"does not match the one configured:\n{self.endpoints.issuer}"
            )
        logger.info("Fetched OIDC Provider configuration from %s", config_url)
        return configuration
