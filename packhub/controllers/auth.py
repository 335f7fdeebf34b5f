"""API key check endpoint."""

from litestar import Controller, post

from packhub.auth.api_key import api_key_guard


class AuthController(Controller):
    path = "/authenticate"
    guards = [api_key_guard]

    @post("/", status_code=200)
    async def authenticate(self) -> dict[str, str]:
        """Confirm that the caller's API key is valid."""
        return {"message": "API key authenticated successfully"}
