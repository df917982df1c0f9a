"""
Verifier service for skill requests.
"""

from typing import Optional

from fastapi import Request, Response

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import NotConfiguredError, ValidationError
from .certs.store import CertificateStore
from .handlers.ability import Ability, create_ability_handler
from .pipeline.request_verifier import RequestVerifier, read_payload


class VerifierService(BaseService):
    """Verifier service implementation."""

    def __init__(
        self,
        ability: Optional[Ability] = None,
        *,
        config: Optional[ServiceConfig] = None,
        cert_store: Optional[CertificateStore] = None,
    ):
        super().__init__("verifier", 8020, config=config)

        self.cert_store = cert_store or CertificateStore(
            max_entries=self.config.cert_cache_max_entries,
            max_age=self.config.cert_cache_max_age_seconds,
            http_timeout=self.config.cert_fetch_timeout_seconds,
            metrics=self.metrics,
        )
        self.request_verifier = RequestVerifier(
            self.cert_store,
            tolerance=self.config.timestamp_tolerance_seconds,
            metrics=self.metrics,
        )
        self.ability_handler = create_ability_handler(ability) if ability is not None else None

        if not self.config.verification_enabled:
            self.logger.warning("Request verification is disabled; skill requests will not be authenticated")

        self._setup_verifier_routes()

    def _setup_verifier_routes(self):
        """Set up verifier-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "verifier",
                "message": "Skill Request Verifier",
                "version": "1.0.0"
            }

        @self.app.post("/verify")
        async def verify_request(request: Request):
            """Check the signature headers and body of a forwarded skill request."""
            body = await request.body()
            outcome = await self.request_verifier.check(request.headers, body)
            return outcome.model_dump()

        @self.app.post("/skill")
        async def handle_skill(request: Request):
            """Verify a skill request and hand it to the ability."""
            if self.ability_handler is None:
                raise NotConfiguredError("No ability handler configured.")

            body = await request.body()
            if self.config.verification_enabled:
                await self.request_verifier.verify(request.headers, body)

            payload = read_payload(body) if body else None
            if body and payload is None:
                raise ValidationError("Request body must be a JSON object.")

            response = await self.ability_handler(payload)
            if response is None:
                return Response(status_code=204)
            return response

    async def _check_dependencies(self):
        """Report certificate cache state."""
        if not self.cert_store.cache_enabled:
            return {"certificate_cache": "disabled"}
        return {"certificate_cache": f"{len(self.cert_store)}/{self.cert_store.max_entries} entries"}

    async def _shutdown(self) -> None:
        await self.cert_store.close()


def create_app(ability: Optional[Ability] = None, **kwargs):
    """Create FastAPI application."""
    service = VerifierService(ability, **kwargs)
    return service.app


if __name__ == "__main__":
    service = VerifierService()
    service.run()
