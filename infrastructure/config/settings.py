"""
Environment-specific deployment settings.

Cost-optimized defaults for development/testing.
"""

from dataclasses import dataclass
import os


@dataclass
class Settings:
    """Deployment settings with cost-optimized defaults."""

    # Environment
    environment: str = "dev"
    aws_region: str = "eu-west-2"  # Default AWS region

    # Ticket core
    ticket_types: str = "VIP,GENERAL-ADMISSION,HALF-PRICE,BOOTH"
    idempotency_ttl_seconds: int = 86400  # 24 hours

    # Lambda Configuration
    lambda_memory_mb: int = 256
    lambda_timeout_seconds: int = 10
    storage_read_timeout_seconds: int = 3  # Keep below the Lambda timeout

    # Admin listing stays closed unless a bearer token is provided at deploy time
    admin_api_token: str = ""

    # Observability
    log_level: str = "INFO"
    log_retention_days: int = 7

    @classmethod
    def from_environment(cls) -> "Settings":
        """Load settings from environment variables."""
        env = os.environ.get("ENVIRONMENT", "dev")
        region = os.environ.get("AWS_REGION", "eu-west-2")
        ticket_types = os.environ.get("TICKET_TYPES", cls.ticket_types)
        admin_api_token = os.environ.get("ADMIN_API_TOKEN", "")

        # Production overrides
        if env == "prod":
            return cls(
                environment="prod",
                aws_region=region,
                ticket_types=ticket_types,
                admin_api_token=admin_api_token,
                lambda_memory_mb=512,
                log_retention_days=30,
            )

        return cls(
            environment=env,
            aws_region=region,
            ticket_types=ticket_types,
            admin_api_token=admin_api_token,
        )
