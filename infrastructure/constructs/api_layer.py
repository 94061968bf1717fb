"""
API layer construct: shared Lambda + HTTP API routes.

A single Lambda keeps the signer and store clients warm and reduces cold start costs.
Uses Docker bundling for dependencies (runs in CI/CD pipeline).
"""

from aws_cdk import (
    BundlingOptions,
    Duration,
    aws_lambda as _lambda,
    aws_apigatewayv2 as apigw,
    aws_apigatewayv2_integrations as integrations,
    aws_logs as logs,
)
from constructs import Construct


class ApiLayerConstruct(Construct):
    """Expose ticket endpoints via HTTP API."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        environment: str,
        orders_table_name: str,
        idempotency_table_name: str,
        signing_secret_arn: str,
        notification_queue_url: str,
        ticket_types: str,
        idempotency_ttl_seconds: int,
        admin_api_token: str = "",
        log_level: str = "INFO",
        log_retention_days: int = 7,
        lambda_memory_mb: int = 256,
        lambda_timeout_seconds: int = 10,
        storage_read_timeout_seconds: int = 3,
    ) -> None:
        super().__init__(scope, construct_id)

        # AWS-managed Powertools layer (includes pydantic, boto3 extras)
        # Using x86_64 for CI/CD compatibility (GitHub runners are x86_64)
        powertools_layer = _lambda.LayerVersion.from_layer_version_arn(
            self,
            "PowertoolsLayer",
            f"arn:aws:lambda:{scope.region}:017000801446:layer:AWSLambdaPowertoolsPythonV3-python312-x86:7"
        )

        # Bundle Lambda code with dependencies using Docker (works in CI/CD)
        # Installs python-json-logger on top of the layer
        bundled_code = _lambda.Code.from_asset(
            "src",
            bundling=BundlingOptions(
                image=_lambda.Runtime.PYTHON_3_12.bundling_image,
                command=[
                    "bash", "-c",
                    "pip install -r requirements-lambda.txt -t /asset-output && "
                    "cp -r . /asset-output"
                ],
            ),
        )

        self.main_lambda = _lambda.Function(
            self,
            "ApiHandler",
            runtime=_lambda.Runtime.PYTHON_3_12,
            handler="handlers.main.lambda_handler",
            code=bundled_code,
            layers=[powertools_layer],
            memory_size=lambda_memory_mb,
            timeout=Duration.seconds(lambda_timeout_seconds),
            architecture=_lambda.Architecture.X86_64,
            environment={
                "ENVIRONMENT": environment,
                "ORDER_STORE": "dynamodb",
                "ORDERS_TABLE": orders_table_name,
                "IDEMPOTENCY_TABLE": idempotency_table_name,
                "SIGNING_SECRET_ARN": signing_secret_arn,
                "NOTIFICATION_QUEUE_URL": notification_queue_url,
                "TICKET_TYPES": ticket_types,
                "IDEMPOTENCY_TTL_SECONDS": str(idempotency_ttl_seconds),
                "STORAGE_READ_TIMEOUT_SECONDS": str(storage_read_timeout_seconds),
                "NOTIFICATION_FLUSH_TIMEOUT_SECONDS": "2",
                "LOG_LEVEL": log_level,
                "ADMIN_API_TOKEN": admin_api_token,
            },
            log_retention=getattr(logs.RetentionDays, _retention_name(log_retention_days)),
        )

        # HTTP API with minimal latency and low cost.
        self.api = apigw.HttpApi(
            self,
            "HttpApi",
            api_name=f"ticket-api-{environment}",
            cors_preflight=apigw.CorsPreflightOptions(
                allow_origins=["*"],
                allow_methods=[apigw.CorsHttpMethod.GET, apigw.CorsHttpMethod.POST],
                allow_headers=["Content-Type", "Authorization", "Idempotency-Key"],
            ),
        )

        integration = integrations.HttpLambdaIntegration(
            "LambdaIntegration", self.main_lambda
        )

        route_defs = [
            (apigw.HttpMethod.GET, "/health"),
            (apigw.HttpMethod.POST, "/checkout"),
            (apigw.HttpMethod.GET, "/ticket/{id}"),
            (apigw.HttpMethod.POST, "/verify"),
            (apigw.HttpMethod.POST, "/redeem"),
            (apigw.HttpMethod.GET, "/admin/orders"),
        ]

        for method, path in route_defs:
            self.api.add_routes(
                path=path,
                methods=[method],
                integration=integration,
            )


def _retention_name(days: int) -> str:
    """Map a day count onto the RetentionDays enum member name."""
    return {7: "ONE_WEEK", 14: "TWO_WEEKS", 30: "ONE_MONTH", 90: "THREE_MONTHS"}.get(
        days, "ONE_WEEK"
    )
