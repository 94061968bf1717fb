"""
Main CDK Stack for the signed ticket API.
"""

from aws_cdk import (
    Stack,
    Tags,
    CfnOutput,
)
from constructs import Construct

from infrastructure.constructs.data_layer import DataLayerConstruct
from infrastructure.constructs.api_layer import ApiLayerConstruct
from infrastructure.config.settings import Settings


class TicketApiStack(Stack):
    """Main stack wiring all constructs together."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        settings: Settings,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        # Global tags for cost/accounting.
        Tags.of(self).add("Project", "signed-tickets")
        Tags.of(self).add("Environment", settings.environment)
        Tags.of(self).add("ManagedBy", "cdk")

        # 1) Data layer.
        data_construct = DataLayerConstruct(
            self,
            "DataLayer",
            environment=settings.environment,
        )

        # 2) API layer (single Lambda).
        api_construct = ApiLayerConstruct(
            self,
            "ApiLayer",
            environment=settings.environment,
            orders_table_name=data_construct.orders_table.table_name,
            idempotency_table_name=data_construct.idempotency_table.table_name,
            signing_secret_arn=data_construct.signing_secret.secret_arn,
            notification_queue_url=data_construct.notification_queue.queue_url,
            ticket_types=settings.ticket_types,
            idempotency_ttl_seconds=settings.idempotency_ttl_seconds,
            admin_api_token=settings.admin_api_token,
            log_level=settings.log_level,
            log_retention_days=settings.log_retention_days,
            lambda_memory_mb=settings.lambda_memory_mb,
            lambda_timeout_seconds=settings.lambda_timeout_seconds,
            storage_read_timeout_seconds=settings.storage_read_timeout_seconds,
        )

        # Permissions for the API Lambda.
        fn = api_construct.main_lambda
        data_construct.signing_secret.grant_read(fn)
        data_construct.orders_table.grant_read_write_data(fn)
        data_construct.idempotency_table.grant_read_write_data(fn)
        data_construct.notification_queue.grant_send_messages(fn)

        # Outputs to quickly find resources.
        CfnOutput(self, "ApiEndpoint", value=api_construct.api.api_endpoint)
        CfnOutput(self, "OrdersTable", value=data_construct.orders_table.table_name)
        CfnOutput(self, "IdempotencyTable", value=data_construct.idempotency_table.table_name)
        CfnOutput(self, "NotificationQueueUrl", value=data_construct.notification_queue.queue_url)
