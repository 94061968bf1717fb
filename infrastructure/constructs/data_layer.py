"""
Data layer construct: orders + idempotency DynamoDB tables, signing secret,
and the ticket delivery queue.
"""

from aws_cdk import (
    RemovalPolicy,
    Duration,
    aws_dynamodb as dynamodb,
    aws_secretsmanager as secretsmanager,
    aws_sqs as sqs,
)
from constructs import Construct


class DataLayerConstruct(Construct):
    """Provision storage and secrets for the ticket core."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        environment: str,
    ) -> None:
        super().__init__(scope, construct_id)

        removal = RemovalPolicy.RETAIN if environment == "prod" else RemovalPolicy.DESTROY

        # HMAC key for ticket payloads; the Lambda reads it once per cold start.
        self.signing_secret = secretsmanager.Secret(
            self,
            "TicketSigningSecret",
            generate_secret_string=secretsmanager.SecretStringGenerator(
                secret_string_template="{}",
                generate_string_key="secret",
                password_length=64,
                exclude_punctuation=True,
            ),
            removal_policy=removal,
        )

        # Orders keyed by id; conditional updates guard redemption.
        self.orders_table = dynamodb.Table(
            self,
            "Orders",
            partition_key=dynamodb.Attribute(name="id", type=dynamodb.AttributeType.STRING),
            billing_mode=dynamodb.BillingMode.PAY_PER_REQUEST,
            point_in_time_recovery=environment == "prod",
            removal_policy=removal,
        )
        # Single-partition GSI giving a global newest-first listing.
        self.orders_table.add_global_secondary_index(
            index_name="created_at_index",
            partition_key=dynamodb.Attribute(
                name="record_type", type=dynamodb.AttributeType.STRING
            ),
            sort_key=dynamodb.Attribute(name="created_at", type=dynamodb.AttributeType.STRING),
            projection_type=dynamodb.ProjectionType.KEYS_ONLY,
        )

        # Checkout retry keys; DynamoDB TTL reaps expired rows.
        self.idempotency_table = dynamodb.Table(
            self,
            "IdempotencyKeys",
            partition_key=dynamodb.Attribute(
                name="idempotency_key", type=dynamodb.AttributeType.STRING
            ),
            billing_mode=dynamodb.BillingMode.PAY_PER_REQUEST,
            removal_policy=RemovalPolicy.DESTROY,
            time_to_live_attribute="expires_at",
        )

        # Hand-off to the external renderer/mailer.
        self.notification_dlq = sqs.Queue(
            self,
            "TicketDeliveryDlq",
            retention_period=Duration.days(14),
        )
        self.notification_queue = sqs.Queue(
            self,
            "TicketDelivery",
            visibility_timeout=Duration.seconds(60),
            dead_letter_queue=sqs.DeadLetterQueue(max_receive_count=5, queue=self.notification_dlq),
        )
