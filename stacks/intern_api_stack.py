import os

from aws_cdk import (
    CfnOutput,
    Duration,
    RemovalPolicy,
    Stack,
    aws_apigateway as apigw,
    aws_dynamodb as ddb,
    aws_lambda as _lambda,
    aws_logs as logs,
)
from constructs import Construct


class InternApiStack(Stack):
    def __init__(self, scope: Construct, construct_id: str, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        stage_name = os.getenv("STAGE", "prod")
        data_retention_mode = os.getenv("DATA_RETENTION_MODE", "destroy").strip().lower()
        if data_retention_mode not in {"destroy", "retain"}:
            raise ValueError(
                "DATA_RETENTION_MODE must be 'destroy' or 'retain' (case-insensitive)"
            )
        # Dev-first default: delete stateful resources on teardown.
        # For production deployments, set DATA_RETENTION_MODE=retain.
        stateful_removal_policy = (
            RemovalPolicy.DESTROY
            if data_retention_mode == "destroy"
            else RemovalPolicy.RETAIN
        )
        schema_version = "2025-08-01"
        name_prefix = f"{construct_id}-{stage_name}"

        interns_table = ddb.Table(
            self,
            "Interns",
            partition_key=ddb.Attribute(name="internId", type=ddb.AttributeType.STRING),
            billing_mode=ddb.BillingMode.PAY_PER_REQUEST,
            point_in_time_recovery=True,
            removal_policy=stateful_removal_policy,
        )

        interns_log_group = logs.LogGroup(
            self,
            "InternsHandlerLogGroup",
            retention=logs.RetentionDays.ONE_WEEK,
            removal_policy=stateful_removal_policy,
        )

        interns_fn = _lambda.Function(
            self,
            "InternsHandler",
            runtime=_lambda.Runtime.PYTHON_3_12,
            handler="intern_handler.handler",
            code=_lambda.Code.from_asset("lambda"),
            timeout=Duration.seconds(20),
            log_group=interns_log_group,
            environment={
                "INTERNS_TABLE": interns_table.table_name,
                "INTERNS_SCHEMA_VERSION": schema_version,
            },
        )
        interns_table.grant_read_write_data(interns_fn)

        rest_api = apigw.RestApi(
            self,
            "InternsApi",
            rest_api_name=f"{name_prefix}-interns-api",
            deploy_options=apigw.StageOptions(stage_name=stage_name),
            default_cors_preflight_options=apigw.CorsOptions(
                allow_origins=apigw.Cors.ALL_ORIGINS,
                allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
                allow_headers=["Content-Type", "Authorization"],
            ),
        )
        integration = apigw.LambdaIntegration(interns_fn)

        interns = rest_api.root.add_resource("interns")
        interns_count = interns.add_resource("count")
        interns_tasks = interns.add_resource("tasks")
        interns_tasks_summary = interns_tasks.add_resource("summary")
        intern = interns.add_resource("{internId}")
        intern_tasks = intern.add_resource("tasks")
        intern_task = intern_tasks.add_resource("{taskId}")
        intern_task_status = intern_task.add_resource("status")

        interns.add_method("GET", integration)
        interns.add_method("POST", integration)
        interns_count.add_method("GET", integration)
        interns_tasks_summary.add_method("GET", integration)
        intern.add_method("GET", integration)
        intern.add_method("PATCH", integration)
        intern.add_method("DELETE", integration)
        intern_tasks.add_method("POST", integration)
        intern_task_status.add_method("PATCH", integration)

        CfnOutput(
            self,
            "InternsInvokeUrl",
            value=rest_api.url,
            description="API stage root; use as INTERNS_API_ENDPOINT.",
        )
        CfnOutput(
            self,
            "InternsTableName",
            value=interns_table.table_name,
            description="DynamoDB table holding intern records.",
        )
