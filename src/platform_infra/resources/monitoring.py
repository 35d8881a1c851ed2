"""
Monitoring construct
One SNS alert topic per monitored scope, with CloudWatch alarms wired to it
"""
from typing import List, Optional

from aws_cdk import (
    Duration,
    aws_apigateway as apigateway,
    aws_cloudwatch as cloudwatch,
    aws_cloudwatch_actions as cw_actions,
    aws_lambda as _lambda,
    aws_rds as rds,
    aws_sns as sns,
    aws_sns_subscriptions as sns_subs,
)
from constructs import Construct

from platform_infra.config import EnvironmentConfig

DURATION_TIMEOUT_RATIO = 0.8


def free_storage_threshold(allocated_storage_gb: int) -> float:
    """Free-storage alarm threshold in bytes: 15% of the allocated storage"""
    return allocated_storage_gb * 1024 * 1024 * 1024 * 0.15


def duration_threshold_ms(timeout_seconds: int) -> float:
    """Duration alarm threshold in milliseconds: 80% of the function timeout"""
    return timeout_seconds * DURATION_TIMEOUT_RATIO * 1000


class ResourceMonitoring(Construct):
    """
    Alerting for a single construct scope.

    The topic is created once here; every alarm added through the
    ``add_*_monitoring`` methods notifies it.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        config: EnvironmentConfig,
        alert_email: Optional[str] = None,
    ) -> None:
        super().__init__(scope, construct_id)

        self.config = config
        self.alert_email = alert_email or config.monitoring.alert_email
        self.alarms: List[cloudwatch.Alarm] = []

        self.alert_topic = sns.Topic(
            self,
            "AlertTopic",
            display_name=f"{config.stage}-alerts",
        )
        self.alert_topic.add_subscription(
            sns_subs.EmailSubscription(self.alert_email)
        )

    @property
    def _period(self) -> Duration:
        return Duration.minutes(self.config.monitoring.period_minutes)

    def _alarm(
        self,
        alarm_id: str,
        metric: cloudwatch.IMetric,
        threshold: float,
        comparison_operator: cloudwatch.ComparisonOperator,
        description: str,
    ) -> cloudwatch.Alarm:
        alarm = cloudwatch.Alarm(
            self,
            alarm_id,
            metric=metric,
            threshold=threshold,
            evaluation_periods=self.config.monitoring.evaluation_periods,
            comparison_operator=comparison_operator,
            treat_missing_data=cloudwatch.TreatMissingData.NOT_BREACHING,
            alarm_description=description,
        )
        alarm.add_alarm_action(cw_actions.SnsAction(self.alert_topic))
        self.alarms.append(alarm)
        return alarm

    def add_lambda_monitoring(self, fn: _lambda.IFunction) -> List[cloudwatch.Alarm]:
        """Error-count and duration alarms for a function"""
        monitoring = self.config.monitoring
        name = fn.node.id

        error_alarm = self._alarm(
            f"{name}ErrorAlarm",
            fn.metric_errors(period=self._period, statistic="Sum"),
            monitoring.lambda_error_threshold,
            cloudwatch.ComparisonOperator.GREATER_THAN_OR_EQUAL_TO_THRESHOLD,
            f"{name}: {monitoring.lambda_error_threshold}+ errors per period",
        )

        duration_alarm = self._alarm(
            f"{name}DurationAlarm",
            fn.metric_duration(period=self._period, statistic="Average"),
            duration_threshold_ms(self.config.compute.timeout),
            cloudwatch.ComparisonOperator.GREATER_THAN_OR_EQUAL_TO_THRESHOLD,
            f"{name}: average duration above 80% of the {self.config.compute.timeout}s timeout",
        )

        return [error_alarm, duration_alarm]

    def _api_metric(self, api: apigateway.RestApi, metric_name: str, statistic: str) -> cloudwatch.Metric:
        return cloudwatch.Metric(
            namespace="AWS/ApiGateway",
            metric_name=metric_name,
            dimensions_map={"ApiName": api.rest_api_name},
            period=self._period,
            statistic=statistic,
        )

    def add_api_gateway_monitoring(self, api: apigateway.RestApi) -> List[cloudwatch.Alarm]:
        """5XX, 4XX and latency alarms for a REST API"""
        monitoring = self.config.monitoring
        name = api.node.id

        server_error_alarm = self._alarm(
            f"{name}ServerErrorAlarm",
            self._api_metric(api, "5XXError", "Sum"),
            monitoring.api_5xx_threshold,
            cloudwatch.ComparisonOperator.GREATER_THAN_OR_EQUAL_TO_THRESHOLD,
            f"{name}: {monitoring.api_5xx_threshold}+ 5XX responses per period",
        )

        # Client errors are less severe, so the bar is higher
        client_error_alarm = self._alarm(
            f"{name}ClientErrorAlarm",
            self._api_metric(api, "4XXError", "Sum"),
            monitoring.api_4xx_threshold,
            cloudwatch.ComparisonOperator.GREATER_THAN_OR_EQUAL_TO_THRESHOLD,
            f"{name}: {monitoring.api_4xx_threshold}+ 4XX responses per period",
        )

        latency_alarm = self._alarm(
            f"{name}LatencyAlarm",
            self._api_metric(api, "Latency", "Average"),
            monitoring.api_latency_threshold_ms,
            cloudwatch.ComparisonOperator.GREATER_THAN_OR_EQUAL_TO_THRESHOLD,
            f"{name}: average latency above {monitoring.api_latency_threshold_ms}ms",
        )

        return [server_error_alarm, client_error_alarm, latency_alarm]

    def add_rds_monitoring(
        self,
        instance: rds.DatabaseInstance,
        allocated_storage_gb: int,
    ) -> List[cloudwatch.Alarm]:
        """CPU and free-storage alarms for a database instance"""
        monitoring = self.config.monitoring
        name = instance.node.id

        cpu_alarm = self._alarm(
            f"{name}CpuAlarm",
            instance.metric_cpu_utilization(period=self._period, statistic="Average"),
            monitoring.rds_cpu_threshold_percent,
            cloudwatch.ComparisonOperator.GREATER_THAN_OR_EQUAL_TO_THRESHOLD,
            f"{name}: CPU at or above {monitoring.rds_cpu_threshold_percent}%",
        )

        storage_alarm = self._alarm(
            f"{name}StorageAlarm",
            instance.metric_free_storage_space(period=self._period, statistic="Average"),
            free_storage_threshold(allocated_storage_gb),
            cloudwatch.ComparisonOperator.LESS_THAN_THRESHOLD,
            f"{name}: free storage below 15% of {allocated_storage_gb} GiB",
        )

        return [cpu_alarm, storage_alarm]
