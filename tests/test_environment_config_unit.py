"""
Unit tests for environment configuration resolution
"""
import logging
from dataclasses import FrozenInstanceError, replace

import aws_cdk as cdk
import pytest

from platform_infra.config import (
    DEFAULT_STAGE,
    ENVIRONMENTS,
    parse_instance_class,
    resolve_environment_config,
    storage_ceiling,
)
from platform_infra.config.environment_config import validate_environment, validate_environment_table
from platform_infra.errors import ConfigurationError, InstanceClassFormatError


@pytest.mark.unit
class TestResolveEnvironmentConfig:
    """Stage lookup and fallback"""

    def test_prod_is_protected(self):
        """Production keeps its data: multi-AZ, deletion protection, snapshot on teardown"""
        config = resolve_environment_config("prod", account="123456789012")

        assert config.stage == "prod"
        assert config.database.multi_az is True
        assert config.database.deletion_protection is True
        assert config.database.removal_policy == cdk.RemovalPolicy.SNAPSHOT
        assert config.is_protected

    def test_dev_is_disposable(self):
        """Development resources are destroyed with the stack"""
        config = resolve_environment_config("dev", account="123456789012")

        assert config.stage == "dev"
        assert config.database.multi_az is False
        assert config.database.deletion_protection is False
        assert config.database.removal_policy == cdk.RemovalPolicy.DESTROY
        assert not config.is_protected

    def test_tiers_differ_meaningfully(self):
        dev = ENVIRONMENTS["dev"]
        prod = ENVIRONMENTS["prod"]

        assert prod.database.allocated_storage > dev.database.allocated_storage
        assert prod.database.backup_retention_days > dev.database.backup_retention_days
        assert prod.compute.canary_deploy and not dev.compute.canary_deploy

    def test_unknown_stage_falls_back_to_default(self):
        config = resolve_environment_config("staging", account="123456789012")

        assert config == resolve_environment_config(DEFAULT_STAGE, account="123456789012")

    def test_lookup_is_case_sensitive(self):
        config = resolve_environment_config("PROD", account="123456789012")

        assert config.stage == DEFAULT_STAGE

    def test_unknown_stage_logs_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="platform_infra.config.environment_config"):
            resolve_environment_config("qa", account="123456789012")

        assert "Unknown stage 'qa'" in caplog.text

    def test_account_defaults_to_cdk_environment(self, monkeypatch):
        monkeypatch.setenv("CDK_DEFAULT_ACCOUNT", "210987654321")

        assert resolve_environment_config("dev").account == "210987654321"

    def test_explicit_account_and_region_win(self, monkeypatch):
        monkeypatch.setenv("CDK_DEFAULT_ACCOUNT", "210987654321")

        config = resolve_environment_config("dev", account="123456789012", region="us-east-1")

        assert config.account == "123456789012"
        assert config.region == "us-east-1"
        assert config.cdk_environment.region == "us-east-1"

    def test_missing_account_warns_about_zone_count(self, caplog, monkeypatch):
        monkeypatch.delenv("CDK_DEFAULT_ACCOUNT", raising=False)
        with caplog.at_level(logging.WARNING, logger="platform_infra.config.environment_config"):
            config = resolve_environment_config("prod")

        assert config.account is None
        assert "2 availability zones, not the configured 3" in caplog.text

    def test_two_zone_tier_without_account_is_quiet(self, caplog, monkeypatch):
        monkeypatch.delenv("CDK_DEFAULT_ACCOUNT", raising=False)
        with caplog.at_level(logging.WARNING, logger="platform_infra.config.environment_config"):
            resolve_environment_config("dev")

        assert caplog.text == ""

    def test_insights_only_in_prod(self):
        assert ENVIRONMENTS["prod"].compute.insights
        assert not ENVIRONMENTS["dev"].compute.insights

    def test_resolution_does_not_mutate_table(self):
        resolve_environment_config("prod", account="123456789012", region="us-west-2")

        assert ENVIRONMENTS["prod"].region == "eu-central-1"
        assert ENVIRONMENTS["prod"].account is None

    def test_config_is_immutable(self, dev_config):
        with pytest.raises(FrozenInstanceError):
            dev_config.stage = "prod"


@pytest.mark.unit
class TestInstanceClass:
    """Instance class string parsing"""

    def test_family_and_size(self):
        instance_class = parse_instance_class("t4g.micro")

        assert instance_class.family == "t4g"
        assert instance_class.size == "micro"
        assert str(instance_class) == "t4g.micro"

    @pytest.mark.parametrize("value", ["invalid", "t4g.", ".micro", "t4g.micro.extra", "", "T4G micro"])
    def test_malformed_is_fatal(self, value):
        with pytest.raises(InstanceClassFormatError):
            parse_instance_class(value)

    def test_error_is_a_configuration_error(self):
        with pytest.raises(ConfigurationError):
            parse_instance_class("invalid")


@pytest.mark.unit
class TestTableValidation:
    """Completeness and consistency checks run at import"""

    def test_shipped_table_is_valid(self):
        validate_environment_table(ENVIRONMENTS)

    def test_missing_default_stage(self):
        with pytest.raises(ConfigurationError):
            validate_environment_table({"prod": ENVIRONMENTS["prod"]})

    def test_key_must_match_stage(self):
        with pytest.raises(ConfigurationError):
            validate_environment_table({"dev": ENVIRONMENTS["dev"], "live": ENVIRONMENTS["prod"]})

    def test_protected_tier_cannot_destroy(self):
        prod = ENVIRONMENTS["prod"]
        broken = replace(prod, database=replace(prod.database, removal_policy=cdk.RemovalPolicy.DESTROY))

        with pytest.raises(ConfigurationError):
            validate_environment(broken)

    def test_client_errors_need_higher_threshold(self):
        dev = ENVIRONMENTS["dev"]
        broken = replace(dev, monitoring=replace(dev.monitoring, api_4xx_threshold=dev.monitoring.api_5xx_threshold))

        with pytest.raises(ConfigurationError):
            validate_environment(broken)

    def test_bad_cidr(self):
        dev = ENVIRONMENTS["dev"]
        broken = replace(dev, vpc=replace(dev.vpc, cidr="10.0.0.0/99"))

        with pytest.raises(ConfigurationError):
            validate_environment(broken)

    def test_bad_instance_class(self):
        dev = ENVIRONMENTS["dev"]
        broken = replace(dev, database=replace(dev.database, instance_class="micro"))

        with pytest.raises(InstanceClassFormatError):
            validate_environment(broken)


@pytest.mark.unit
def test_storage_ceiling_doubles():
    assert storage_ceiling(20) == 40
    assert storage_ceiling(100) == 200
