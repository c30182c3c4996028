"""Shared configuration management for the platform.

Based on Pydantic Settings v2 best practices:
https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""

from decimal import Decimal
from typing import TYPE_CHECKING, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from services.analysis.analyzer import AnalyzerConfig


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with the prefix 'APP_'.
    Example: APP_LOG_LEVEL=debug
    """

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Service configuration
    service_name: str = Field(
        default="receivables-audit",
        description="Service identifier for metrics and logs",
    )
    service_version: str = Field(
        default="0.1.0",
        description="Service version",
    )

    # Upload limits
    max_upload_bytes: int = Field(
        default=10 * 1024 * 1024,
        description="Largest accepted CSV upload in bytes",
        gt=0,
    )

    # Analyzer thresholds (defaults reproduce the standard audit rules)
    audit_reconciliation_tolerance: Decimal = Field(
        default=Decimal("1.0"),
        description="Absolute tolerance between recorded and computed outstanding",
        ge=0,
    )
    audit_materiality_threshold: Decimal = Field(
        default=Decimal("100"),
        description="Outstanding balance at or below which an invoice counts as paid",
        ge=0,
    )
    audit_outlier_sigma: Decimal = Field(
        default=Decimal("3"),
        description="Standard deviations above the mean for UNUSUAL_HIGH_VALUE",
        gt=0,
    )
    audit_outlier_min_samples: int = Field(
        default=6,
        description="Minimum invoice count before the outlier detector runs",
        ge=1,
    )
    audit_dso_period_days: int = Field(
        default=365,
        description="Days in the DSO period",
        gt=0,
    )
    audit_dso_risk_threshold: Decimal = Field(
        default=Decimal("60"),
        description="DSO above which the risk score receives the DSO penalty",
        ge=0,
    )
    audit_dso_penalty: int = Field(
        default=10,
        description="Risk score points added when DSO exceeds the threshold",
        ge=0,
    )
    audit_high_severity_penalty: int = Field(
        default=10,
        description="Risk score points added per HIGH severity anomaly",
        ge=0,
    )
    audit_flag_data_quality: bool = Field(
        default=True,
        description="Record DATA_QUALITY findings for unparseable values and skipped rows",
    )
    audit_customer_detail_limit: int = Field(
        default=5,
        description="Maximum invoices returned by the customer details query",
        ge=1,
    )

    def analyzer_config(self) -> "AnalyzerConfig":
        """Build analyzer configuration from the audit_* settings.

        Returns:
            AnalyzerConfig populated from environment overrides
        """
        from services.analysis.analyzer import AnalyzerConfig

        return AnalyzerConfig(
            reconciliation_tolerance=self.audit_reconciliation_tolerance,
            materiality_threshold=self.audit_materiality_threshold,
            outlier_sigma=self.audit_outlier_sigma,
            outlier_min_samples=self.audit_outlier_min_samples,
            dso_period_days=self.audit_dso_period_days,
            dso_risk_threshold=self.audit_dso_risk_threshold,
            dso_penalty=self.audit_dso_penalty,
            high_severity_penalty=self.audit_high_severity_penalty,
            flag_data_quality=self.audit_flag_data_quality,
        )


def get_settings() -> Settings:
    """Factory function to get settings instance.

    Returns:
        Configured Settings instance
    """
    return Settings()
