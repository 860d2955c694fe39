"""
AWS account scanner.

Checks run with boto3 in a worker thread. Credentials come from the
integration connection:

    {"access_key_id": "...", "secret_access_key": "...", "session_token": "..."}

When they are absent boto3 falls back to its default credential chain.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from complyhub.cloud.scanners import CloudScanner, Finding, register_scanner
from complyhub.exceptions import ScanError

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 14

_PUBLIC_ACCESS_FLAGS = (
    "BlockPublicAcls",
    "IgnorePublicAcls",
    "BlockPublicPolicy",
    "RestrictPublicBuckets",
)


def _error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "")


@register_scanner("aws")
class AwsScanner(CloudScanner):
    """Account-level IAM, CloudTrail and S3 checks."""

    def __init__(self, session_factory=None) -> None:
        self._session_factory = session_factory or boto3.session.Session

    async def scan(self, credentials: dict[str, Any], variables: dict[str, Any]) -> list[Finding]:
        region = variables.get("region") or credentials.get("region") or "us-east-1"
        try:
            return await asyncio.to_thread(self._run_checks, credentials, region)
        except (BotoCoreError, ClientError) as e:
            raise ScanError(f"AWS scan failed: {e}", provider="aws") from e

    def _session(self, credentials: dict[str, Any], region: str):
        kwargs: dict[str, Any] = {"region_name": region}
        if credentials.get("access_key_id") and credentials.get("secret_access_key"):
            kwargs["aws_access_key_id"] = credentials["access_key_id"]
            kwargs["aws_secret_access_key"] = credentials["secret_access_key"]
            if credentials.get("session_token"):
                kwargs["aws_session_token"] = credentials["session_token"]
        return self._session_factory(**kwargs)

    def _run_checks(self, credentials: dict[str, Any], region: str) -> list[Finding]:
        session = self._session(credentials, region)
        iam = session.client("iam")
        findings = [
            self.check_root_mfa(iam),
            self.check_password_policy(iam),
            self.check_cloudtrail(session.client("cloudtrail")),
        ]
        findings.extend(self.check_s3_buckets(session.client("s3")))
        logger.info(
            "AWS scan finished: %d checks, %d failed",
            len(findings),
            sum(1 for f in findings if not f.passed),
        )
        return findings

    # ── IAM ─────────────────────────────────────────────────────────

    def check_root_mfa(self, iam) -> Finding:
        summary = iam.get_account_summary()["SummaryMap"]
        enabled = summary.get("AccountMFAEnabled") == 1
        return Finding(
            check_id="aws-iam-root-mfa",
            title="Root account has MFA enabled",
            status="passed" if enabled else "failed",
            severity="critical",
            description="The root user can do anything in the account and must be protected by MFA.",
            resource_id="root",
            remediation=None if enabled else "Enable a hardware or virtual MFA device for the root user.",
        )

    def check_password_policy(self, iam) -> Finding:
        finding = Finding(
            check_id="aws-iam-password-policy",
            title=f"IAM password policy requires at least {MIN_PASSWORD_LENGTH} characters",
            status="passed",
            severity="medium",
            resource_id="account-password-policy",
        )
        try:
            policy = iam.get_account_password_policy()["PasswordPolicy"]
        except ClientError as e:
            if _error_code(e) != "NoSuchEntity":
                raise
            finding.status = "failed"
            finding.description = "No account password policy is configured."
            finding.remediation = "Create an account password policy in IAM settings."
            return finding

        length = policy.get("MinimumPasswordLength", 0)
        if length < MIN_PASSWORD_LENGTH:
            finding.status = "failed"
            finding.description = f"Minimum password length is {length}."
            finding.remediation = f"Set the minimum password length to {MIN_PASSWORD_LENGTH} or more."
        return finding

    # ── CloudTrail ──────────────────────────────────────────────────

    def check_cloudtrail(self, cloudtrail) -> Finding:
        trails = cloudtrail.describe_trails().get("trailList", [])
        logging_trail = None
        for trail in trails:
            if not trail.get("IsMultiRegionTrail"):
                continue
            status = cloudtrail.get_trail_status(Name=trail.get("TrailARN") or trail["Name"])
            if status.get("IsLogging"):
                logging_trail = trail
                break

        if logging_trail:
            return Finding(
                check_id="aws-cloudtrail-multi-region",
                title="A multi-region CloudTrail trail is logging",
                status="passed",
                severity="high",
                resource_id=logging_trail.get("TrailARN") or logging_trail.get("Name"),
            )
        return Finding(
            check_id="aws-cloudtrail-multi-region",
            title="A multi-region CloudTrail trail is logging",
            status="failed",
            severity="high",
            description="No multi-region trail is recording API activity.",
            remediation="Create a multi-region trail and start logging.",
        )

    # ── S3 ──────────────────────────────────────────────────────────

    def check_s3_buckets(self, s3) -> list[Finding]:
        findings: list[Finding] = []
        for bucket in s3.list_buckets().get("Buckets", []):
            name = bucket["Name"]
            findings.append(self._check_public_access_block(s3, name))
            findings.append(self._check_default_encryption(s3, name))
        return findings

    def _check_public_access_block(self, s3, bucket: str) -> Finding:
        finding = Finding(
            check_id="aws-s3-public-access-block",
            title="S3 bucket blocks public access",
            status="passed",
            severity="high",
            resource_id=bucket,
        )
        try:
            config = s3.get_public_access_block(Bucket=bucket)["PublicAccessBlockConfiguration"]
        except ClientError as e:
            if _error_code(e) != "NoSuchPublicAccessBlockConfiguration":
                raise
            config = {}

        missing = [flag for flag in _PUBLIC_ACCESS_FLAGS if not config.get(flag)]
        if missing:
            finding.status = "failed"
            finding.description = f"Public access block settings disabled: {', '.join(missing)}."
            finding.remediation = "Enable all four S3 Block Public Access settings on the bucket."
        return finding

    def _check_default_encryption(self, s3, bucket: str) -> Finding:
        finding = Finding(
            check_id="aws-s3-default-encryption",
            title="S3 bucket has default encryption",
            status="passed",
            severity="medium",
            resource_id=bucket,
        )
        try:
            s3.get_bucket_encryption(Bucket=bucket)
        except ClientError as e:
            if _error_code(e) != "ServerSideEncryptionConfigurationNotFoundError":
                raise
            finding.status = "failed"
            finding.description = "Bucket has no default server-side encryption."
            finding.remediation = "Enable SSE-S3 or SSE-KMS default encryption on the bucket."
        return finding
