"""
Unit tests for FieldTransformers

Covers:
  - Generic field computation for unregistered producers
  - Producer overrides flowing through transform()
  - Suppression and informational upgrade
  - Result construction (status, messages, code_desc, start_time)
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from asff_hdf.config_loader import get_default_config
from asff_hdf.exceptions import MissingFieldError
from asff_hdf.invoker import OverrideInvoker
from asff_hdf.models import ControlRecord
from asff_hdf.producers import ProducerRegistry
from asff_hdf.schemas import HdfDescription, HdfRef, ResultStatus
from asff_hdf.supporting_docs import ConfigRuleMapping
from asff_hdf.transformers import FieldTransformers

GUARDDUTY_ARN = "arn:aws:securityhub:us-east-1::product/aws/guardduty"
SECURITYHUB_ARN = "arn:aws:securityhub:us-east-1::product/aws/securityhub"
PROWLER_ARN = "arn:aws:securityhub:us-east-1::product/prowler/prowler"


def _make_finding(**kwargs):
    """Build a minimal valid finding, overriding fields with kwargs."""
    defaults = {
        "ProductArn": GUARDDUTY_ARN,
        "GeneratorId": "arn:aws:guardduty:detector/Recon:EC2-PortProbe",
        "Title": "Unprotected port on EC2 instance",
        "Description": "EC2 instance has an unprotected port",
        "Severity": {"Label": "MEDIUM"},
        "Resources": [{"Type": "AwsEc2Instance", "Id": "i-0abc"}],
    }
    defaults.update(kwargs)
    return defaults


@pytest.fixture
def transformers():
    invoker = OverrideInvoker.from_supporting_docs(
        ProducerRegistry(), None, ConfigRuleMapping.load()
    )
    return FieldTransformers(invoker)


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


class TestIdentity:

    def test_generic_id_and_title(self, transformers):
        record = transformers.transform(_make_finding())
        assert record.id == "arn:aws:guardduty:detector/Recon:EC2-PortProbe"
        assert record.title == "Unprotected port on EC2 instance"
        assert record.desc == "EC2 instance has an unprotected port"

    def test_generic_fields_encoded(self, transformers):
        record = transformers.transform(_make_finding(Title="a < b", Description='"quoted"'))
        assert record.title == "a &lt; b"
        assert record.desc == "&quot;quoted&quot;"

    def test_missing_description_is_empty(self, transformers):
        finding = _make_finding()
        del finding["Description"]
        assert transformers.transform(finding).desc == ""

    def test_prowler_override(self, transformers):
        record = transformers.transform(
            _make_finding(ProductArn=PROWLER_ARN, GeneratorId="prowler-ec2_ebs_public_snapshot")
        )
        assert record.id == "ec2_ebs_public_snapshot"

    @pytest.mark.parametrize("field", ["ProductArn", "GeneratorId", "Title", "Severity", "Resources"])
    def test_required_fields(self, transformers, field):
        finding = _make_finding()
        del finding[field]
        with pytest.raises(MissingFieldError) as excinfo:
            transformers.transform(finding)
        assert excinfo.value.path == field


# ---------------------------------------------------------------------------
# Impact / tags
# ---------------------------------------------------------------------------


class TestImpact:

    def test_label(self, transformers):
        assert transformers.impact(_make_finding(Severity={"Label": "HIGH"})) == 0.7

    def test_normalized(self, transformers):
        assert transformers.impact(_make_finding(Severity={"Normalized": 40})) == 0.4

    def test_informational_upgraded_by_default(self, transformers):
        assert transformers.impact(_make_finding(Severity={"Label": "INFORMATIONAL"})) == 0.5

    def test_informational_kept_when_disabled(self):
        config = get_default_config()
        config["upgrade_informational"] = False
        invoker = OverrideInvoker.from_supporting_docs(ProducerRegistry())
        transformers = FieldTransformers(invoker, config)
        assert transformers.impact(_make_finding(Severity={"Label": "INFORMATIONAL"})) == 0.0

    def test_suppressed_is_zero_even_with_override(self, transformers):
        finding = _make_finding(
            ProductArn=SECURITYHUB_ARN,
            Severity={"Label": "CRITICAL"},
            Workflow={"Status": "SUPPRESSED"},
        )
        assert transformers.impact(finding) == 0.0

    def test_default_nist_tags(self, transformers):
        assert transformers.nist_tags(_make_finding()) == ("SA-11", "RA-5")

    def test_mapped_nist_tags(self, transformers):
        finding = _make_finding(
            ProductArn=SECURITYHUB_ARN,
            ProductFields={
                "RelatedAWSResources:0/type": "AWS::Config::ConfigRule",
                "RelatedAWSResources:0/name": "securityhub-restricted-ssh-9f8e7d",
            },
        )
        assert transformers.nist_tags(finding) == ("AC-4", "SC-7", "SC-7(3)")


# ---------------------------------------------------------------------------
# Descriptions / refs
# ---------------------------------------------------------------------------


class TestDescriptions:

    def test_fix_text_and_url(self, transformers):
        finding = _make_finding(
            Remediation={"Recommendation": {"Text": "Close the port", "Url": "https://docs.example/fix"}}
        )
        assert transformers.fix_descriptions(finding) == (
            HdfDescription(label="fix", data="Close the port\nhttps://docs.example/fix"),
        )

    def test_fix_text_only(self, transformers):
        finding = _make_finding(Remediation={"Recommendation": {"Text": "Close it"}})
        assert transformers.fix_descriptions(finding)[0].data == "Close it"

    def test_no_remediation(self, transformers):
        assert transformers.fix_descriptions(_make_finding()) == ()

    def test_refs(self, transformers):
        assert transformers.refs(_make_finding(SourceUrl="https://console.example")) == (
            HdfRef(url="https://console.example"),
        )
        assert transformers.refs(_make_finding()) == ()


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class TestResult:

    def test_code_desc_lists_resources(self, transformers):
        finding = _make_finding(
            Resources=[
                {"Type": "AwsS3Bucket", "Id": "b1", "Partition": "aws", "Region": "us-east-1"},
                {"Type": "AwsS3Bucket", "Id": "b2"},
            ]
        )
        assert transformers.code_desc(finding) == (
            "Resources: [Type: AwsS3Bucket, Id: b1, Partition: aws, Region: us-east-1, "
            "Type: AwsS3Bucket, Id: b2]"
        )

    def test_code_desc_with_prowler_prefix(self, transformers):
        finding = _make_finding(ProductArn=PROWLER_ARN, Description="Snapshot is public")
        assert transformers.code_desc(finding) == (
            "Snapshot is public; Resources: [Type: AwsEc2Instance, Id: i-0abc]"
        )

    def test_code_desc_rejects_non_list(self, transformers):
        with pytest.raises(MissingFieldError):
            transformers.code_desc(_make_finding(Resources={"Type": "AwsS3Bucket"}))

    def test_failed_with_message(self, transformers):
        finding = _make_finding(
            Compliance={"Status": "FAILED", "StatusReasons": [{"ReasonCode": "X"}]},
            UpdatedAt="2024-01-02T00:00:00Z",
        )
        result = transformers.result(finding)
        assert result.status == ResultStatus.FAILED
        assert result.message == "ReasonCode: X"
        assert result.skip_message is None
        assert result.start_time == "2024-01-02T00:00:00Z"

    def test_last_observed_preferred(self, transformers):
        finding = _make_finding(
            LastObservedAt="2024-02-01T00:00:00Z", UpdatedAt="2024-01-02T00:00:00Z"
        )
        assert transformers.result(finding).start_time == "2024-02-01T00:00:00Z"

    def test_absent_status_skipped(self, transformers):
        result = transformers.result(_make_finding())
        assert result.status == ResultStatus.SKIPPED
        assert result.message is None
        assert result.skip_message is None


class TestTransform:

    def test_returns_record_with_one_result(self, transformers):
        record = transformers.transform(_make_finding())
        assert isinstance(record, ControlRecord)
        assert len(record.results) == 1
        assert record.impact == 0.5

    def test_record_is_immutable(self, transformers):
        record = transformers.transform(_make_finding())
        with pytest.raises(AttributeError):
            record.id = "other"
