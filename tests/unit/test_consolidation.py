"""
Unit tests for the Consolidation Engine

Covers:
  - Grouping by (producer family, id)
  - Merge rules: title, impact, tags, desc, results, code
  - Cross-family id qualification
"""

import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from asff_hdf.consolidation import Consolidator
from asff_hdf.invoker import OverrideInvoker
from asff_hdf.producers import ProducerRegistry
from asff_hdf.transformers import FieldTransformers

GUARDDUTY_ARN = "arn:aws:securityhub:us-east-1::product/aws/guardduty"
INSPECTOR_ARN = "arn:aws:securityhub:us-east-1::product/aws/inspector"
PROWLER_ARN = "arn:aws:securityhub:us-east-1::product/prowler/prowler"


def _make_finding(**kwargs):
    defaults = {
        "ProductArn": GUARDDUTY_ARN,
        "GeneratorId": "G1",
        "Title": "T",
        "Description": "D",
        "Severity": {"Label": "LOW"},
        "Resources": [{"Type": "AwsEc2Instance", "Id": "i-1"}],
        "Compliance": {"Status": "FAILED"},
    }
    defaults.update(kwargs)
    return defaults


@pytest.fixture
def invoker():
    return OverrideInvoker.from_supporting_docs(ProducerRegistry())


@pytest.fixture
def consolidate(invoker):
    transformers = FieldTransformers(invoker)
    consolidator = Consolidator(invoker)

    def run(findings):
        records = [transformers.transform(f) for f in findings]
        return consolidator.consolidate(records, findings)

    return run


class TestGrouping:

    def test_same_id_same_family_merges(self, consolidate):
        controls = consolidate([
            _make_finding(Resources=[{"Type": "AwsEc2Instance", "Id": "i-1"}]),
            _make_finding(Resources=[{"Type": "AwsEc2Instance", "Id": "i-2"}]),
        ])
        assert len(controls) == 1
        assert len(controls[0].results) == 2

    def test_distinct_ids_stay_separate(self, consolidate):
        controls = consolidate([_make_finding(GeneratorId="A"), _make_finding(GeneratorId="B")])
        assert [c.id for c in controls] == ["A", "B"]

    def test_first_occurrence_order(self, consolidate):
        controls = consolidate([
            _make_finding(GeneratorId="B"),
            _make_finding(GeneratorId="A"),
            _make_finding(GeneratorId="B"),
        ])
        assert [c.id for c in controls] == ["B", "A"]

    def test_length_mismatch(self, invoker):
        with pytest.raises(ValueError):
            Consolidator(invoker).consolidate([], [_make_finding()])

    def test_empty(self, invoker):
        assert Consolidator(invoker).consolidate([], []) == []


class TestMerge:

    def test_impact_is_maximum_and_titles_joined(self, consolidate):
        controls = consolidate([
            _make_finding(Title="T1", Severity={"Label": "LOW"}),
            _make_finding(Title="T2", Severity={"Label": "CRITICAL"}),
        ])
        assert controls[0].impact == 0.9
        assert controls[0].title == "aws/guardduty: T1;T2"

    def test_duplicate_titles_collapsed(self, consolidate):
        controls = consolidate([_make_finding(), _make_finding(Resources=[{"Type": "X", "Id": "2"}])])
        assert controls[0].title == "aws/guardduty: T"

    def test_descriptions_joined(self, consolidate):
        controls = consolidate([
            _make_finding(Description="first"),
            _make_finding(Description="second"),
            _make_finding(Description="first"),
        ])
        assert controls[0].desc == "first\nsecond"

    def test_tags_under_policy_key(self, consolidate):
        controls = consolidate([_make_finding()])
        assert controls[0].tags == {"nist": ["SA-11", "RA-5"]}

    def test_identical_results_deduplicated(self, consolidate):
        controls = consolidate([_make_finding(), _make_finding()])
        assert len(controls[0].results) == 1
        assert len(json.loads(controls[0].code)["Findings"]) == 2

    def test_refs_and_fix_deduplicated(self, consolidate):
        extra = {
            "SourceUrl": "https://example/finding",
            "Remediation": {"Recommendation": {"Text": "Fix it"}},
        }
        controls = consolidate([
            _make_finding(**extra),
            _make_finding(Resources=[{"Type": "X", "Id": "2"}], **extra),
        ])
        assert [r.url for r in controls[0].refs] == ["https://example/finding"]
        assert [d.data for d in controls[0].descriptions] == ["Fix it"]

    def test_code_holds_raw_findings(self, consolidate):
        findings = [_make_finding(Title="<raw>")]
        controls = consolidate(findings)
        assert json.loads(controls[0].code) == {"Findings": findings}

    def test_prowler_product_name(self, consolidate):
        controls = consolidate([
            _make_finding(
                ProductArn=PROWLER_ARN,
                GeneratorId="prowler-s3_bucket_versioning",
                ProductFields={"ProviderName": "Prowler"},
            )
        ])
        assert controls[0].id == "s3_bucket_versioning"
        assert controls[0].title == "Prowler: T"


class TestQualification:

    def test_cross_family_collision_qualified(self, consolidate):
        controls = consolidate([
            _make_finding(ProductArn=GUARDDUTY_ARN, GeneratorId="X"),
            _make_finding(ProductArn=INSPECTOR_ARN, GeneratorId="X"),
        ])
        assert sorted(c.id for c in controls) == ["[aws/guardduty] X", "[aws/inspector] X"]

    def test_unique_ids_not_qualified(self, consolidate):
        controls = consolidate([
            _make_finding(ProductArn=GUARDDUTY_ARN, GeneratorId="X"),
            _make_finding(ProductArn=INSPECTOR_ARN, GeneratorId="Y"),
        ])
        assert sorted(c.id for c in controls) == ["X", "Y"]

    def test_only_colliding_ids_qualified(self, consolidate):
        controls = consolidate([
            _make_finding(ProductArn=GUARDDUTY_ARN, GeneratorId="X"),
            _make_finding(ProductArn=GUARDDUTY_ARN, GeneratorId="Z"),
            _make_finding(ProductArn=INSPECTOR_ARN, GeneratorId="X"),
        ])
        assert sorted(c.id for c in controls) == ["Z", "[aws/guardduty] X", "[aws/inspector] X"]

    def test_every_sub_finding_in_exactly_one_control(self, consolidate):
        findings = [
            _make_finding(ProductArn=GUARDDUTY_ARN, GeneratorId="X", Resources=[{"Type": "A", "Id": "1"}]),
            _make_finding(ProductArn=GUARDDUTY_ARN, GeneratorId="X", Resources=[{"Type": "A", "Id": "2"}]),
            _make_finding(ProductArn=INSPECTOR_ARN, GeneratorId="X", Resources=[{"Type": "A", "Id": "3"}]),
            _make_finding(ProductArn=INSPECTOR_ARN, GeneratorId="Y", Resources=[{"Type": "A", "Id": "4"}]),
        ]
        controls = consolidate(findings)
        assert sum(len(c.results) for c in controls) == len(findings)
        assert sum(len(json.loads(c.code)["Findings"]) for c in controls) == len(findings)
