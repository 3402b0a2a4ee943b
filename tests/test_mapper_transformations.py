import pytest

from credit_ingest.api.schemas.shared import DetectedField, FieldMapping, MappingProfile, TransformationKind
from credit_ingest.domain.ingestion.mapper import (
    TRANSFORMATIONS,
    MappingEngine,
    apply_transformation,
    format_number,
    suggest_targets,
    transform,
)


def _mapping(source, target, transformation=TransformationKind.NONE, **kwargs):
    return FieldMapping(source_field=source, target_field=target, transformation=transformation, **kwargs)


class TestTransformations:

    def test_every_kind_is_registered(self):
        assert set(TRANSFORMATIONS) == set(TransformationKind)

    def test_string_operations(self):
        assert apply_transformation("Abebe", TransformationKind.UPPERCASE) == "ABEBE"
        assert apply_transformation("ABEBE", TransformationKind.LOWERCASE) == "abebe"
        assert apply_transformation("  Abebe  ", TransformationKind.TRIM) == "Abebe"

    @pytest.mark.parametrize("kind", [
        TransformationKind.UPPERCASE,
        TransformationKind.LOWERCASE,
        TransformationKind.TRIM,
    ])
    def test_string_operations_leave_non_strings_alone(self, kind):
        assert apply_transformation(42, kind) == 42
        assert apply_transformation(None, kind) is None
        assert apply_transformation(["a"], kind) == ["a"]

    def test_phone_format(self):
        assert apply_transformation("+251 91 123 4567", TransformationKind.PHONE_FORMAT) == "251911234567"
        assert apply_transformation("0911-123-456", TransformationKind.PHONE_FORMAT) == "0911123456"
        assert apply_transformation("12-34", TransformationKind.PHONE_FORMAT) == "12-34"

    def test_date_format(self):
        assert apply_transformation("20/10/2025", TransformationKind.DATE_FORMAT) == "2025-10-20"
        assert apply_transformation("2024-09-04T23:09:18Z", TransformationKind.DATE_FORMAT) == "2024-09-04"
        assert apply_transformation("sometime soon", TransformationKind.DATE_FORMAT) == "sometime soon"

    def test_number_format(self):
        assert format_number("ETB 1,234.567") == 1234.57
        assert format_number("1,000") == 1000
        assert format_number(12.0) == 12.0
        assert format_number("-5.5") == -5.5
        assert format_number("abc") == "abc"
        assert format_number(True) is True

    def test_none_passes_through_everything(self):
        for kind in TransformationKind:
            assert apply_transformation(None, kind) is None


class TestTransform:

    def test_only_mapped_targets_appear(self):
        records = [{"name": " abebe ", "income": "100", "secret": "x"}]
        mappings = {
            "fullName": _mapping("name", "fullName", TransformationKind.TRIM),
            "monthlyIncome": _mapping("income", "monthlyIncome", TransformationKind.NUMBER_FORMAT),
        }

        assert transform(records, mappings) == [{"fullName": "abebe", "monthlyIncome": 100}]

    def test_transform_is_pure(self):
        records = [{"name": "Abebe"}, {"name": "Sara"}]
        mappings = {"fullName": _mapping("name", "fullName", TransformationKind.UPPERCASE)}

        first = transform(records, mappings)
        second = transform(records, mappings)

        assert first == second == [{"fullName": "ABEBE"}, {"fullName": "SARA"}]
        assert records == [{"name": "Abebe"}, {"name": "Sara"}]

    def test_missing_source_leaves_target_absent(self):
        mappings = {"monthlyIncome": _mapping("income", "monthlyIncome")}
        assert transform([{"name": "Abebe"}], mappings) == [{}]

    def test_missing_source_uses_default_value(self):
        mappings = {"currency": _mapping("cur", "currency", default_value="ETB")}
        assert transform([{}, {"cur": "USD"}], mappings) == [{"currency": "ETB"}, {"currency": "USD"}]

    def test_non_object_records_do_not_raise(self):
        mappings = {"fullName": _mapping("name", "fullName")}
        assert transform([None, "row", 5], mappings) == [{}, {}, {}]


class TestMappingEngine:

    def test_same_target_twice_is_last_write_wins(self):
        engine = MappingEngine()
        engine.add_mapping("phone", "phoneNumber")
        engine.add_mapping("mobile", "phoneNumber", TransformationKind.PHONE_FORMAT)

        assert len(engine) == 1
        assert engine.get("phoneNumber").source_field == "mobile"
        assert engine.get("phoneNumber").transformation == TransformationKind.PHONE_FORMAT

    def test_update_mapping_is_partial(self):
        engine = MappingEngine()
        engine.add_mapping("income", "monthlyIncome")

        updated = engine.update_mapping("monthlyIncome", transformation=TransformationKind.NUMBER_FORMAT)

        assert updated.source_field == "income"
        assert updated.transformation == TransformationKind.NUMBER_FORMAT

    def test_update_target_rekeys_entry(self):
        engine = MappingEngine()
        engine.add_mapping("income", "monthlyIncome")

        engine.update_mapping("monthlyIncome", target_field="totalDebt")

        assert "monthlyIncome" not in engine
        assert engine.get("totalDebt").source_field == "income"

    def test_update_unknown_target_raises(self):
        with pytest.raises(KeyError):
            MappingEngine().update_mapping("missing", is_required=True)

    def test_remove_mapping(self):
        engine = MappingEngine()
        engine.add_mapping("phone", "phoneNumber")

        assert engine.remove_mapping("phoneNumber").source_field == "phone"
        assert engine.remove_mapping("phoneNumber") is None
        assert len(engine) == 0

    def test_blank_field_names_are_rejected(self):
        with pytest.raises(ValueError):
            MappingEngine().add_mapping("  ", "phoneNumber")

    def test_apply_profile_replaces_unsaved_edits(self):
        engine = MappingEngine()
        engine.add_mapping("draft", "fullName")
        profile = MappingProfile(
            name="CBE monthly",
            partner_id="CBE",
            field_mappings=[
                {"sourceField": "phone", "targetField": "phoneNumber", "transformation": "phone_format"},
            ],
        )

        engine.apply_profile(profile)

        assert list(engine.mappings) == ["phoneNumber"]

    def test_saved_table_round_trips_through_profile(self):
        engine = MappingEngine()
        engine.add_mapping("phone", "phoneNumber", TransformationKind.PHONE_FORMAT, is_required=True)
        engine.add_mapping("income", "monthlyIncome", TransformationKind.NUMBER_FORMAT, default_value=0)
        saved = engine.snapshot()

        wire = MappingProfile(name="p", partner_id="CBE", field_mappings=saved).model_dump(by_alias=True)
        restored = MappingEngine()
        restored.apply_profile(MappingProfile.model_validate(wire))

        assert restored.mappings == saved

    def test_snapshot_is_a_copy(self):
        engine = MappingEngine()
        engine.add_mapping("phone", "phoneNumber")
        snapshot = engine.snapshot()
        engine.clear()

        assert "phoneNumber" in snapshot
        assert len(engine) == 0


class TestSuggestions:

    def test_suggests_canonical_targets_by_alias(self):
        detected = [
            DetectedField(source_field="mobile", confidence=1.0),
            DetectedField(source_field="monthly_income", confidence=1.0),
            DetectedField(source_field="favourite_colour", confidence=1.0),
        ]

        assert suggest_targets(detected) == {"mobile": "phoneNumber", "monthly_income": "monthlyIncome"}

    def test_each_target_is_suggested_once(self):
        detected = [
            DetectedField(source_field="phoneNumber", confidence=1.0),
            DetectedField(source_field="phone_number", confidence=1.0),
        ]

        assert suggest_targets(detected) == {"phoneNumber": "phoneNumber"}

    def test_add_suggestions_keeps_existing_mappings(self):
        engine = MappingEngine()
        engine.add_mapping("cell", "phoneNumber")

        added = engine.add_suggestions([
            DetectedField(source_field="mobile", confidence=1.0),
            DetectedField(source_field="monthlyIncome", confidence=1.0),
        ])

        assert added == 1
        assert engine.get("phoneNumber").source_field == "cell"
        assert engine.get("monthlyIncome").source_field == "monthlyIncome"
