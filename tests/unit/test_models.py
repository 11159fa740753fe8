# =============================================================================
# tests/unit/test_models.py
# Unit Tests for the Dataset Records
# =============================================================================

from datetime import date

import pytest


class TestDocumentRoundTrip:
    """Test conversion between records and the stored JSON document"""

    def test_round_trip_keeps_camel_case_keys(self, sample_dataset):
        """Stored keys stay camelCase"""
        document = sample_dataset.to_document()
        hospital = document[0]

        assert hospital["supervisorNationalId"] == "9000"
        assert hospital["departments"][0]["managerNationalId"] == "1000"
        assert hospital["departments"][0]["staff"][0]["assessments"][0]["skillCategories"][0]["name"] == "Care"

    def test_round_trip_is_lossless(self, sample_dataset):
        """Parsing the document again gives an equal dataset"""
        from skill_core.data.models import Dataset

        again = Dataset.from_document(sample_dataset.to_document())

        assert again == sample_dataset

    def test_unknown_keys_survive(self):
        """Keys the records do not model are written back untouched"""
        from skill_core.data.models import Dataset

        document = [{"id": "H9", "name": "X", "logoColor": "teal", "departments": [{"id": "D9", "floor": 3}]}]
        dataset = Dataset.from_document(document)

        assert dataset.hospitals[0].extra == {"logoColor": "teal"}
        out = dataset.to_document()
        assert out[0]["logoColor"] == "teal"
        assert out[0]["departments"][0]["floor"] == 3

    def test_none_fields_are_omitted(self):
        """Optional fields left as None are not written"""
        from skill_core.data.models import NewsBanner

        assert "description" not in NewsBanner(id="N", title="t").to_dict()

    def test_none_document_is_empty_dataset(self):
        from skill_core.data.models import Dataset

        assert len(Dataset.from_document(None)) == 0

    def test_non_list_document_rejected(self):
        """A document that is not a list of hospitals is invalid"""
        from skill_core.data.models import Dataset
        from skill_core.errors import DataValidationError

        with pytest.raises(DataValidationError):
            Dataset.from_document({"hospitals": []})

    def test_non_object_record_rejected(self):
        from skill_core.data.models import Dataset
        from skill_core.errors import DataValidationError

        with pytest.raises(DataValidationError):
            Dataset.from_document(["not a hospital"])

    def test_non_list_collection_becomes_empty(self):
        """A collection stored as something other than a list reads as empty"""
        from skill_core.data.models import Hospital

        hospital = Hospital.from_dict({"id": "H", "departments": None})

        assert hospital.departments == []


class TestDatasetLookups:
    """Test id-addressed lookups"""

    def test_find_hospital(self, sample_dataset):
        assert sample_dataset.find_hospital("H2").name == "Sina"
        assert sample_dataset.find_hospital("nope") is None

    def test_find_department_scoped_to_hospital(self, sample_dataset):
        """A hospital filter excludes departments of other hospitals"""
        hospital, department = sample_dataset.find_department("D1")
        assert hospital.id == "H1" and department.name == "ICU"

        assert sample_dataset.find_department("D1", hospital_id="H2") == (None, None)

    def test_find_staff(self, sample_dataset):
        hospital, department, staff = sample_dataset.find_staff("S1")

        assert (hospital.id, department.id, staff.name) == ("H1", "D1", "Sara")
        assert sample_dataset.find_staff("S9") == (None, None, None)

    def test_find_patient(self, sample_dataset):
        _, _, patient = sample_dataset.find_patient("P1", "H1", "D1")
        assert patient.name == "Patient One"

        assert sample_dataset.find_patient("P1", "H1", "D2")[2] is None

    def test_find_assessment_by_month_and_year(self, sample_dataset):
        _, _, staff = sample_dataset.find_staff("S1")

        assert staff.find_assessment("فروردین", 1403).id == "A1"
        assert staff.find_assessment("فروردین", 1402) is None

    def test_copy_is_deep(self, sample_dataset):
        clone = sample_dataset.copy()
        clone.hospitals[0].departments[0].name = "changed"

        assert sample_dataset.hospitals[0].departments[0].name == "ICU"


class TestCalendarHelpers:
    """Test month names and the Jalali year"""

    def test_twelve_months(self):
        from skill_core.data.models import MONTHS

        assert len(MONTHS) == 12
        assert MONTHS[0] == "فروردین"
        assert MONTHS[-1] == "اسفند"

    @pytest.mark.parametrize("today,expected", [
        (date(2024, 3, 20), 1402),
        (date(2024, 3, 21), 1403),
        (date(2024, 12, 31), 1403),
        (date(2025, 1, 1), 1403),
    ])
    def test_current_jalali_year(self, today, expected):
        from skill_core.data.models import current_jalali_year

        assert current_jalali_year(today) == expected

    def test_question_auto_gradable(self):
        from skill_core.data.models import Question

        assert Question(id="q", type="multiple-choice").auto_gradable
        assert not Question(id="q", type="descriptive").auto_gradable
