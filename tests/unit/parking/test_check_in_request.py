"""
Tests unitaires CheckInRequest
"""

import pytest

from parkgate.core.exceptions import ValidationFailedError
from parkgate.parking import CheckInRequest, VehicleInfo


PAYLOAD = {
    "plate": "ABC-1234",
    "brand": "Fiat",
    "model": "Uno",
    "color": "Blanc",
    "national_id": "52998224725",
}


class TestCheckInRequest:
    def test_parse_valid(self):
        request = CheckInRequest.parse(PAYLOAD)

        assert request.vehicle() == VehicleInfo(plate="ABC-1234", brand="Fiat", model="Uno", color="Blanc")
        assert request.national_id == "52998224725"

    def test_whitespace_stripped(self):
        request = CheckInRequest.parse({**PAYLOAD, "plate": " ABC-1234 ", "color": " Blanc "})

        assert request.plate == "ABC-1234"
        assert request.color == "Blanc"

    @pytest.mark.parametrize("plate", ["abc-1234", "ABC1234", "AB-12345", ""])
    def test_invalid_plate(self, plate):
        with pytest.raises(ValidationFailedError) as exc_info:
            CheckInRequest.parse({**PAYLOAD, "plate": plate})

        assert set(exc_info.value.errors) == {"plate"}

    @pytest.mark.parametrize("national_id", ["5299822472", "529.982.247-25", "5299822472a"])
    def test_invalid_national_id_format(self, national_id):
        with pytest.raises(ValidationFailedError) as exc_info:
            CheckInRequest.parse({**PAYLOAD, "national_id": national_id})

        assert "national_id" in exc_info.value.errors

    def test_missing_fields_reported(self):
        with pytest.raises(ValidationFailedError) as exc_info:
            CheckInRequest.parse({"plate": "ABC-1234"})

        assert set(exc_info.value.errors) == {"brand", "model", "color", "national_id"}
        assert exc_info.value.status_code == 422

    def test_blank_brand(self):
        with pytest.raises(ValidationFailedError) as exc_info:
            CheckInRequest.parse({**PAYLOAD, "brand": "   "})

        assert "brand" in exc_info.value.errors

    def test_frozen(self):
        request = CheckInRequest.parse(PAYLOAD)

        with pytest.raises(Exception):
            request.plate = "XYZ-0000"
