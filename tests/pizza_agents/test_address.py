"""Tests for free-text address normalization."""

import pytest

from pizza_agents.address import DEFAULT_REGION, normalize_region, parse_address


class TestParseAddress:
    def test_comma_separated_address(self):
        address = parse_address("2 Portola Plaza, Monterey, CA, 93940")
        assert address.street == "2 Portola Plaza"
        assert address.city == "Monterey"
        assert address.region == "CA"
        assert address.postal_code == "93940"

    def test_region_and_zip_in_one_segment(self):
        address = parse_address("2 Portola Plaza, Monterey, Ca 93940")
        assert address.region == "CA"
        assert address.postal_code == "93940"

    def test_full_region_name_is_mapped_to_code(self):
        address = parse_address("350 5th Ave, New York, New York 10118")
        assert address.city == "New York"
        assert address.region == "NY"
        assert address.postal_code == "10118"

    def test_city_and_region_share_a_segment(self):
        address = parse_address("1 Temple Square, Salt Lake City UT 84150")
        assert address.street == "1 Temple Square"
        assert address.city == "Salt Lake City"
        assert address.region == "UT"
        assert address.postal_code == "84150"

    def test_trailing_country_is_ignored(self):
        address = parse_address("123 Main St, Anytown, Texas, USA")
        assert address.city == "Anytown"
        assert address.region == "TX"

    def test_no_region_uses_default(self):
        address = parse_address("500 Main St")
        assert address.street == "500 Main St"
        assert address.city == ""
        assert address.region == DEFAULT_REGION
        assert address.postal_code == ""

    def test_unknown_region_uses_default(self):
        address = parse_address("1 Loop Rd, Springfield, Atlantis")
        assert address.region == DEFAULT_REGION

    def test_custom_default_region(self):
        assert parse_address("500 Main St", default_region="OR").region == "OR"

    def test_zip_only_tail(self):
        address = parse_address("2 Portola Plaza, Monterey, 93940")
        assert address.region == DEFAULT_REGION
        assert address.postal_code == "93940"

    def test_no_commas_with_region_and_zip(self):
        address = parse_address("2 Portola Plaza Monterey CA 93940")
        assert address.street == "2 Portola Plaza Monterey"
        assert address.region == "CA"
        assert address.postal_code == "93940"

    def test_deterministic(self):
        text = "2 Portola Plaza, Monterey, CA, 93940"
        assert parse_address(text) == parse_address(text)

    def test_one_line_rendering(self):
        address = parse_address("2 Portola Plaza, Monterey, CA, 93940")
        assert address.one_line() == "2 Portola Plaza, Monterey, CA 93940"

    def test_blank_address_raises(self):
        with pytest.raises(ValueError):
            parse_address("  ,  ")


class TestNormalizeRegion:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [("ca", "CA"), ("California", "CA"), ("north  carolina", "NC"), ("Tex.", None)],
    )
    def test_mapping(self, name, expected):
        assert normalize_region(name) == expected

    def test_empty(self):
        assert normalize_region(None) is None
        assert normalize_region("") is None
