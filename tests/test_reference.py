"""
Tests for booking reference numbers.
"""

import pendulum

from studiobook.domain.reference import REFERENCE_ALPHABET, generate_reference, is_valid_reference


class TestReference:
    def test_format(self):
        reference = generate_reference("IOS", pendulum.datetime(2025, 12, 20, 10, 30))

        prefix, day, suffix = reference.split("-")
        assert prefix == "IOS"
        assert day == "251220"
        assert len(suffix) == 4
        assert all(ch in REFERENCE_ALPHABET for ch in suffix)
        assert is_valid_reference(reference)

    def test_alphabet_avoids_lookalikes(self):
        assert not set("01IO") & set(REFERENCE_ALPHABET)

    def test_custom_prefix(self):
        reference = generate_reference("ABC")

        assert is_valid_reference(reference, prefix="ABC")
        assert not is_valid_reference(reference)

    def test_invalid_references(self):
        assert not is_valid_reference("")
        assert not is_valid_reference(None)
        assert not is_valid_reference("IOS-2512-ABCD")
        assert not is_valid_reference("IOS-251220-abcd")
