"""
Unit tests for gift card code generation
"""

import re

import pytest

from orderledger.services.code_generator import CodeGenerator
from orderledger.services.gift_card_ledger import GiftCardLedger
from orderledger.utils.error_handler import CodeSpaceExhaustedError

CODE_PATTERN = re.compile(r"^MKD-[ABCDEFGHJKLMNPQRSTUVWXYZ23456789]{8}$")


class TestGenerate:
    """Codes are prefixed and avoid look-alike characters"""

    def test_format(self, db):
        """Test that codes carry the prefix and eight alphabet characters"""
        generator = CodeGenerator(db)
        for _ in range(200):
            assert CODE_PATTERN.match(generator.generate())

    def test_alphabet_has_no_ambiguous_characters(self, db):
        """Test that 0, O, 1 and I never appear"""
        generator = CodeGenerator(db)
        assert len(generator.alphabet) == 32
        for ch in "0O1I":
            assert ch not in generator.alphabet

    def test_normalize(self):
        """Test that typed codes are stripped of spaces and upper-cased"""
        assert CodeGenerator.normalize("  mkd-ab cd 2345 ") == "MKD-ABCD2345"


class TestEnsureUnique:
    """Uniqueness search against the store"""

    def test_skips_codes_already_issued(self, db):
        """Test that an existing code is never handed out again"""
        issued = GiftCardLedger(db).issue("10.00")
        codes = iter([issued.code, issued.code, "MKD-ZZZZ2222"])

        generator = CodeGenerator(db)
        generator.generate = lambda: next(codes)

        assert generator.ensure_unique() == "MKD-ZZZZ2222"

    def test_gives_up_after_max_attempts(self, db):
        """Test that the search stops after the attempt budget"""
        attempts = []

        def always_taken(code):
            attempts.append(code)
            return True

        generator = CodeGenerator(db, exists=always_taken)
        with pytest.raises(CodeSpaceExhaustedError):
            generator.ensure_unique(max_attempts=5)
        assert len(attempts) == 5

    def test_default_budget_is_twenty(self, db):
        """Test the default attempt budget"""
        calls = []
        generator = CodeGenerator(db, exists=lambda code: calls.append(code) or True)
        with pytest.raises(CodeSpaceExhaustedError):
            generator.ensure_unique()
        assert len(calls) == 20

    def test_sequence_of_issued_codes_is_distinct(self, db):
        """Test that issued cards never share a code"""
        ledger = GiftCardLedger(db)
        codes = {ledger.issue("5.00").code for _ in range(25)}
        assert len(codes) == 25
