"""
Unit tests for printable character counting.
"""

import pytest

from pccserver.protocol.counting import (
    HISTOGRAM_SIZE,
    CountResult,
    Histogram,
    count,
    is_printable,
)


class TestIsPrintable:
    """Boundary behaviour of the printable range."""
    
    @pytest.mark.parametrize("byte", [32, 65, 126])
    def test_printable(self, byte):
        assert is_printable(byte)
    
    @pytest.mark.parametrize("byte", [0, 9, 10, 31, 127, 128, 255])
    def test_not_printable(self, byte):
        assert not is_printable(byte)


class TestCount:
    """Tests for count()."""
    
    def test_empty(self):
        result = count(b"")
        assert result.total == 0
        assert result.histogram.is_empty()
    
    def test_mixed_payload(self):
        """Control bytes are excluded from total and histogram."""
        result = count(b"Hi!\x01\x02")
        
        assert result.total == 3
        assert result.histogram["H"] == 1
        assert result.histogram["i"] == 1
        assert result.histogram["!"] == 1
    
    def test_boundaries(self):
        result = count(bytes([31, 32, 126, 127]))
        
        assert result.total == 2
        assert result.histogram[32] == 1
        assert result.histogram[126] == 1
    
    def test_every_byte_value(self):
        """Exactly 95 of the 256 byte values are printable."""
        result = count(bytes(range(256)))
        
        assert result.total == HISTOGRAM_SIZE
        assert all(n == 1 for _, n in result.histogram.items())
    
    def test_extended_ascii_ignored(self):
        assert count(bytes(range(128, 256))).total == 0
    
    def test_repeated_character(self):
        result = count(b"A\n" * 5120)
        
        assert result.total == 5120
        assert result.histogram["A"] == 5120
        assert list(result.histogram.items()) == [(65, 5120)]
    
    def test_chunked_counting_is_additive(self):
        """Counting chunk by chunk and folding equals counting at once."""
        data = bytes(i % 256 for i in range(3000)) + b"The quick brown fox"
        
        folded = CountResult()
        for start in range(0, len(data), 7):
            folded.update(count(data[start:start + 7]))
        
        whole = count(data)
        assert folded.total == whole.total
        assert folded.histogram == whole.histogram
    
    def test_total_matches_per_byte_sum(self):
        data = b"tab\there, newline\n, del\x7f, tilde~"
        assert count(data).total == sum(count(bytes([b])).total for b in data)


class TestHistogram:
    """Tests for the Histogram value type."""
    
    def test_lookup_by_code_or_char(self):
        hist = Histogram.from_bytes(b"AAB")
        
        assert hist[65] == hist["A"] == 2
        assert hist["B"] == 1
        assert hist["C"] == 0
    
    def test_non_printable_key_rejected(self):
        with pytest.raises(KeyError):
            Histogram()[10]
    
    def test_wrong_slot_count_rejected(self):
        with pytest.raises(ValueError):
            Histogram([0] * 10)
    
    def test_add_returns_new_value(self):
        a = Histogram.from_bytes(b"ab")
        b = Histogram.from_bytes(b"bc")
        
        combined = a + b
        
        assert combined["b"] == 2
        assert a["b"] == 1  # operands unchanged
        assert b["b"] == 1
    
    def test_update_does_not_alias(self):
        """Folding copies counts; later changes to the source don't leak."""
        target = Histogram()
        source = Histogram.from_bytes(b"x")
        
        target.update(source)
        source.update(Histogram.from_bytes(b"xx"))
        
        assert target["x"] == 1
        assert source["x"] == 3
    
    def test_items_ascending(self):
        hist = Histogram.from_bytes(b"~zA !")
        
        codes = [code for code, _ in hist.items()]
        assert codes == sorted(codes)
        assert codes == [32, 33, 65, 122, 126]
    
    def test_copy_is_independent(self):
        hist = Histogram.from_bytes(b"q")
        clone = hist.copy()
        clone.update(hist)
        
        assert hist["q"] == 1
        assert clone["q"] == 2
