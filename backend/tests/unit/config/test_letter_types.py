"""
Unit Tests for the Letter Type Registry
Tests for: bundled catalog, YAML loading, lookups, required-field checks
"""
import pytest

from letterdesk.config.letter_types import (
    LetterTypeInfo,
    LetterTypeLoader,
    LetterTypeRegistry,
    get_letter_type_registry,
)


class TestBundledCatalog:
    """Test the letter_types.yml shipped with the package"""

    def test_has_all_letter_types(self, registry):
        assert len(registry) == 31

    def test_codes_are_unique_and_uppercase(self, registry):
        codes = registry.codes()
        assert len(set(codes)) == len(codes)
        assert all(code == code.upper() for code in codes)

    def test_known_types(self, registry):
        ska = registry.get("SKA")
        assert ska.name == "Surat Keterangan Aktif Kuliah"
        assert ska.required_fields == ("semester", "tahun_akademik")

        assert registry.get("SKP").required_fields == (
            "judul_penelitian", "lokasi_penelitian", "tanggal_mulai", "tanggal_selesai"
        )
        assert registry.get("SKVER").required_fields == ()

    def test_registry_is_cached(self):
        assert get_letter_type_registry() is get_letter_type_registry()


class TestLetterTypeRegistry:
    """Test registry lookups"""

    def test_lookup(self):
        registry = LetterTypeRegistry([LetterTypeInfo(code="SKA", name="Aktif Kuliah")])

        assert registry.is_valid("SKA")
        assert "SKA" in registry
        assert registry.get("SKX") is None
        assert not registry.is_valid("ska")

    def test_duplicate_codes_rejected(self):
        with pytest.raises(ValueError):
            LetterTypeRegistry([
                LetterTypeInfo(code="SKA", name="One"),
                LetterTypeInfo(code="SKA", name="Two"),
            ])

    def test_registry_cannot_be_mutated(self, registry):
        with pytest.raises(TypeError):
            registry._types["NEW"] = LetterTypeInfo(code="NEW", name="New")


class TestMissingFields:
    """Test required-field validation"""

    def test_all_present(self):
        info = LetterTypeInfo(code="SKA", name="Aktif", required_fields=("semester", "tahun_akademik"))

        assert info.missing_fields({"semester": "5", "tahun_akademik": "2025/2026"}) == []

    def test_absent_and_empty_values_are_missing(self):
        info = LetterTypeInfo(code="SKA", name="Aktif", required_fields=("semester", "tahun_akademik"))

        assert info.missing_fields({"semester": ""}) == ["semester", "tahun_akademik"]
        assert info.missing_fields(None) == ["semester", "tahun_akademik"]

    def test_extra_fields_ignored(self):
        info = LetterTypeInfo(code="SKBS", name="Bebas Sanksi")

        assert info.missing_fields({"anything": "goes"}) == []

    def test_to_dict(self):
        info = LetterTypeInfo(code="SKKHS", name="KHS", description="Kartu Hasil Studi", required_fields=("semester",))

        assert info.to_dict() == {
            "code": "SKKHS",
            "name": "KHS",
            "description": "Kartu Hasil Studi",
            "required_fields": ["semester"],
        }


class TestLetterTypeLoader:
    """Test loading letter types from YAML"""

    def test_load_custom_file(self, tmp_path):
        path = tmp_path / "types.yml"
        path.write_text(
            "letter_types:\n"
            "  - code: SKA\n"
            "    name: Aktif Kuliah\n"
            "    required_fields: [semester]\n"
            "  - code: SKBS\n"
            "    name: Bebas Sanksi\n",
            encoding="utf-8",
        )

        registry = LetterTypeLoader(str(path)).load()

        assert registry.codes() == ["SKA", "SKBS"]
        assert registry.get("SKA").required_fields == ("semester",)
        assert registry.get("SKBS").description == ""

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            LetterTypeLoader(str(tmp_path / "nope.yml"))

    @pytest.mark.parametrize("code", ["SK/A", "ska", "SK A", ""])
    def test_malformed_code_rejected(self, tmp_path, code):
        path = tmp_path / "types.yml"
        path.write_text(f"letter_types:\n  - code: '{code}'\n    name: Broken\n", encoding="utf-8")

        with pytest.raises(ValueError):
            LetterTypeLoader(str(path)).load()

    @pytest.mark.parametrize("content", ["", "letter_types: []\n"])
    def test_empty_catalog_rejected(self, tmp_path, content):
        path = tmp_path / "types.yml"
        path.write_text(content, encoding="utf-8")

        with pytest.raises(ValueError, match="No letter types defined"):
            LetterTypeLoader(str(path)).load()
