"""
장소 이름, 주소 정규화 / 유사도 테스트
"""

from app.algorithms.name_matching import (
    CONTAINMENT_SCORE,
    addresses_match,
    is_self_service,
    name_similarity,
    normalize_address,
    normalize_ev_name,
    normalize_fuel_name,
)


class TestNormalize:
    def test_fuel_brand_and_suffix_removed(self):
        assert normalize_fuel_name("SK에너지 강남셀프주유소") == "에너지 강남"

    def test_fuel_same_station_different_notation(self):
        """카카오 표기와 OPINET 표기가 달라도 같은 결과"""
        assert normalize_fuel_name("GS칼텍스 역삼주유소") == normalize_fuel_name("(주)GS칼텍스 역삼 주유소")

    def test_fuel_lowercase(self):
        assert normalize_fuel_name("S-OIL Self 대치주유소") == "대치"

    def test_ev_noise_removed(self):
        assert normalize_ev_name("강남구청 공영주차장 전기차충전소(급속)") == "강남구청 공영"

    def test_empty_name(self):
        assert normalize_fuel_name("") == ""
        assert normalize_ev_name(None) == ""


class TestNameSimilarity:
    def test_identical(self):
        assert name_similarity("역삼", "역삼") == 1.0

    def test_empty_is_zero(self):
        assert name_similarity("", "역삼") == 0.0
        assert name_similarity("역삼", "") == 0.0

    def test_containment_counts_as_near_match(self):
        assert name_similarity("강남", "강남대로") >= CONTAINMENT_SCORE

    def test_unrelated_names_below_threshold(self):
        assert name_similarity("에너지 강남", "칼텍스 역삼") < 0.8

    def test_symmetric_for_containment(self):
        assert name_similarity("강남", "강남대로") == name_similarity("강남대로", "강남")


class TestSelfService:
    def test_detects_self(self):
        assert is_self_service("SK에너지 강남셀프주유소") is True

    def test_any_of_names(self):
        assert is_self_service("역삼주유소", "역삼셀프주유소") is True

    def test_none_safe(self):
        assert is_self_service(None, "역삼주유소") is False


class TestAddressMatching:
    """카카오 주소 <=> 기관 주소 비교"""

    def test_normalize_drops_province_and_parens(self):
        assert normalize_address("서울특별시 강남구 테헤란로 201 (역삼동)") == "강남구 테헤란로 201"
        assert normalize_address("서울 강남구  테헤란로 201") == "강남구 테헤란로 201"

    def test_normalize_keeps_address_without_province(self):
        assert normalize_address("강남구 역삼동 736-1") == "강남구 역삼동 736-1"

    def test_province_notation_difference(self):
        assert addresses_match("서울 강남구 테헤란로 201", "서울특별시 강남구 테헤란로 201") is True
        assert addresses_match("경기 성남시 분당구 판교로 10", "경기도 성남시 분당구 판교로 10") is True

    def test_contained_address(self):
        """건물명 등 부가정보가 붙어 있어도 일치"""
        assert addresses_match("강남구 역삼동 736-1", "서울 강남구 역삼동 736-1 역삼빌딩") is True

    def test_different_lot_number(self):
        """문자열로는 포함되지만 번지가 다름 => 불일치"""
        assert addresses_match("서울 강남구 역삼동 73", "서울 강남구 역삼동 736-1") is False

    def test_address_without_number_never_matches(self):
        assert addresses_match("서울 강남구 역삼동", "서울 강남구 역삼동 736-1") is False

    def test_empty(self):
        assert addresses_match("", "서울 강남구 테헤란로 201") is False
        assert addresses_match("서울 강남구 테헤란로 201", None) is False
