"""
주유소/충전소 이름, 주소 정규화 및 비교

카카오 장소명과 기관 데이터 이름은 브랜드, 시설 접미어 표기가 제각각이므로
정규화 후 difflib 유사도로 비교
주소는 시도 표기(서울/서울특별시)와 괄호 부가정보를 걷어내고 토큰 단위로 비교
"""

import re
import difflib
from typing import Callable, List

from app.core.regions import zcode_from_address

# 브랜드/시설 접미어 제거 후 비교
_FUEL_NOISE = re.compile(
    r"현대오일뱅크|에너지플러스허브|에너지플러스|오일뱅크|주유소|셀프|self|㈜|\(주\)|직영|S-?OIL|SK|GS|알뜰",
    re.IGNORECASE,
)
_EV_NOISE = re.compile(r"충전소|충전기|전기차|EV|\(.*?\)|주차장|공용", re.IGNORECASE)
_PUNCT = re.compile(r"[()·\-_#]")
_SPACES = re.compile(r"\s+")
_PARENS = re.compile(r"\(.*?\)")
_DIGIT = re.compile(r"\d")

# 한쪽 이름이 다른 쪽에 포함되면 거의 일치로 간주
CONTAINMENT_SCORE = 0.9


def _clean(name: str, noise: re.Pattern) -> str:
    name = noise.sub("", name or "")
    name = _PUNCT.sub(" ", name)
    return _SPACES.sub(" ", name).strip().lower()


def normalize_fuel_name(name: str) -> str:
    """'SK에너지 강남셀프주유소' => '에너지 강남'"""
    return _clean(name, _FUEL_NOISE)


def normalize_ev_name(name: str) -> str:
    """'강남구청 공영주차장 전기차충전소(급속)' => '강남구청 공영'"""
    return _clean(name, _EV_NOISE)


def name_similarity(a: str, b: str) -> float:
    """정규화된 두 이름의 유사도 (0~1)"""
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0

    ratio = difflib.SequenceMatcher(None, a, b).ratio()
    if a in b or b in a:
        return max(ratio, CONTAINMENT_SCORE)
    return ratio


def is_self_service(*names: str) -> bool:
    return any("셀프" in (n or "") for n in names)


NameNormalizer = Callable[[str], str]


def _address_tokens(address: str) -> List[str]:
    address = _PARENS.sub(" ", address or "")
    tokens = _SPACES.sub(" ", address).strip().lower().split(" ")
    tokens = [t for t in tokens if t]
    # 시도 표기 차이 (서울 / 서울특별시) => 첫 토큰이 시도면 제외
    if tokens and zcode_from_address(tokens[0]) is not None:
        tokens = tokens[1:]
    return tokens


def normalize_address(address: str) -> str:
    """'서울특별시 강남구 테헤란로 201 (역삼동)' => '강남구 테헤란로 201'"""
    return " ".join(_address_tokens(address))


def addresses_match(a: str, b: str) -> bool:
    """
    두 주소가 같은 곳을 가리키는지

    짧은 쪽 토큰열이 긴 쪽에 연속으로 포함되면 일치
    번지/건물번호가 없는 주소(동 이름만 등)는 너무 넓어서 일치로 보지 않음
    """
    ta, tb = _address_tokens(a), _address_tokens(b)
    if not ta or not tb:
        return False
    short, long = sorted((ta, tb), key=len)
    if not any(_DIGIT.search(t) for t in short):
        return False
    n = len(short)
    return any(long[i : i + n] == short for i in range(len(long) - n + 1))
